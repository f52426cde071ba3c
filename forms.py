from flask import request
from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField
from flask_wtf.form import SUBMIT_METHODS
from wtforms import FloatField, PasswordField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, NumberRange, Optional
from werkzeug.datastructures import ImmutableMultiDict

from errors import ValidationError
from models import ApplicationStatus, JobType, Role, SalaryPeriod


def parse_skills(values):
    """Split comma-separated skill text into a sorted, de-duplicated list."""
    skills = set()
    for value in values:
        for part in str(value).split(","):
            part = part.strip().lower()
            if part:
                skills.add(part)
    return sorted(skills)


class SkillsField(StringField):
    """Comma-separated text (or repeated values) parsed into a list of skills."""

    def process_formdata(self, valuelist):
        self.data = parse_skills(valuelist) if valuelist else []

    def _value(self):
        return ", ".join(self.data or [])


def json_formdata():
    """Flatten a JSON object body into form data; scalars become strings."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object.")

    items = []
    for key, value in body.items():
        for item in value if isinstance(value, list) else [value]:
            if item is None:
                continue
            if isinstance(item, (dict, list)):
                raise ValidationError(f"{key}: Not a valid value.", errors={key: ["Not a valid value."]})
            if isinstance(item, bool):
                item = "true" if item else "false"
            items.append((key, item if isinstance(item, str) else str(item)))
    return ImmutableMultiDict(items)


class ApiForm(FlaskForm):
    # JSON API forms; the session cookie is SameSite=Lax
    class Meta:
        csrf = False

    def __init__(self, *args, **kwargs):
        if "formdata" not in kwargs and request.is_json and request.method in SUBMIT_METHODS:
            kwargs["formdata"] = json_formdata()
        super().__init__(*args, **kwargs)

    def validate_or_raise(self):
        if not self.validate_on_submit():
            field, messages = next(iter(self.errors.items()))
            raise ValidationError(f"{field}: {messages[0]}", errors=self.errors)
        return self


class SignupForm(ApiForm):
    name = StringField("Full name", validators=[DataRequired(), Length(max=100)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=120)])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=8)])
    role = SelectField(
        "Role",
        choices=[(Role.STUDENT.value, "Student"), (Role.RECRUITER.value, "Recruiter")],
        default=Role.STUDENT.value,
    )


class LoginForm(ApiForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired()])


class ProfileForm(ApiForm):
    name = StringField("Full name", validators=[DataRequired(), Length(max=100)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=120)])
    skills = SkillsField("Skills")
    resume = FileField("Resume", validators=[FileAllowed(["pdf"], "Only PDF files are allowed")])


class JobForm(ApiForm):
    title = StringField("Job Title", validators=[DataRequired(), Length(max=200)])
    company = StringField("Company", validators=[DataRequired(), Length(max=200)])
    location = StringField("Location", default="Remote", validators=[Length(max=100)])
    job_type = SelectField(
        "Job Type",
        choices=[(t.value, t.value) for t in JobType],
        validators=[DataRequired()],
    )
    description = TextAreaField(
        "Job Description",
        validators=[
            DataRequired(),
            Length(max=1000, message="Description cannot be more than 1000 characters."),
        ],
    )
    skills_required = SkillsField("Required Skills")
    salary_value = FloatField("Salary", validators=[Optional(), NumberRange(min=0)])
    salary_currency = StringField("Currency", default="USD", validators=[Length(max=10)])
    salary_period = SelectField(
        "Salary Period",
        choices=[(p.value, p.value) for p in SalaryPeriod],
        default=SalaryPeriod.YEAR.value,
    )
    salary_details = StringField("Salary Details", validators=[Length(max=200)])

    def populate_job(self, job):
        job.title = self.title.data.strip()
        job.company = self.company.data.strip()
        job.location = (self.location.data or "").strip() or "Remote"
        job.job_type = self.job_type.data
        job.description = self.description.data
        job.skills_required = self.skills_required.data
        job.salary_value = self.salary_value.data
        job.salary_currency = (self.salary_currency.data or "").strip() or "USD"
        job.salary_period = self.salary_period.data
        job.salary_details = (self.salary_details.data or "").strip() or None
        return job


class ApplicationStatusForm(ApiForm):
    status = SelectField(
        "Status",
        choices=[(s.value, s.value) for s in ApplicationStatus],
        validators=[DataRequired()],
    )

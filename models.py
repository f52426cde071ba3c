import enum
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

from errors import InvalidArgument, ValidationError

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc)


class Role(str, enum.Enum):
    STUDENT = "student"
    RECRUITER = "recruiter"


class JobType(str, enum.Enum):
    INTERNSHIP = "internship"
    FULL_TIME = "full-time"
    PART_TIME = "part-time"
    VOLUNTEER = "volunteer"


class SalaryPeriod(str, enum.Enum):
    HOUR = "hour"
    MONTH = "month"
    YEAR = "year"


class SwipeDirection(str, enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class ApplicationStatus(str, enum.Enum):
    APPLIED = "applied"
    VIEWED = "viewed"
    INTERVIEWING = "interviewing"
    REJECTED = "rejected"
    HIRED = "hired"

    @property
    def rank(self):
        return _STATUS_RANK[self]

    @property
    def is_terminal(self):
        return self in (ApplicationStatus.REJECTED, ApplicationStatus.HIRED)


_STATUS_RANK = {
    ApplicationStatus.APPLIED: 0,
    ApplicationStatus.VIEWED: 1,
    ApplicationStatus.INTERVIEWING: 2,
    ApplicationStatus.REJECTED: 3,
    ApplicationStatus.HIRED: 3,
}


class User(db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=Role.STUDENT.value)
    skills = db.Column(db.JSON, nullable=False, default=list)
    resume_url = db.Column(db.String(255))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationship: a recruiter can post many jobs
    jobs_posted = db.relationship("Job", back_populates="recruiter", lazy=True)
    # Relationship: a student can have many applications
    applications = db.relationship("Application", back_populates="applicant", lazy=True)
    swipes = db.relationship("Swipe", back_populates="user", lazy=True)

    @property
    def is_recruiter(self):
        return self.role == Role.RECRUITER.value

    @property
    def skill_set(self):
        return set(self.skills or [])

    @property
    def applied_job_ids(self):
        return {s.job_id for s in self.swipes if s.direction == SwipeDirection.ACCEPT.value}

    @property
    def rejected_job_ids(self):
        return {s.job_id for s in self.swipes if s.direction == SwipeDirection.REJECT.value}

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "skills": sorted(self.skill_set),
            "resume_url": self.resume_url,
            "applied_jobs": sorted(self.applied_job_ids),
            "rejected_jobs": sorted(self.rejected_job_ids),
        }


class Job(db.Model):
    __tablename__ = "job"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    company = db.Column(db.String(200), nullable=False)
    location = db.Column(db.String(100), nullable=False, default="Remote")
    job_type = db.Column(db.String(20), nullable=False)
    description = db.Column(db.Text, nullable=False)
    salary_value = db.Column(db.Float)
    salary_currency = db.Column(db.String(10), default="USD")
    salary_period = db.Column(db.String(10), default=SalaryPeriod.YEAR.value)
    salary_details = db.Column(db.String(200))
    posted_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    recruiter = db.relationship("User", back_populates="jobs_posted")
    skills = db.relationship(
        "JobSkill", back_populates="job", lazy="selectin", cascade="all, delete-orphan"
    )
    # Deleting a job removes its applications and the swipes pointing at it
    applications = db.relationship(
        "Application", back_populates="job", lazy=True, cascade="all, delete-orphan"
    )
    swipes = db.relationship("Swipe", back_populates="job", lazy=True, cascade="all, delete-orphan")

    @property
    def skills_required(self):
        return sorted(s.name for s in self.skills)

    @skills_required.setter
    def skills_required(self, names):
        wanted = set(names)
        self.skills = [s for s in self.skills if s.name in wanted]
        present = {s.name for s in self.skills}
        for name in sorted(wanted - present):
            self.skills.append(JobSkill(name=name))

    def to_dict(self):
        salary = None
        if self.salary_value is not None or self.salary_details:
            salary = {
                "value": self.salary_value,
                "currency": self.salary_currency,
                "period": self.salary_period,
                "details": self.salary_details,
            }
        return {
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "job_type": self.job_type,
            "description": self.description,
            "skills_required": self.skills_required,
            "salary": salary,
            "posted_by": self.posted_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class JobSkill(db.Model):
    __tablename__ = "job_skill"
    __table_args__ = (db.UniqueConstraint("job_id", "name"),)

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.Integer, db.ForeignKey("job.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False, index=True)

    job = db.relationship("Job", back_populates="skills")


class Swipe(db.Model):
    """One seen job per user: the direction says which set it belongs to."""

    __tablename__ = "swipe"
    __table_args__ = (db.UniqueConstraint("user_id", "job_id"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    job_id = db.Column(db.Integer, db.ForeignKey("job.id"), nullable=False)
    direction = db.Column(db.String(10), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = db.relationship("User", back_populates="swipes")
    job = db.relationship("Job", back_populates="swipes")


class Application(db.Model):
    __tablename__ = "application"
    __table_args__ = (db.UniqueConstraint("user_id", "job_id"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    job_id = db.Column(db.Integer, db.ForeignKey("job.id"), nullable=False)
    cover_letter = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=ApplicationStatus.APPLIED.value)
    resume = db.Column(db.String(255))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    applicant = db.relationship("User", back_populates="applications")
    job = db.relationship("Job", back_populates="applications")

    def advance(self, status):
        """Move the application forward; rejected and hired are final."""
        try:
            target = ApplicationStatus(status)
        except ValueError:
            raise InvalidArgument(f"Unknown application status: {status!r}.") from None

        current = ApplicationStatus(self.status)
        if target == current:
            return
        if current.is_terminal:
            raise ValidationError(f"Application is already {current.value}.")
        if target.rank <= current.rank:
            raise ValidationError(
                f"Cannot move application from {current.value} back to {target.value}."
            )
        self.status = target.value

    def to_dict(self, include_applicant=False):
        data = {
            "id": self.id,
            "job_id": self.job_id,
            "applicant_id": self.user_id,
            "cover_letter": self.cover_letter,
            "status": self.status,
            "resume": self.resume,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_applicant and self.applicant is not None:
            data["applicant"] = {
                "id": self.applicant.id,
                "name": self.applicant.name,
                "email": self.applicant.email,
                "skills": sorted(self.applicant.skill_set),
            }
        return data

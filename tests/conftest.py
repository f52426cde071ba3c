"""Shared fixtures: an app on in-memory SQLite with a fake text provider."""
import io
from datetime import datetime, timedelta, timezone

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from cover_letter import CoverLetterGenerator
from errors import ExternalServiceDegraded
from models import Job, User, db

PASSWORD = "correct-horse"
LETTER = "Dear Hiring Manager,\n\nI am excited to apply.\n\nSincerely,\nAda"


def text_pdf(text):
    """A one-page PDF whose content stream draws ``text`` in Helvetica."""
    stream = b"BT /F1 12 Tf 72 720 Td (%s) Tj ET" % text.encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R"
        b" /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n%s\nendstream" % (len(stream), stream),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = io.BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, 1):
        offsets.append(out.tell())
        out.write(b"%d 0 obj\n%s\nendobj\n" % (number, body))
    xref = out.tell()
    out.write(b"xref\n0 %d\n0000000000 65535 f \n" % (len(objects) + 1))
    for offset in offsets:
        out.write(b"%010d 00000 n \n" % offset)
    out.write(b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref))
    return out.getvalue()


class FakeClient:
    configured = True

    def __init__(self, text=LETTER):
        self.text = text
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        return self.text


class FailingClient:
    configured = True

    def __init__(self, reason="ConnectError: connection refused"):
        self.reason = reason
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        raise ExternalServiceDegraded(self.reason)


@pytest.fixture
def text_client():
    return FakeClient()


@pytest.fixture
def generator(text_client):
    return CoverLetterGenerator(text_client, lambda ref: f"Resume text from {ref}")


@pytest.fixture
def app(tmp_path, generator):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        },
        cover_letter_generator=generator,
    )
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make_user(role="student", skills=(), resume_url=None, name="Ada Lovelace", email=None):
        counter["n"] += 1
        user = User(
            name=name,
            email=email or f"user{counter['n']}@example.com",
            password=generate_password_hash(PASSWORD),
            role=role,
            skills=sorted(skills),
            resume_url=resume_url,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def recruiter(make_user):
    return make_user(role="recruiter", name="Grace Hopper")


@pytest.fixture
def make_job(app, recruiter):
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make_job(skills=("python",), title="Backend Intern", owner=None, **fields):
        counter["n"] += 1
        job = Job(
            title=title,
            company=fields.pop("company", "Acme"),
            location=fields.pop("location", "Remote"),
            job_type=fields.pop("job_type", "internship"),
            description=fields.pop("description", "Build APIs."),
            posted_by=(owner or recruiter).id,
            created_at=fields.pop("created_at", start + timedelta(minutes=counter["n"])),
            **fields,
        )
        job.skills_required = list(skills)
        db.session.add(job)
        db.session.commit()
        return job

    return _make_job


@pytest.fixture
def login(client):
    def _login(user, password=PASSWORD):
        response = client.post("/api/auth/login", json={"email": user.email, "password": password})
        assert response.status_code == 200, response.get_json()
        return response

    return _login

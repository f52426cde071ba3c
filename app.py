import functools
import logging
import os
import sys
import time
from datetime import timedelta

import click
from flask import (
    Blueprint, Flask, current_app, g, jsonify, request,
    send_from_directory, session
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException, InternalServerError, RequestEntityTooLarge
from werkzeug.security import check_password_hash, generate_password_hash

from cover_letter import CoverLetterGenerator, GeminiClient, UnconfiguredClient
from errors import AppError, Conflict, Forbidden, InvalidArgument, NotFound, StorageUnavailable, Unauthorized
from feed import DEFAULT_FEED_LIMIT, select_feed
from forms import ApplicationStatusForm, JobForm, LoginForm, ProfileForm, SignupForm
from models import Application, Job, Role, User, db
from resume_text import load_resume_text
from swipes import record_swipe

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"

# The swipe UI sends right/left
DIRECTION_ALIASES = {"right": "accept", "left": "reject"}

api = Blueprint("api", __name__, url_prefix="/api")


# ================= CONFIG =================
def load_config(app):
    app.config["PREFERRED_URL_SCHEME"] = "https"
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-key")

    # Session cookie is the login credential: signed, HTTP-only, 7 days
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_COOKIE_SECURE=(
            os.environ.get("RENDER") == "true"
            or os.environ.get("SESSION_COOKIE_SECURE") == "true"
        ),
        PERMANENT_SESSION_LIFETIME=timedelta(days=7),
    )

    database_url = os.environ.get("DATABASE_URL") or "sqlite:///job_board.db"
    # Fix postgres:// issue
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    app.config["UPLOAD_FOLDER"] = os.environ.get("UPLOAD_FOLDER", "uploads")
    app.config["MAX_CONTENT_LENGTH"] = 5 * 1024 * 1024

    app.config["GEMINI_API_KEY"] = os.environ.get("GEMINI_API_KEY", "").strip()
    app.config["GEMINI_MODEL"] = os.environ.get("GEMINI_MODEL", "gemini-2.0-flash")
    app.config["AI_TIMEOUT_SECONDS"] = float(os.environ.get("AI_TIMEOUT_SECONDS", 60))

    app.config["FEED_DEFAULT_LIMIT"] = DEFAULT_FEED_LIMIT
    app.config["FEED_MAX_LIMIT"] = 100
    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO").upper()


def configure_logging(level_name):
    level = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)


def build_cover_letter_generator(config):
    api_key = config.get("GEMINI_API_KEY")
    if api_key:
        client = GeminiClient(
            api_key, model=config["GEMINI_MODEL"], timeout=config["AI_TIMEOUT_SECONDS"]
        )
    else:
        log.warning("GEMINI_API_KEY is not set; cover letters will use a placeholder")
        client = UnconfiguredClient()
    return CoverLetterGenerator(
        client, functools.partial(load_resume_text, config["UPLOAD_FOLDER"])
    )


# ================= APP =================
def create_app(test_config=None, cover_letter_generator=None):
    app = Flask(__name__)
    load_config(app)
    if test_config:
        app.config.update(test_config)

    configure_logging(app.config["LOG_LEVEL"])
    if app.config["SECRET_KEY"] == "dev-secret-key" and not app.testing:
        log.warning("SECRET_KEY is not set; using the development key")

    # ================= RESUME UPLOAD =================
    app.config["UPLOAD_FOLDER"] = os.path.abspath(app.config["UPLOAD_FOLDER"])
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    # ================= DATABASE =================
    db.init_app(app)
    with app.app_context():
        db.create_all()

    if cover_letter_generator is None:
        cover_letter_generator = build_cover_letter_generator(app.config)
    app.extensions["cover_letter_generator"] = cover_letter_generator

    app.register_blueprint(api)
    register_error_handlers(app)

    @app.cli.command("list-models")
    def list_models():
        """Print the models available to the configured Gemini key."""
        client = app.extensions["cover_letter_generator"].client
        if not getattr(client, "configured", True):
            click.echo("GEMINI_API_KEY is not set.")
            return
        for name in client.list_models():
            click.echo(name)

    return app


# ================= ERRORS =================
def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(error):
        db.session.rollback()
        log.error("Database error on %s %s: %s", request.method, request.path, error)
        return handle_app_error(StorageUnavailable("Server error, please try again."))

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error):
        return jsonify({"message": "Uploaded file is too large."}), 413

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"message": error.description}), error.code

    @app.errorhandler(InternalServerError)
    def handle_unexpected_error(error):
        original = getattr(error, "original_exception", None) or error
        log.error("Unhandled error on %s %s", request.method, request.path, exc_info=original)
        return jsonify({"message": "Server error, please try again."}), 500


# ================= AUTH HELPERS =================
def current_user():
    user_id = session.get("user_id")
    if user_id is None:
        raise Unauthorized("Please authenticate.")
    user = db.session.get(User, user_id)
    if user is None:
        session.clear()
        raise Unauthorized("Please authenticate.")
    return user


def login_required(view):
    @functools.wraps(view)
    def wrapped(*args, **kwargs):
        g.user = current_user()
        return view(*args, **kwargs)
    return wrapped


def role_required(role):
    def decorator(view):
        @functools.wraps(view)
        def wrapped(*args, **kwargs):
            g.user = current_user()
            if g.user.role != role.value:
                raise Forbidden(f"Access denied. Only {role.value}s can do this.")
            return view(*args, **kwargs)
        return wrapped
    return decorator


def owned_job_or_404(job_id, user):
    job = db.session.get(Job, job_id)
    if job is None or job.posted_by != user.id:
        raise NotFound("Job not found or you are not authorized.")
    return job


def owned_application_or_404(app_id, user):
    application = db.session.get(Application, app_id)
    if application is None or application.job.posted_by != user.id:
        raise NotFound("Application not found or you are not authorized.")
    return application


# ================= SIGNUP / LOGIN =================
@api.route("/auth/register", methods=["POST"])
def register():
    form = SignupForm().validate_or_raise()
    email = form.email.data.strip().lower()

    if User.query.filter_by(email=email).first():
        raise Conflict("A user with this email already exists.")

    user = User(
        name=form.name.data.strip(),
        email=email,
        password=generate_password_hash(form.password.data),
        role=form.role.data,
        skills=[],
    )
    db.session.add(user)
    db.session.commit()
    log.info("Registered %s %s", user.role, user.id)

    return jsonify({"message": "User registered successfully! Please log in."}), 201


@api.route("/auth/login", methods=["POST"])
def login():
    form = LoginForm().validate_or_raise()
    user = User.query.filter_by(email=form.email.data.strip().lower()).first()

    if not user or not check_password_hash(user.password, form.password.data):
        raise Unauthorized("Invalid credentials.")

    session.clear()
    session.permanent = True
    session["user_id"] = user.id
    session["role"] = user.role

    return jsonify({
        "message": "Login successful!",
        "user": {"id": user.id, "name": user.name, "email": user.email, "role": user.role},
    })


@api.route("/auth/logout", methods=["POST"])
def logout():
    session.clear()
    return jsonify({"message": "Logout successful."})


@api.route("/auth/me")
@login_required
def whoami():
    return jsonify({"user": {"id": g.user.id, "name": g.user.name, "role": g.user.role}})


# ================= PROFILE =================
@api.route("/users/me")
@login_required
def my_profile():
    return jsonify({"user": g.user.to_dict()})


@api.route("/users/profile", methods=["POST"])
@login_required
def update_profile():
    form = ProfileForm().validate_or_raise()
    email = form.email.data.strip().lower()

    other = User.query.filter_by(email=email).first()
    if other is not None and other.id != g.user.id:
        raise Conflict("A user with this email already exists.")

    # The account may have been deleted since the request was authenticated
    user = User.query.filter_by(id=g.user.id).first()
    if user is None:
        raise NotFound("User not found.")

    user.name = form.name.data.strip()
    user.email = email
    user.skills = form.skills.data

    resume = form.resume.data
    if resume:
        filename = f"{user.id}-{int(time.time() * 1000)}.pdf"
        resume.save(os.path.join(current_app.config["UPLOAD_FOLDER"], filename))
        user.resume_url = filename
        log.info("Stored resume %s for user %s", filename, user.id)

    try:
        db.session.commit()
    except IntegrityError:
        # Another account claimed the email after the check above
        db.session.rollback()
        raise Conflict("A user with this email already exists.") from None

    return jsonify({"message": "Profile updated successfully!", "user": user.to_dict()})


# ================= FEED / SWIPE =================
@api.route("/jobs/feed")
@role_required(Role.STUDENT)
def job_feed():
    raw = request.args.get("limit")
    if raw is None:
        limit = current_app.config["FEED_DEFAULT_LIMIT"]
    else:
        try:
            limit = int(raw)
        except ValueError:
            raise InvalidArgument("limit must be a positive integer.") from None
    limit = min(limit, current_app.config["FEED_MAX_LIMIT"])

    jobs = select_feed(g.user, limit)
    return jsonify([job.to_dict() for job in jobs])


@api.route("/jobs/swipe/<int:job_id>/<direction>", methods=["POST"])
@role_required(Role.STUDENT)
def swipe(job_id, direction):
    outcome = record_swipe(
        g.user.id,
        job_id,
        DIRECTION_ALIASES.get(direction, direction),
        current_app.extensions["cover_letter_generator"],
    )
    return jsonify(outcome.to_dict())


# ================= SEEKER APPLICATIONS =================
@api.route("/applications")
@role_required(Role.STUDENT)
def my_applications():
    applications = Application.query.filter_by(
        user_id=g.user.id
    ).order_by(Application.id.desc()).all()
    return jsonify([a.to_dict() for a in applications])


# ================= RECRUITER JOBS =================
@api.route("/jobs/my-jobs")
@role_required(Role.RECRUITER)
def my_jobs():
    jobs = Job.query.filter_by(posted_by=g.user.id).order_by(Job.created_at.desc(), Job.id.desc()).all()
    return jsonify([job.to_dict() for job in jobs])


@api.route("/jobs", methods=["POST"])
@role_required(Role.RECRUITER)
def post_job():
    form = JobForm().validate_or_raise()
    job = form.populate_job(Job(posted_by=g.user.id))
    db.session.add(job)
    db.session.commit()
    log.info("Recruiter %s posted job %s", g.user.id, job.id)

    return jsonify({"message": "Job posted successfully!", "job": job.to_dict()}), 201


@api.route("/jobs/<int:job_id>")
@login_required
def get_job(job_id):
    return jsonify(owned_job_or_404(job_id, g.user).to_dict())


@api.route("/jobs/<int:job_id>", methods=["PUT"])
@role_required(Role.RECRUITER)
def update_job(job_id):
    job = owned_job_or_404(job_id, g.user)
    form = JobForm().validate_or_raise()
    form.populate_job(job)
    db.session.commit()

    return jsonify({"message": "Job updated successfully!", "job": job.to_dict()})


@api.route("/jobs/<int:job_id>", methods=["DELETE"])
@role_required(Role.RECRUITER)
def delete_job(job_id):
    job = owned_job_or_404(job_id, g.user)
    db.session.delete(job)
    db.session.commit()
    log.info("Recruiter %s deleted job %s", g.user.id, job_id)

    return jsonify({"message": "Job deleted successfully."})


@api.route("/jobs/<int:job_id>/details")
@role_required(Role.RECRUITER)
def job_details(job_id):
    job = owned_job_or_404(job_id, g.user)
    applications = Application.query.filter_by(job_id=job.id).order_by(Application.id.desc()).all()

    return jsonify({
        "job": job.to_dict(),
        "applications": [a.to_dict(include_applicant=True) for a in applications],
        "application_count": len(applications),
    })


# ================= APPLICATION STATUS =================
@api.route("/applications/<int:app_id>/status", methods=["POST"])
@role_required(Role.RECRUITER)
def update_application_status(app_id):
    application = owned_application_or_404(app_id, g.user)
    form = ApplicationStatusForm().validate_or_raise()
    application.advance(form.status.data)
    db.session.commit()

    return jsonify({"message": f"Application marked {application.status}", "application": application.to_dict()})


@api.route("/applications/<int:app_id>/resume")
@role_required(Role.RECRUITER)
def application_resume(app_id):
    application = owned_application_or_404(app_id, g.user)
    if not application.resume:
        raise NotFound("No resume stored for this application.")
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], application.resume)


# ================= RUN =================
if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port)

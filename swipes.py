"""Recording accept/reject decisions and the applications they produce."""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import InvalidArgument, NotFound, StorageUnavailable
from models import Application, ApplicationStatus, Job, Swipe, SwipeDirection, User, db

log = logging.getLogger(__name__)


@dataclass
class SwipeOutcome:
    job_id: int
    direction: SwipeDirection
    application: Optional[Application] = None
    cover_letter_degraded: Optional[bool] = None

    @property
    def message(self):
        return f"Successfully recorded swipe {self.direction.value}"

    def to_dict(self):
        return {
            "message": self.message,
            "job_id": self.job_id,
            "direction": self.direction.value,
            "application_id": self.application.id if self.application else None,
            "cover_letter_degraded": self.cover_letter_degraded,
        }


def parse_direction(direction):
    if isinstance(direction, SwipeDirection):
        return direction
    try:
        return SwipeDirection(direction)
    except ValueError:
        raise InvalidArgument("Invalid swipe direction specified.") from None


def record_swipe(user_id, job_id, direction, generator):
    """
    Put ``job_id`` into the user's applied or rejected set.

    An accept by a user with a resume on file also drafts a cover letter and
    stores an application, once per (user, job). Cover letter failures are
    stored as placeholder text and never fail the swipe.
    """
    direction = parse_direction(direction)

    try:
        user = db.session.get(User, user_id)
        if user is None:
            raise NotFound("User not found.")
        job = db.session.get(Job, job_id)
        if job is None:
            raise NotFound("Job not found.")

        outcome = SwipeOutcome(job_id=job.id, direction=direction)
        if direction is SwipeDirection.ACCEPT:
            _draft_application(user, job, generator, outcome)

        _mark_seen(user.id, job.id, direction)
        db.session.commit()
    except IntegrityError:
        # A concurrent swipe on the same pair got there first
        db.session.rollback()
        log.warning("Duplicate swipe on job %s by user %s; keeping stored application", job_id, user_id)
        outcome = _record_after_conflict(user_id, job_id, direction)
    except SQLAlchemyError as exc:
        db.session.rollback()
        log.error("Swipe on job %s by user %s not recorded: %s", job_id, user_id, exc)
        raise StorageUnavailable("Server error while processing swipe.") from exc

    log.info(
        "User %s swiped %s on job %s (application=%s)",
        user_id, direction.value, job_id,
        outcome.application.id if outcome.application else None,
    )
    return outcome


def _draft_application(user, job, generator, outcome):
    existing = Application.query.filter_by(user_id=user.id, job_id=job.id).first()
    if existing is not None:
        outcome.application = existing
        return

    if not user.resume_url:
        log.info("User %s accepted job %s without a resume; no application created", user.id, job.id)
        return

    log.info("Drafting application for user %s on job %s", user.id, job.id)
    result = generator.generate(user, job)
    outcome.cover_letter_degraded = result.is_degraded

    application = Application(
        applicant=user,
        job=job,
        cover_letter=result.text,
        resume=user.resume_url,
        status=ApplicationStatus.APPLIED.value,
    )
    db.session.add(application)
    outcome.application = application


def _mark_seen(user_id, job_id, direction):
    swipe = Swipe.query.filter_by(user_id=user_id, job_id=job_id).first()
    if swipe is None:
        db.session.add(Swipe(user_id=user_id, job_id=job_id, direction=direction.value))
    elif swipe.direction != direction.value:
        swipe.direction = direction.value


def _record_after_conflict(user_id, job_id, direction):
    try:
        _mark_seen(user_id, job_id, direction)
        db.session.commit()
        application = Application.query.filter_by(user_id=user_id, job_id=job_id).first()
    except SQLAlchemyError as exc:
        db.session.rollback()
        log.error("Swipe on job %s by user %s not recorded: %s", job_id, user_id, exc)
        raise StorageUnavailable("Server error while processing swipe.") from exc
    return SwipeOutcome(job_id=job_id, direction=direction, application=application)

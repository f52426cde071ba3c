import logging

from sqlalchemy.exc import SQLAlchemyError

from errors import InvalidArgument, StorageUnavailable
from models import Job, JobSkill, Swipe, db

log = logging.getLogger(__name__)

DEFAULT_FEED_LIMIT = 20


def select_feed(user, limit=DEFAULT_FEED_LIMIT):
    """
    Jobs sharing at least one skill with ``user`` that the user has not
    swiped on yet, newest first.

    A user without skills gets an empty feed rather than every job.
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise InvalidArgument("limit must be a positive integer.")

    skills = sorted(user.skill_set)
    if not skills:
        return []

    seen = db.select(Swipe.job_id).where(Swipe.user_id == user.id)
    try:
        return (
            Job.query
            .filter(Job.skills.any(JobSkill.name.in_(skills)))
            .filter(Job.id.not_in(seen))
            .order_by(Job.created_at.desc(), Job.id.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as exc:
        log.error("Feed query failed for user %s: %s", user.id, exc)
        raise StorageUnavailable("Server error while fetching jobs.") from exc

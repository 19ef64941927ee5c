"""Advisory per-course edit lock.

A lock is a lease stored on the course row (``editing_user_id`` +
``editing_expires_at``). Expiry is checked lazily whenever someone tries to
acquire the lock or write to the course, so an abandoned editor session
frees itself once the lease lapses.
"""

from datetime import datetime, timedelta
from typing import cast
from uuid import UUID

import structlog
from sqlalchemy.orm import Session

from learnsphere.auth.models.user import User
from learnsphere.core.config import settings
from learnsphere.core.datetime_utils import ensure_utc, utcnow
from learnsphere.core.exceptions import CourseLockedError, NotFoundError
from learnsphere.courses.models import Course

logger = structlog.get_logger(__name__)


class CourseLockService:
    @staticmethod
    def lease_duration() -> timedelta:
        return timedelta(seconds=settings.COURSE_LOCK_SECONDS)

    @staticmethod
    def _holder_label(course: Course, db: Session) -> str:
        holder = db.query(User).filter(User.id == course.editing_user_id).first()
        if holder is None:
            return "Another editor"
        return str(holder.display_name)

    @staticmethod
    def _raise_locked(course: Course, db: Session) -> None:
        expires_at = course.editing_expires_at
        raise CourseLockedError(
            locked_by=CourseLockService._holder_label(course, db),
            expires_at=ensure_utc(expires_at).isoformat() if expires_at else None,
        )

    @staticmethod
    def acquire(
        course_id: UUID, user: User, db: Session, now: datetime | None = None
    ) -> datetime:
        """Acquire or refresh the edit lease on a course.

        Returns the new expiry. Raises NotFoundError for an unknown course and
        CourseLockedError while another user's lease is still running.
        """
        now = now or utcnow()
        course = (
            db.query(Course).filter(Course.id == course_id).with_for_update().first()
        )
        if not course:
            raise NotFoundError("Course not found", resource="course")

        if course.is_locked_for(user.id, now):
            logger.info(
                "course_lock_denied",
                course_id=str(course_id),
                user_id=str(user.id),
                holder_id=str(course.editing_user_id),
            )
            CourseLockService._raise_locked(course, db)

        refreshed = course.editing_user_id == user.id
        expires_at = now + CourseLockService.lease_duration()
        course.editing_user_id = user.id
        course.editing_expires_at = expires_at
        db.commit()

        logger.info(
            "course_lock_refreshed" if refreshed else "course_lock_acquired",
            course_id=str(course_id),
            user_id=str(user.id),
            expires_at=expires_at.isoformat(),
        )
        return expires_at

    @staticmethod
    def release(course_id: UUID, user: User, db: Session) -> None:
        """Drop the lease if ``user`` holds it; anything else is a no-op."""
        course = (
            db.query(Course).filter(Course.id == course_id).with_for_update().first()
        )
        if not course or course.editing_user_id != user.id:
            return

        course.editing_user_id = None
        course.editing_expires_at = None
        db.commit()
        logger.info("course_lock_released", course_id=str(course_id), user_id=str(user.id))

    @staticmethod
    def ensure_editable(
        course_id: UUID, user: User, db: Session, now: datetime | None = None
    ) -> Course:
        """Write-path guard.

        Does not take the lock; it only refuses the write when someone else
        holds an active lease.
        """
        now = now or utcnow()
        course = db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise NotFoundError("Course not found", resource="course")

        if course.is_locked_for(user.id, now):
            logger.info(
                "course_write_blocked",
                course_id=str(course_id),
                user_id=str(user.id),
                holder_id=str(course.editing_user_id),
            )
            CourseLockService._raise_locked(course, db)

        return cast(Course, course)

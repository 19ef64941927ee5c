from datetime import UTC, datetime
from typing import cast
from uuid import UUID

import structlog
from sqlalchemy.orm import Session

from learnsphere.core.exceptions import NotFoundError
from learnsphere.courses.models import Enrollment, EnrollmentStatus, Lesson, LessonProgress

logger = structlog.get_logger(__name__)


class ProgressService:
    @staticmethod
    def record_progress(
        user_id: UUID,
        lesson_id: UUID,
        db: Session,
        is_completed: bool | None = None,
        time_spent: int | None = None,
        commit: bool = True,
    ) -> tuple[LessonProgress, float]:
        """Record a learner's interaction with a lesson.

        Upserts the lesson progress row, then recomputes the course-wide
        percentage and writes it into the enrollment. ``time_spent`` is a
        delta in minutes and always accumulates. Pass ``commit=False`` to run
        inside a larger transaction.

        Returns:
            The lesson progress row and the course progress percentage.
        """
        lesson = db.query(Lesson).filter(Lesson.id == lesson_id).first()
        if not lesson:
            raise NotFoundError("Lesson not found", resource="lesson")

        now = datetime.now(UTC)

        progress = (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id, LessonProgress.lesson_id == lesson_id)
            .first()
        )
        if not progress:
            progress = LessonProgress(
                user_id=user_id, lesson_id=lesson_id, is_completed=False, time_spent=0
            )
            db.add(progress)

        if is_completed is True:
            if not progress.is_completed:
                progress.is_completed = True
                progress.completed_at = now
        elif is_completed is False:
            progress.is_completed = False
            progress.completed_at = None

        if time_spent:
            progress.time_spent = (progress.time_spent or 0) + time_spent

        progress.last_updated_at = now
        db.flush()

        course_progress = ProgressService.recalculate_enrollment(
            user_id, lesson.course_id, db, time_spent=time_spent, now=now
        )

        if commit:
            db.commit()
            db.refresh(progress)

        logger.info(
            "lesson_progress_recorded",
            user_id=str(user_id),
            lesson_id=str(lesson_id),
            is_completed=progress.is_completed,
            course_progress=course_progress,
        )
        return cast(LessonProgress, progress), course_progress

    @staticmethod
    def calculate_course_progress(user_id: UUID, course_id: UUID, db: Session) -> float:
        """Percentage of the course's current lessons the user has completed."""
        total_lessons = db.query(Lesson).filter(Lesson.course_id == course_id).count()
        if total_lessons == 0:
            return 0.0

        completed_lessons = (
            db.query(LessonProgress)
            .join(Lesson, LessonProgress.lesson_id == Lesson.id)
            .filter(
                LessonProgress.user_id == user_id,
                LessonProgress.is_completed == True,  # noqa: E712
                Lesson.course_id == course_id,
            )
            .count()
        )
        return completed_lessons / total_lessons * 100

    @staticmethod
    def recalculate_enrollment(
        user_id: UUID,
        course_id: UUID,
        db: Session,
        time_spent: int | None = None,
        now: datetime | None = None,
    ) -> float:
        """Write the derived progress/status into the user's enrollment, if any."""
        now = now or datetime.now(UTC)
        course_progress = ProgressService.calculate_course_progress(user_id, course_id, db)

        enrollment = (
            db.query(Enrollment)
            .filter(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
            .first()
        )
        if not enrollment:
            logger.info(
                "progress_without_enrollment", user_id=str(user_id), course_id=str(course_id)
            )
            return course_progress

        enrollment.progress = course_progress
        if course_progress >= 100:
            if enrollment.status != EnrollmentStatus.COMPLETED:
                logger.info(
                    "course_completed", user_id=str(user_id), course_id=str(course_id)
                )
            enrollment.status = EnrollmentStatus.COMPLETED
            if enrollment.completed_at is None:
                enrollment.completed_at = now
        else:
            enrollment.status = EnrollmentStatus.ACTIVE
            enrollment.completed_at = None

        if time_spent:
            enrollment.time_spent = (enrollment.time_spent or 0) + time_spent

        db.flush()
        return course_progress

    @staticmethod
    def get_lesson_progress(user_id: UUID, lesson_id: UUID, db: Session) -> LessonProgress | None:
        result = (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id, LessonProgress.lesson_id == lesson_id)
            .first()
        )
        return cast(LessonProgress | None, result)

    @staticmethod
    def get_course_progress(user_id: UUID, course_id: UUID, db: Session) -> list[LessonProgress]:
        result = (
            db.query(LessonProgress)
            .join(Lesson, LessonProgress.lesson_id == Lesson.id)
            .filter(LessonProgress.user_id == user_id, Lesson.course_id == course_id)
            .order_by(Lesson.order_index)
            .all()
        )
        return cast(list[LessonProgress], result)

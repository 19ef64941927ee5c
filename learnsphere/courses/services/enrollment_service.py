from collections import defaultdict
from datetime import UTC, datetime
from typing import Any, cast
from uuid import UUID

import structlog
from sqlalchemy.orm import Session, selectinload

from learnsphere.core.exceptions import NotFoundError
from learnsphere.courses.models import (
    AccessRule,
    Course,
    Enrollment,
    EnrollmentStatus,
    Lesson,
    LessonProgress,
)
from learnsphere.courses.services.progress_service import ProgressService
from learnsphere.payments.models.payment import Payment, PaymentStatus

logger = structlog.get_logger(__name__)


class EnrollmentService:
    @staticmethod
    def get_user_enrollment(user_id: UUID, course_id: UUID, db: Session) -> Enrollment | None:
        result = (
            db.query(Enrollment)
            .filter(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
            .first()
        )
        return cast(Enrollment | None, result)

    @staticmethod
    def enroll(user_id: UUID, course_id: UUID, db: Session) -> tuple[Enrollment, bool]:
        """Enroll a user; returns the existing enrollment if there is one.

        Progress the user already recorded in the course is folded into the
        new enrollment straight away.

        Returns:
            (enrollment, created)
        """
        course = db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise NotFoundError("Course not found", resource="course")

        existing = EnrollmentService.get_user_enrollment(user_id, course_id, db)
        if existing:
            return existing, False

        enrollment = Enrollment(
            user_id=user_id,
            course_id=course_id,
            status=EnrollmentStatus.ACTIVE,
            started_at=datetime.now(UTC),
            progress=0.0,
        )
        db.add(enrollment)
        db.flush()
        ProgressService.recalculate_enrollment(user_id, course_id, db)
        db.commit()
        db.refresh(enrollment)

        logger.info("enrollment_created", user_id=str(user_id), course_id=str(course_id))
        return enrollment, True

    @staticmethod
    def list_enrollments(
        db: Session, user_id: UUID | None = None, course_id: UUID | None = None
    ) -> list[Enrollment]:
        query = db.query(Enrollment)
        if user_id is not None:
            query = query.filter(Enrollment.user_id == user_id)
        if course_id is not None:
            query = query.filter(Enrollment.course_id == course_id)
        return cast(list[Enrollment], query.order_by(Enrollment.enrolled_at.desc()).all())

    @staticmethod
    def check_access(course_id: UUID, user_id: UUID, db: Session) -> dict[str, Any]:
        """Decide whether a user may open a course, and why."""
        course = db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise NotFoundError("Course not found", resource="course")

        if course.access_rule == AccessRule.OPEN:
            return {"has_access": True, "reason": "OPEN_COURSE"}

        if EnrollmentService.get_user_enrollment(user_id, course_id, db):
            return {"has_access": True, "reason": "ENROLLED"}

        if course.access_rule == AccessRule.PAYMENT:
            paid = (
                db.query(Payment)
                .filter(
                    Payment.user_id == user_id,
                    Payment.course_id == course_id,
                    Payment.status == PaymentStatus.COMPLETED,
                )
                .first()
            )
            if paid:
                return {"has_access": True, "reason": "PAID"}
            return {"has_access": False, "reason": "PAYMENT_REQUIRED", "price": course.price}

        return {"has_access": False, "reason": "INVITATION_REQUIRED"}

    @staticmethod
    def list_attendees(
        course_id: UUID, db: Session
    ) -> list[tuple[Enrollment, list[LessonProgress]]]:
        """Enrollments of a course, newest first, each with its lesson progress."""
        enrollments = (
            db.query(Enrollment)
            .options(selectinload(Enrollment.user))
            .filter(Enrollment.course_id == course_id)
            .order_by(Enrollment.enrolled_at.desc())
            .all()
        )
        if not enrollments:
            return []

        records = (
            db.query(LessonProgress)
            .join(Lesson, LessonProgress.lesson_id == Lesson.id)
            .options(selectinload(LessonProgress.lesson))
            .filter(
                Lesson.course_id == course_id,
                LessonProgress.user_id.in_([e.user_id for e in enrollments]),
            )
            .order_by(Lesson.order_index)
            .all()
        )
        by_user: dict[UUID, list[LessonProgress]] = defaultdict(list)
        for record in records:
            by_user[record.user_id].append(record)

        return [(e, by_user.get(e.user_id, [])) for e in enrollments]

from decimal import ROUND_HALF_UP, Decimal
from typing import cast
from uuid import UUID

import structlog
from sqlalchemy.orm import Session, selectinload

from learnsphere.auth.models.user import User
from learnsphere.core.exceptions import ForbiddenError, NotFoundError
from learnsphere.courses.models import Course, EnrollmentStatus, Review
from learnsphere.courses.services.enrollment_service import EnrollmentService

logger = structlog.get_logger(__name__)


def average_rating(ratings: list[int]) -> float:
    """Mean rating to one decimal place, halves rounded up; 0 with no ratings."""
    if not ratings:
        return 0.0
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class ReviewService:
    @staticmethod
    def list_reviews(course_id: UUID, db: Session) -> tuple[list[Review], float]:
        """Reviews of a course, newest first, with their average rating."""
        if not db.query(Course).filter(Course.id == course_id).first():
            raise NotFoundError("Course not found", resource="course")

        reviews = (
            db.query(Review)
            .options(selectinload(Review.user))
            .filter(Review.course_id == course_id)
            .order_by(Review.created_at.desc())
            .all()
        )
        return cast(list[Review], reviews), average_rating([r.rating for r in reviews])

    @staticmethod
    def upsert_review(
        course_id: UUID, user: User, rating: int, comment: str | None, db: Session
    ) -> tuple[Review, bool]:
        """Create the user's review of a course, or overwrite the one they left.

        Only learners who completed the course may review it.

        Returns:
            (review, created)
        """
        if not db.query(Course).filter(Course.id == course_id).first():
            raise NotFoundError("Course not found", resource="course")

        enrollment = EnrollmentService.get_user_enrollment(user.id, course_id, db)
        if not enrollment or enrollment.status != EnrollmentStatus.COMPLETED:
            raise ForbiddenError("You must complete the course before leaving a review")

        review = (
            db.query(Review)
            .filter(Review.user_id == user.id, Review.course_id == course_id)
            .first()
        )
        created = review is None
        if review is None:
            review = Review(user_id=user.id, course_id=course_id, rating=rating, comment=comment)
            db.add(review)
        else:
            review.rating = rating
            review.comment = comment

        db.commit()
        db.refresh(review)

        logger.info(
            "review_created" if created else "review_updated",
            course_id=str(course_id),
            user_id=str(user.id),
            rating=rating,
        )
        return cast(Review, review), created

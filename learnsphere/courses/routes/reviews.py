from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from learnsphere.auth.dependencies import get_current_user
from learnsphere.auth.models.user import User
from learnsphere.courses.models import Review
from learnsphere.courses.schemas.review import (
    ReviewAuthor,
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
)
from learnsphere.courses.services.review_service import ReviewService
from learnsphere.db.session import get_db

router = APIRouter()


def review_response(review: Review) -> ReviewResponse:
    return ReviewResponse(
        id=str(review.id),
        course_id=str(review.course_id),
        rating=review.rating,
        comment=review.comment,
        user=ReviewAuthor(
            id=str(review.user.id),
            name=review.user.name,
            avatar_url=review.user.avatar_url,
        ),
        created_at=review.created_at,
        updated_at=review.updated_at,
    )


@router.get("/courses/{course_id}/reviews", response_model=ReviewListResponse)
async def list_reviews(
    course_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReviewListResponse:
    reviews, average = ReviewService.list_reviews(course_id, db)
    return ReviewListResponse(
        reviews=[review_response(r) for r in reviews],
        average_rating=average,
    )


@router.post("/courses/{course_id}/reviews", response_model=ReviewResponse)
async def submit_review(
    course_id: UUID,
    request: ReviewCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReviewResponse:
    """Review a completed course; a second submission replaces the first."""
    review, created = ReviewService.upsert_review(
        course_id, current_user, request.rating, request.comment, db
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return review_response(review)

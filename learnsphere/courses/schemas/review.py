from pydantic import BaseModel, Field

from learnsphere.core.datetime_utils import UTCDatetime


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(None, max_length=2000)


class ReviewAuthor(BaseModel):
    id: str
    name: str | None = None
    avatar_url: str | None = None


class ReviewResponse(BaseModel):
    id: str
    course_id: str
    rating: int
    comment: str | None = None
    user: ReviewAuthor
    created_at: UTCDatetime
    updated_at: UTCDatetime


class ReviewListResponse(BaseModel):
    reviews: list[ReviewResponse]
    average_rating: float

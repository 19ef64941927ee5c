from pydantic import BaseModel, Field

from learnsphere.core.datetime_utils import UTCDatetime
from learnsphere.courses.models import AccessRule, LessonType, Visibility


class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    image_url: str | None = None
    website_url: str | None = None
    is_published: bool = False
    visibility: Visibility = Visibility.EVERYONE
    price: int | None = Field(None, ge=0)
    access_rule: AccessRule | None = None
    tags: list[str] = []


class CourseUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    image_url: str | None = None
    website_url: str | None = None
    is_published: bool | None = None
    visibility: Visibility | None = None
    price: int | None = Field(None, ge=0)
    access_rule: AccessRule | None = None
    tags: list[str] | None = None


class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    type: LessonType = LessonType.VIDEO
    video_url: str | None = None
    document_url: str | None = None
    image_url: str | None = None
    duration: int | None = Field(None, ge=0)
    allow_download: bool = False
    order_index: int | None = Field(None, ge=0)


class LessonUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    type: LessonType | None = None
    video_url: str | None = None
    document_url: str | None = None
    image_url: str | None = None
    duration: int | None = Field(None, ge=0)
    allow_download: bool | None = None
    order_index: int | None = Field(None, ge=0)


class LessonResponse(BaseModel):
    id: str
    course_id: str
    title: str
    description: str | None = None
    type: str
    video_url: str | None = None
    document_url: str | None = None
    image_url: str | None = None
    duration: int | None = None
    allow_download: bool
    order_index: int
    quiz_id: str | None = None
    created_at: UTCDatetime


class CourseResponse(BaseModel):
    id: str
    instructor_id: str
    title: str
    description: str | None = None
    image_url: str | None = None
    website_url: str | None = None
    is_published: bool
    visibility: str
    price: int
    access_rule: str
    views_count: int
    total_duration: int
    tags: list[str] = []
    editing_user_id: str | None = None
    editing_expires_at: UTCDatetime | None = None
    created_at: UTCDatetime
    updated_at: UTCDatetime


class CourseDetailResponse(CourseResponse):
    lessons: list[LessonResponse] = []


class LockResponse(BaseModel):
    success: bool = True
    expires_at: UTCDatetime | None = None

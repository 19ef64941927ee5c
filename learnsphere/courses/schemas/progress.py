from pydantic import BaseModel, Field

from learnsphere.core.datetime_utils import UTCDatetime


class ProgressUpdateRequest(BaseModel):
    user_id: str
    lesson_id: str
    is_completed: bool | None = None
    # Minutes, added to the running total
    time_spent: int | None = Field(None, ge=0)


class LessonProgressResponse(BaseModel):
    id: str
    user_id: str
    lesson_id: str
    is_completed: bool
    completed_at: UTCDatetime | None = None
    time_spent: int
    last_updated_at: UTCDatetime | None = None


class ProgressUpdateResponse(BaseModel):
    progress: LessonProgressResponse
    course_progress: float


class CourseProgressResponse(BaseModel):
    course_id: str
    course_progress: float
    lessons: list[LessonProgressResponse] = []

from pydantic import BaseModel

from learnsphere.core.datetime_utils import UTCDatetime


class EnrollmentCreate(BaseModel):
    course_id: str
    # Admins may enroll someone else
    user_id: str | None = None


class EnrollmentResponse(BaseModel):
    id: str
    user_id: str
    course_id: str
    status: str
    progress: float
    enrolled_at: UTCDatetime
    started_at: UTCDatetime | None = None
    completed_at: UTCDatetime | None = None
    time_spent: int


class AccessCheckResponse(BaseModel):
    has_access: bool
    reason: str
    price: int | None = None


class AttendeeLessonProgress(BaseModel):
    lesson_id: str
    lesson_title: str
    is_completed: bool
    time_spent: int


class AttendeeResponse(BaseModel):
    """One enrolled learner as seen by the course's instructor."""

    user_id: str
    name: str | None = None
    email: str
    avatar_url: str | None = None
    badge_level: str
    total_points: int
    enrollment: EnrollmentResponse
    lessons: list[AttendeeLessonProgress]

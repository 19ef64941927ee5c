from pydantic import BaseModel

from learnsphere.core.datetime_utils import UTCDatetime


class UserResponse(BaseModel):
    id: str
    email: str
    name: str | None = None
    avatar_url: str | None = None
    role: str
    total_points: int
    badge_level: str
    created_at: UTCDatetime


class UserSummary(BaseModel):
    id: str
    name: str | None = None
    email: str

from pydantic import BaseModel

from learnsphere.core.datetime_utils import UTCDatetime


class NextBadgeResponse(BaseModel):
    current: str
    next: str
    progress: float


class LedgerEntryResponse(BaseModel):
    id: str
    points: int
    reason: str
    created_at: UTCDatetime


class GamificationSummaryResponse(BaseModel):
    user_id: str
    total_points: int
    max_points: int
    badge_level: str
    next_badge: NextBadgeResponse
    history: list[LedgerEntryResponse] = []

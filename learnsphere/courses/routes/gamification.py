from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from learnsphere.auth.dependencies import get_current_user
from learnsphere.auth.models.user import User
from learnsphere.courses.schemas.gamification import GamificationSummaryResponse
from learnsphere.courses.services.gamification_service import GamificationService
from learnsphere.db.session import get_db

router = APIRouter()


@router.get("/gamification/me", response_model=GamificationSummaryResponse)
async def get_my_gamification(
    history_limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GamificationSummaryResponse:
    """Points, badge, progress toward the next badge and recent ledger entries."""
    summary = GamificationService.get_summary(current_user, db, history_limit=history_limit)
    return GamificationSummaryResponse(**summary)

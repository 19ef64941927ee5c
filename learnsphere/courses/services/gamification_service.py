from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.orm import Session

from learnsphere.auth.models.user import BadgeLevel, User
from learnsphere.core.constants import BADGE_THRESHOLDS, MAX_TOTAL_POINTS
from learnsphere.courses.models import PointsLedger

logger = structlog.get_logger(__name__)


class GamificationService:
    @staticmethod
    def calculate_badge(total_points: int) -> BadgeLevel:
        """Highest badge whose threshold ``total_points`` has reached."""
        badge = BADGE_THRESHOLDS[0][1]
        for threshold, name in BADGE_THRESHOLDS:
            if total_points >= threshold:
                badge = name
            else:
                break
        return BadgeLevel(badge)

    @staticmethod
    def next_badge_progress(total_points: int) -> dict[str, Any]:
        """Current badge, next badge and percentage of the way between them."""
        for (threshold, name), (next_threshold, next_name) in zip(
            BADGE_THRESHOLDS, BADGE_THRESHOLDS[1:], strict=False
        ):
            if total_points < next_threshold:
                span = next_threshold - threshold
                return {
                    "current": name,
                    "next": next_name,
                    "progress": round((total_points - threshold) / span * 100, 1),
                }

        top = BADGE_THRESHOLDS[-1][1]
        return {"current": top, "next": top, "progress": 100.0}

    @staticmethod
    def apply_points(user: User, points: int, reason: str, db: Session) -> int:
        """Add points to a user's running total under the global cap.

        Re-derives the badge and appends a ledger row with the delta that was
        actually applied. Does not commit; the caller owns the transaction.

        Returns:
            The applied delta (``points`` minus whatever the cap discarded).
        """
        current_total = user.total_points or 0
        new_total = min(current_total + points, MAX_TOTAL_POINTS)
        applied = new_total - current_total

        user.total_points = new_total

        new_badge = GamificationService.calculate_badge(new_total)
        if new_badge != user.badge_level:
            logger.info(
                "badge_level_changed",
                user_id=str(user.id),
                old=str(user.badge_level.value if user.badge_level else None),
                new=new_badge.value,
            )
            user.badge_level = new_badge

        db.add(PointsLedger(user_id=user.id, points=applied, reason=reason))

        if applied < points:
            logger.info(
                "points_capped",
                user_id=str(user.id),
                requested=points,
                applied=applied,
                cap=MAX_TOTAL_POINTS,
            )

        return applied

    @staticmethod
    def get_summary(user: User, db: Session, history_limit: int = 10) -> dict[str, Any]:
        history = (
            db.query(PointsLedger)
            .filter(PointsLedger.user_id == user.id)
            .order_by(PointsLedger.created_at.desc())
            .limit(history_limit)
            .all()
        )

        return {
            "user_id": str(user.id),
            "total_points": user.total_points,
            "max_points": MAX_TOTAL_POINTS,
            "badge_level": user.badge_level.value,
            "next_badge": GamificationService.next_badge_progress(user.total_points),
            "history": [
                {
                    "id": str(entry.id),
                    "points": entry.points,
                    "reason": entry.reason,
                    "created_at": entry.created_at,
                }
                for entry in history
            ],
        }

    @staticmethod
    def ledger_total(user_id: UUID, db: Session) -> int:
        """Sum of ledger deltas; reconciles with User.total_points."""
        entries = db.query(PointsLedger.points).filter(PointsLedger.user_id == user_id).all()
        return sum(row[0] for row in entries)

import uuid
from datetime import UTC, datetime

from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learnsphere.db.session import Base


class PointsLedger(Base):
    """Append-only record of every point grant."""

    __tablename__ = "points_ledger"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    points: Mapped[int] = mapped_column()
    reason: Mapped[str] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC), index=True)

    user = relationship("User", backref="points_ledger")

    def __repr__(self) -> str:
        return f"<PointsLedger(id={self.id}, user_id={self.user_id}, points={self.points}, reason={self.reason})>"  # noqa: E501

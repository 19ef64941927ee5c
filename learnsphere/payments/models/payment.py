import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learnsphere.db.session import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class Payment(Base):
    """One row per Stripe Checkout session; PENDING -> COMPLETED only."""

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), index=True
    )
    stripe_session_id: Mapped[str] = mapped_column(unique=True, index=True)
    stripe_payment_id: Mapped[str | None] = mapped_column(default=None)
    # Minor currency units
    amount: Mapped[int] = mapped_column()
    currency: Mapped[str] = mapped_column(default="inr")
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, values_callable=lambda obj: [e.value for e in obj]),
        default=PaymentStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )

    user = relationship("User")
    course = relationship("Course")

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, session={self.stripe_session_id}, status={self.status})>"

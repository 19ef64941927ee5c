import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from learnsphere.db.session import Base


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    INSTRUCTOR = "INSTRUCTOR"
    LEARNER = "LEARNER"


class BadgeLevel(str, enum.Enum):
    NEWBIE = "NEWBIE"
    EXPLORER = "EXPLORER"
    ACHIEVER = "ACHIEVER"
    SPECIALIST = "SPECIALIST"
    EXPERT = "EXPERT"
    MASTER = "MASTER"


class User(Base):
    """
    Profile row for an identity issued by the hosted auth provider.

    Attributes:
        id: Same UUID as the provider's subject claim
        email: Unique email address
        name: Display name, shown to other editors when they hit a course lock
        role: ADMIN, INSTRUCTOR or LEARNER
        total_points: Running quiz points, capped at 120
        badge_level: Tier derived from total_points
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), default=None)
    avatar_url: Mapped[str | None] = mapped_column(default=None)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=lambda obj: [e.value for e in obj]),
        default=UserRole.LEARNER,
    )
    total_points: Mapped[int] = mapped_column(default=0)
    badge_level: Mapped[BadgeLevel] = mapped_column(
        Enum(BadgeLevel, values_callable=lambda obj: [e.value for e in obj]),
        default=BadgeLevel.NEWBIE,
    )
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )

    @property
    def display_name(self) -> str:
        return self.name or self.email

    @property
    def is_privileged(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.INSTRUCTOR)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

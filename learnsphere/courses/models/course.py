import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Enum, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learnsphere.core.datetime_utils import ensure_utc
from learnsphere.db.session import Base


class AccessRule(str, enum.Enum):
    OPEN = "OPEN"
    PAYMENT = "PAYMENT"
    INVITATION = "INVITATION"


class Visibility(str, enum.Enum):
    EVERYONE = "EVERYONE"
    SIGNED_IN = "SIGNED_IN"


class LessonType(str, enum.Enum):
    VIDEO = "VIDEO"
    DOCUMENT = "DOCUMENT"
    IMAGE = "IMAGE"
    QUIZ = "QUIZ"


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, index=True)
    instructor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column()
    description: Mapped[str | None] = mapped_column(Text, default=None)
    image_url: Mapped[str | None] = mapped_column(default=None)
    website_url: Mapped[str | None] = mapped_column(default=None)
    is_published: Mapped[bool] = mapped_column(default=False)
    visibility: Mapped[Visibility] = mapped_column(
        Enum(Visibility, values_callable=lambda obj: [e.value for e in obj]),
        default=Visibility.EVERYONE,
    )
    # Minor currency units; 0 means free
    price: Mapped[int] = mapped_column(default=0)
    access_rule: Mapped[AccessRule] = mapped_column(
        Enum(AccessRule, values_callable=lambda obj: [e.value for e in obj]),
        default=AccessRule.OPEN,
    )
    views_count: Mapped[int] = mapped_column(default=0)
    total_duration: Mapped[int] = mapped_column(default=0)

    # Edit lease; weak reference, cleared when the holder is deleted
    editing_user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    editing_expires_at: Mapped[datetime | None] = mapped_column(default=None)

    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )

    instructor = relationship("User", foreign_keys=[instructor_id])
    editing_user = relationship("User", foreign_keys=[editing_user_id])
    tags = relationship("CourseTag", back_populates="course", cascade="all, delete-orphan")
    lessons = relationship(
        "Lesson",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="Lesson.order_index",
    )
    enrollments = relationship("Enrollment", back_populates="course", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="course", cascade="all, delete-orphan")

    def is_locked_for(self, user_id: uuid.UUID, now: datetime) -> bool:
        """True when someone other than ``user_id`` holds an unexpired lease."""
        if self.editing_user_id is None or self.editing_expires_at is None:
            return False
        if self.editing_user_id == user_id:
            return False
        return ensure_utc(self.editing_expires_at) > now

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, title={self.title}, access_rule={self.access_rule})>"


class CourseTag(Base):
    __tablename__ = "course_tags"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    course_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column()

    course = relationship("Course", back_populates="tags")


class Lesson(Base):
    __tablename__ = "lessons"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, index=True)
    course_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column()
    description: Mapped[str | None] = mapped_column(Text, default=None)
    type: Mapped[LessonType] = mapped_column(
        Enum(LessonType, values_callable=lambda obj: [e.value for e in obj]),
        default=LessonType.VIDEO,
    )
    video_url: Mapped[str | None] = mapped_column(default=None)
    document_url: Mapped[str | None] = mapped_column(default=None)
    image_url: Mapped[str | None] = mapped_column(default=None)
    # Minutes
    duration: Mapped[int | None] = mapped_column(default=None)
    allow_download: Mapped[bool] = mapped_column(default=False)
    order_index: Mapped[int] = mapped_column(default=0)
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )

    course = relationship("Course", back_populates="lessons")
    quiz = relationship(
        "Quiz", back_populates="lesson", uselist=False, cascade="all, delete-orphan"
    )
    progress_records = relationship(
        "LessonProgress", back_populates="lesson", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Lesson(id={self.id}, title={self.title}, type={self.type})>"

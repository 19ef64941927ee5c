import uuid
from datetime import UTC, datetime

from sqlalchemy import ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learnsphere.core.constants import (
    DEFAULT_FIRST_ATTEMPT_POINTS,
    DEFAULT_FOURTH_PLUS_POINTS,
    DEFAULT_SECOND_ATTEMPT_POINTS,
    DEFAULT_THIRD_ATTEMPT_POINTS,
)
from learnsphere.db.session import Base


class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, index=True)
    lesson_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("lessons.id", ondelete="CASCADE"), unique=True
    )
    first_attempt_points: Mapped[int] = mapped_column(default=DEFAULT_FIRST_ATTEMPT_POINTS)
    second_attempt_points: Mapped[int] = mapped_column(default=DEFAULT_SECOND_ATTEMPT_POINTS)
    third_attempt_points: Mapped[int] = mapped_column(default=DEFAULT_THIRD_ATTEMPT_POINTS)
    fourth_plus_points: Mapped[int] = mapped_column(default=DEFAULT_FOURTH_PLUS_POINTS)
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )

    lesson = relationship("Lesson", back_populates="quiz")
    questions = relationship(
        "Question",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="Question.order_index",
    )
    attempts = relationship("QuizAttempt", back_populates="quiz", cascade="all, delete-orphan")

    def points_for_attempt(self, attempt_number: int) -> int:
        if attempt_number == 1:
            return self.first_attempt_points
        if attempt_number == 2:
            return self.second_attempt_points
        if attempt_number == 3:
            return self.third_attempt_points
        return self.fourth_plus_points

    def __repr__(self) -> str:
        return f"<Quiz(id={self.id}, lesson_id={self.lesson_id})>"


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, index=True)
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"), index=True
    )
    text: Mapped[str] = mapped_column(Text)
    order_index: Mapped[int] = mapped_column(default=0)

    quiz = relationship("Quiz", back_populates="questions")
    options = relationship(
        "QuestionOption", back_populates="question", cascade="all, delete-orphan"
    )


class QuestionOption(Base):
    __tablename__ = "question_options"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, index=True)
    question_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), index=True
    )
    text: Mapped[str] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(default=False)

    question = relationship("Question", back_populates="options")


class QuizAttempt(Base):
    """One row per submission; attempt numbers are never reused."""

    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("user_id", "quiz_id", "attempt_number", name="uq_user_quiz_attempt"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"), index=True
    )
    attempt_number: Mapped[int] = mapped_column()
    score: Mapped[int] = mapped_column()
    points_earned: Mapped[int] = mapped_column()
    completed_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))

    quiz = relationship("Quiz", back_populates="attempts")

    def __repr__(self) -> str:
        return f"<QuizAttempt(id={self.id}, quiz_id={self.quiz_id}, attempt={self.attempt_number}, score={self.score})>"  # noqa: E501

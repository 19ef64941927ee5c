from decimal import ROUND_HALF_UP, Decimal
from typing import Any, cast
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from learnsphere.auth.models.user import User
from learnsphere.core.exceptions import ConflictError, NotFoundError, ValidationError
from learnsphere.courses.models import (
    Lesson,
    LessonType,
    Question,
    QuestionOption,
    Quiz,
    QuizAttempt,
)
from learnsphere.courses.services.gamification_service import GamificationService
from learnsphere.courses.services.progress_service import ProgressService

logger = structlog.get_logger(__name__)


def round_half_up(value: float) -> int:
    """Round .5 away from zero, unlike Python's banker's rounding."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class QuizService:
    @staticmethod
    def get_quiz(quiz_id: UUID, db: Session) -> Quiz:
        quiz = (
            db.query(Quiz)
            .options(selectinload(Quiz.questions).selectinload(Question.options))
            .filter(Quiz.id == quiz_id)
            .first()
        )
        if not quiz:
            raise NotFoundError("Quiz not found", resource="quiz")
        return cast(Quiz, quiz)

    @staticmethod
    def ensure_quiz_for_lesson(lesson: Lesson, db: Session) -> Quiz:
        """Create the backing quiz with default tiers when a QUIZ lesson lacks one."""
        quiz = db.query(Quiz).filter(Quiz.lesson_id == lesson.id).first()
        if quiz:
            return cast(Quiz, quiz)

        quiz = Quiz(lesson_id=lesson.id)
        db.add(quiz)
        db.flush()
        logger.info("quiz_repaired", lesson_id=str(lesson.id), quiz_id=str(quiz.id))
        return quiz

    @staticmethod
    def get_or_repair_quiz_for_lesson(lesson_id: UUID, db: Session) -> Quiz:
        lesson = db.query(Lesson).filter(Lesson.id == lesson_id).first()
        if not lesson:
            raise NotFoundError("Lesson not found", resource="lesson")

        quiz = db.query(Quiz).filter(Quiz.lesson_id == lesson_id).first()
        if not quiz:
            if lesson.type != LessonType.QUIZ:
                raise NotFoundError("Quiz not found", resource="quiz")
            quiz = QuizService.ensure_quiz_for_lesson(lesson, db)
            db.commit()

        return QuizService.get_quiz(quiz.id, db)

    @staticmethod
    def list_course_quizzes(course_id: UUID, db: Session) -> list[Quiz]:
        """All quizzes in a course, repairing QUIZ lessons that have none."""
        quiz_lessons = (
            db.query(Lesson)
            .filter(Lesson.course_id == course_id, Lesson.type == LessonType.QUIZ)
            .all()
        )
        missing = [lesson for lesson in quiz_lessons if lesson.quiz is None]
        for lesson in missing:
            QuizService.ensure_quiz_for_lesson(lesson, db)
        if missing:
            db.commit()

        result = (
            db.query(Quiz)
            .join(Lesson, Quiz.lesson_id == Lesson.id)
            .options(selectinload(Quiz.questions))
            .filter(Lesson.course_id == course_id)
            .order_by(Lesson.order_index)
            .all()
        )
        return cast(list[Quiz], result)

    @staticmethod
    def create_quiz(course_id: UUID, title: str | None, order_index: int, db: Session) -> Quiz:
        lesson = Lesson(
            course_id=course_id,
            title=title or "New Assessment",
            type=LessonType.QUIZ,
            order_index=order_index,
        )
        db.add(lesson)
        db.flush()

        quiz = Quiz(lesson_id=lesson.id)
        db.add(quiz)
        db.commit()
        db.refresh(quiz)
        return quiz

    @staticmethod
    def update_quiz(
        quiz: Quiz,
        db: Session,
        tiers: dict[str, int] | None = None,
        questions: list[dict[str, Any]] | None = None,
    ) -> Quiz:
        """Update reward tiers and/or replace the question set wholesale."""
        if tiers:
            for field, value in tiers.items():
                if value is not None:
                    setattr(quiz, field, value)

            ordered = [
                quiz.first_attempt_points,
                quiz.second_attempt_points,
                quiz.third_attempt_points,
                quiz.fourth_plus_points,
            ]
            if ordered != sorted(ordered, reverse=True):
                logger.warning("quiz_tiers_not_decreasing", quiz_id=str(quiz.id), tiers=ordered)

        if questions is not None:
            quiz.questions.clear()
            db.flush()

            for idx, q in enumerate(questions):
                quiz.questions.append(
                    Question(
                        text=q["text"],
                        order_index=idx,
                        options=[
                            QuestionOption(text=o["text"], is_correct=bool(o.get("is_correct")))
                            for o in q.get("options", [])
                        ],
                    )
                )

        db.commit()
        db.expire(quiz)
        return QuizService.get_quiz(quiz.id, db)

    @staticmethod
    def delete_quiz(quiz: Quiz, db: Session) -> None:
        db.delete(quiz)
        db.commit()

    @staticmethod
    def grade(quiz: Quiz, answers: dict[str, str]) -> tuple[int, int]:
        """Count correct answers; returns (correct_count, total_questions)."""
        correct_count = 0
        for question in quiz.questions:
            chosen = answers.get(str(question.id))
            correct = next((o for o in question.options if o.is_correct), None)
            if correct is not None and chosen is not None and str(chosen) == str(correct.id):
                correct_count += 1
        return correct_count, len(quiz.questions)

    @staticmethod
    def submit_attempt(
        quiz_id: UUID, user: User, answers: dict[str, str], db: Session
    ) -> dict[str, Any]:
        """Grade a submission and apply its rewards in one transaction.

        Writes the attempt row, the capped point update, the ledger entry and
        the lesson completion together; any failure rolls all of them back.
        """
        quiz = QuizService.get_quiz(quiz_id, db)

        correct_count, total_questions = QuizService.grade(quiz, answers)
        if total_questions == 0:
            raise ValidationError("Quiz has no questions", field="questions")

        score = round_half_up(correct_count / total_questions * 100)

        prior_attempts = (
            db.query(QuizAttempt)
            .filter(QuizAttempt.user_id == user.id, QuizAttempt.quiz_id == quiz.id)
            .count()
        )
        attempt_number = prior_attempts + 1
        base_points = quiz.points_for_attempt(attempt_number)
        points_earned = round_half_up(base_points * score / 100)

        lesson = quiz.lesson
        try:
            attempt = QuizAttempt(
                user_id=user.id,
                quiz_id=quiz.id,
                attempt_number=attempt_number,
                score=score,
                points_earned=points_earned,
            )
            db.add(attempt)
            db.flush()

            points_applied = GamificationService.apply_points(
                user,
                points_earned,
                reason=f"Quiz completed: {lesson.title} (Attempt {attempt_number})",
                db=db,
            )

            ProgressService.record_progress(
                user.id, lesson.id, db, is_completed=True, commit=False
            )

            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(
                "quiz_attempt_race",
                quiz_id=str(quiz.id),
                user_id=str(user.id),
                attempt_number=attempt_number,
            )
            raise ConflictError(
                "Another submission for this quiz is in progress, please retry",
                resource="quiz_attempt",
            ) from e
        except Exception:
            db.rollback()
            raise

        db.refresh(attempt)
        db.refresh(user)

        logger.info(
            "quiz_attempt_recorded",
            quiz_id=str(quiz.id),
            user_id=str(user.id),
            attempt_number=attempt_number,
            score=score,
            points_earned=points_earned,
            points_applied=points_applied,
        )

        return {
            "attempt": attempt,
            "score": score,
            "points_earned": points_earned,
            "points_applied": points_applied,
            "correct_count": correct_count,
            "total_questions": total_questions,
            "new_total_points": user.total_points,
            "badge_level": user.badge_level.value,
        }

    @staticmethod
    def list_attempts(quiz_id: UUID, user_id: UUID, db: Session) -> list[QuizAttempt]:
        result = (
            db.query(QuizAttempt)
            .filter(QuizAttempt.quiz_id == quiz_id, QuizAttempt.user_id == user_id)
            .order_by(QuizAttempt.attempt_number.desc())
            .all()
        )
        return cast(list[QuizAttempt], result)

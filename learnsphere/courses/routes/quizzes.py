from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from learnsphere.auth.dependencies import get_current_user
from learnsphere.auth.models.user import User, UserRole
from learnsphere.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from learnsphere.core.rate_limit import limiter
from learnsphere.courses.dependencies import (
    RequireCourseEditable,
    RequireQuizAccess,
    RequireQuizEditable,
)
from learnsphere.courses.models import Course, Lesson, Quiz, QuizAttempt
from learnsphere.courses.schemas.quiz import (
    AttemptRequest,
    AttemptResponse,
    AttemptResultResponse,
    OptionResponse,
    QuestionResponse,
    QuizCreate,
    QuizResponse,
    QuizSummary,
    QuizUpdate,
)
from learnsphere.courses.services.quiz_service import QuizService
from learnsphere.db.session import get_db

router = APIRouter()


def quiz_response(quiz: Quiz, reveal_answers: bool) -> QuizResponse:
    return QuizResponse(
        id=str(quiz.id),
        lesson_id=str(quiz.lesson_id),
        title=quiz.lesson.title,
        first_attempt_points=quiz.first_attempt_points,
        second_attempt_points=quiz.second_attempt_points,
        third_attempt_points=quiz.third_attempt_points,
        fourth_plus_points=quiz.fourth_plus_points,
        questions=[
            QuestionResponse(
                id=str(q.id),
                text=q.text,
                order_index=q.order_index,
                options=[
                    OptionResponse(
                        id=str(o.id),
                        text=o.text,
                        is_correct=o.is_correct if reveal_answers else None,
                    )
                    for o in q.options
                ],
            )
            for q in quiz.questions
        ],
    )


def attempt_response(attempt: QuizAttempt) -> AttemptResponse:
    return AttemptResponse(
        id=str(attempt.id),
        quiz_id=str(attempt.quiz_id),
        user_id=str(attempt.user_id),
        attempt_number=attempt.attempt_number,
        score=attempt.score,
        points_earned=attempt.points_earned,
        completed_at=attempt.completed_at,
    )


def _resolve_learner(user_id: str, current_user: User, db: Session) -> User:
    """Learners submit for themselves; admins may submit on anyone's behalf."""
    if user_id == str(current_user.id):
        return current_user
    if current_user.role != UserRole.ADMIN:
        raise ForbiddenError("You can only submit attempts for yourself")

    try:
        target_id = UUID(user_id)
    except ValueError as e:
        raise ValidationError("Invalid user id", field="user_id") from e

    user = db.query(User).filter(User.id == target_id).first()
    if not user:
        raise NotFoundError("User not found", resource="user")
    return user


@router.get("/quizzes/{quiz_id}", response_model=QuizResponse)
async def get_quiz(
    quiz_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> QuizResponse:
    quiz = QuizService.get_quiz(quiz_id, db)
    return quiz_response(quiz, reveal_answers=current_user.is_privileged)


@router.get("/quizzes/by-lesson/{lesson_id}", response_model=QuizResponse)
async def get_quiz_by_lesson(
    lesson_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> QuizResponse:
    """Quiz behind a lesson; a QUIZ lesson missing its quiz is repaired here."""
    quiz = QuizService.get_or_repair_quiz_for_lesson(lesson_id, db)
    return quiz_response(quiz, reveal_answers=current_user.is_privileged)


@router.get("/courses/{course_id}/quizzes", response_model=list[QuizSummary])
async def list_course_quizzes(
    course_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[QuizSummary]:
    if not db.query(Course).filter(Course.id == course_id).first():
        raise NotFoundError("Course not found", resource="course")

    quizzes = QuizService.list_course_quizzes(course_id, db)
    return [
        QuizSummary(
            id=str(quiz.id),
            lesson_id=str(quiz.lesson_id),
            title=quiz.lesson.title,
            question_count=len(quiz.questions),
        )
        for quiz in quizzes
    ]


@router.post(
    "/courses/{course_id}/quizzes",
    response_model=QuizResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_quiz(
    body: QuizCreate,
    course: Course = Depends(RequireCourseEditable()),
    db: Session = Depends(get_db),
) -> QuizResponse:
    order_index = body.order_index
    if order_index is None:
        last_index = (
            db.query(func.max(Lesson.order_index)).filter(Lesson.course_id == course.id).scalar()
        )
        order_index = 0 if last_index is None else last_index + 1

    quiz = QuizService.create_quiz(course.id, body.title, order_index, db)
    return quiz_response(QuizService.get_quiz(quiz.id, db), reveal_answers=True)


@router.put("/quizzes/{quiz_id}", response_model=QuizResponse)
async def update_quiz(
    body: QuizUpdate,
    quiz: Quiz = Depends(RequireQuizEditable()),
    db: Session = Depends(get_db),
) -> QuizResponse:
    """Update reward tiers and/or replace every question."""
    questions = None
    if body.questions is not None:
        questions = [q.model_dump() for q in body.questions]

    quiz = QuizService.update_quiz(quiz, db, tiers=body.tiers(), questions=questions)
    return quiz_response(quiz, reveal_answers=True)


@router.delete("/quizzes/{quiz_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quiz(
    quiz: Quiz = Depends(RequireQuizEditable()),
    db: Session = Depends(get_db),
) -> None:
    QuizService.delete_quiz(quiz, db)


@router.post(
    "/quizzes/{quiz_id}/attempt",
    response_model=AttemptResultResponse,
    dependencies=[Depends(RequireQuizAccess())],
)
@limiter.limit("20/minute")
async def submit_attempt(
    request: Request,
    quiz_id: UUID,
    body: AttemptRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AttemptResultResponse:
    """Grade a submission and award points for it."""
    learner = _resolve_learner(body.user_id, current_user, db)
    result = QuizService.submit_attempt(quiz_id, learner, body.answers, db)

    return AttemptResultResponse(
        attempt=attempt_response(result["attempt"]),
        score=result["score"],
        points_earned=result["points_earned"],
        points_applied=result["points_applied"],
        correct_count=result["correct_count"],
        total_questions=result["total_questions"],
        new_total_points=result["new_total_points"],
        badge_level=result["badge_level"],
    )


@router.get("/quizzes/{quiz_id}/attempts", response_model=list[AttemptResponse])
async def list_attempts(
    quiz_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[AttemptResponse]:
    """The caller's own attempts, newest first."""
    attempts = QuizService.list_attempts(quiz_id, current_user.id, db)
    return [attempt_response(a) for a in attempts]

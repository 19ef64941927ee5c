from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from learnsphere.auth.dependencies import get_current_user
from learnsphere.auth.models.user import User, UserRole
from learnsphere.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from learnsphere.courses.dependencies import RequireCourseAccess
from learnsphere.courses.models import Lesson, LessonProgress
from learnsphere.courses.schemas.progress import (
    CourseProgressResponse,
    LessonProgressResponse,
    ProgressUpdateRequest,
    ProgressUpdateResponse,
)
from learnsphere.courses.services.progress_service import ProgressService
from learnsphere.db.session import get_db

router = APIRouter()


def progress_response(progress: LessonProgress) -> LessonProgressResponse:
    return LessonProgressResponse(
        id=str(progress.id),
        user_id=str(progress.user_id),
        lesson_id=str(progress.lesson_id),
        is_completed=progress.is_completed,
        completed_at=progress.completed_at,
        time_spent=progress.time_spent,
        last_updated_at=progress.last_updated_at,
    )


def _parse_uuid(value: str, field: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {field}", field=field) from e


def _target_user_id(user_id: str | None, current_user: User) -> UUID:
    """Learners see and write only their own progress."""
    if user_id is None or user_id == str(current_user.id):
        return current_user.id
    if current_user.role != UserRole.ADMIN:
        raise ForbiddenError("You can only access your own progress")
    return _parse_uuid(user_id, "user_id")


@router.put("/progress", response_model=ProgressUpdateResponse)
async def update_progress(
    request: ProgressUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProgressUpdateResponse:
    """Mark a lesson complete/incomplete and/or add time spent on it."""
    user_id = _target_user_id(request.user_id, current_user)
    lesson_id = _parse_uuid(request.lesson_id, "lesson_id")

    lesson = db.query(Lesson).filter(Lesson.id == lesson_id).first()
    if not lesson:
        raise NotFoundError("Lesson not found", resource="lesson")
    RequireCourseAccess()(course_id=lesson.course_id, current_user=current_user, db=db)

    progress, course_progress = ProgressService.record_progress(
        user_id,
        lesson_id,
        db,
        is_completed=request.is_completed,
        time_spent=request.time_spent,
    )
    return ProgressUpdateResponse(
        progress=progress_response(progress),
        course_progress=course_progress,
    )


@router.get("/progress", response_model=LessonProgressResponse | CourseProgressResponse)
async def get_progress(
    user_id: str | None = Query(None),
    lesson_id: UUID | None = Query(None),
    course_id: UUID | None = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LessonProgressResponse | CourseProgressResponse:
    """Progress for one lesson (``lesson_id``) or a whole course (``course_id``)."""
    target_id = _target_user_id(user_id, current_user)

    if lesson_id is not None:
        progress = ProgressService.get_lesson_progress(target_id, lesson_id, db)
        if not progress:
            raise NotFoundError("Progress not found", resource="lesson_progress")
        return progress_response(progress)

    if course_id is not None:
        records = ProgressService.get_course_progress(target_id, course_id, db)
        return CourseProgressResponse(
            course_id=str(course_id),
            course_progress=ProgressService.calculate_course_progress(target_id, course_id, db),
            lessons=[progress_response(p) for p in records],
        )

    raise ValidationError("Either lesson_id or course_id is required", field="lesson_id")

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from learnsphere.auth.dependencies import get_current_user
from learnsphere.auth.models.user import User
from learnsphere.courses.dependencies import RequireCourseEditable
from learnsphere.courses.models import Course
from learnsphere.courses.routes.courses import lesson_response
from learnsphere.courses.schemas.course import LessonCreate, LessonResponse, LessonUpdate
from learnsphere.courses.services.course_service import CourseService
from learnsphere.db.session import get_db

router = APIRouter()


@router.get("/courses/{course_id}/lessons", response_model=list[LessonResponse])
async def list_lessons(
    course_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[LessonResponse]:
    lessons = CourseService.list_lessons(course_id, db)
    return [lesson_response(lesson) for lesson in lessons]


@router.post(
    "/courses/{course_id}/lessons",
    response_model=LessonResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_lesson(
    request: LessonCreate,
    course: Course = Depends(RequireCourseEditable()),
    db: Session = Depends(get_db),
) -> LessonResponse:
    """Append a lesson; QUIZ lessons get an empty quiz straight away."""
    lesson = CourseService.create_lesson(course, request.model_dump(exclude_unset=True), db)
    return lesson_response(lesson)


@router.patch("/courses/{course_id}/lessons/{lesson_id}", response_model=LessonResponse)
async def update_lesson(
    lesson_id: UUID,
    request: LessonUpdate,
    course: Course = Depends(RequireCourseEditable()),
    db: Session = Depends(get_db),
) -> LessonResponse:
    lesson = CourseService.get_lesson(course.id, lesson_id, db)
    lesson = CourseService.update_lesson(
        course, lesson, request.model_dump(exclude_unset=True), db
    )
    return lesson_response(lesson)


@router.delete(
    "/courses/{course_id}/lessons/{lesson_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_lesson(
    lesson_id: UUID,
    course: Course = Depends(RequireCourseEditable()),
    db: Session = Depends(get_db),
) -> None:
    lesson = CourseService.get_lesson(course.id, lesson_id, db)
    CourseService.delete_lesson(course, lesson, db)

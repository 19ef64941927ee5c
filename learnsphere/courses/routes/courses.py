from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from learnsphere.auth.dependencies import get_current_user, require_editor
from learnsphere.auth.models.user import User
from learnsphere.core.rate_limit import limiter
from learnsphere.courses.dependencies import RequireCourseEditable
from learnsphere.courses.models import Course, Lesson
from learnsphere.courses.schemas.course import (
    CourseCreate,
    CourseDetailResponse,
    CourseResponse,
    CourseUpdate,
    LessonResponse,
    LockResponse,
)
from learnsphere.courses.services.course_service import CourseService
from learnsphere.courses.services.lock_service import CourseLockService
from learnsphere.db.session import get_db

router = APIRouter()


def lesson_response(lesson: Lesson) -> LessonResponse:
    return LessonResponse(
        id=str(lesson.id),
        course_id=str(lesson.course_id),
        title=lesson.title,
        description=lesson.description,
        type=lesson.type.value,
        video_url=lesson.video_url,
        document_url=lesson.document_url,
        image_url=lesson.image_url,
        duration=lesson.duration,
        allow_download=lesson.allow_download,
        order_index=lesson.order_index,
        quiz_id=str(lesson.quiz.id) if lesson.quiz else None,
        created_at=lesson.created_at,
    )


def course_response(course: Course) -> CourseResponse:
    return CourseResponse(
        id=str(course.id),
        instructor_id=str(course.instructor_id),
        title=course.title,
        description=course.description,
        image_url=course.image_url,
        website_url=course.website_url,
        is_published=course.is_published,
        visibility=course.visibility.value,
        price=course.price,
        access_rule=course.access_rule.value,
        views_count=course.views_count,
        total_duration=course.total_duration,
        tags=[tag.name for tag in course.tags],
        editing_user_id=str(course.editing_user_id) if course.editing_user_id else None,
        editing_expires_at=course.editing_expires_at,
        created_at=course.created_at,
        updated_at=course.updated_at,
    )


@router.post(
    "/courses",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_course(
    request: CourseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_editor),
) -> CourseResponse:
    """Create a course; its access rule follows the price."""
    course = CourseService.create_course(request.model_dump(exclude_unset=True), current_user, db)
    return course_response(course)


@router.get("/courses", response_model=list[CourseResponse])
async def list_courses(
    mine: bool = Query(False, description="Only courses taught by the caller"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[CourseResponse]:
    courses = CourseService.list_courses(
        db,
        include_unpublished=current_user.is_privileged,
        instructor_id=current_user.id if mine else None,
    )
    return [course_response(c) for c in courses]


@router.get("/courses/{course_id}", response_model=CourseDetailResponse)
async def get_course(
    course_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CourseDetailResponse:
    """Course with its lessons; counts as a view."""
    course = CourseService.get_course(course_id, db)
    if not course.is_published and not current_user.is_privileged:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Course not found",
        )
    course = CourseService.view_course(course, db)

    return CourseDetailResponse(
        **course_response(course).model_dump(),
        lessons=[lesson_response(lesson) for lesson in course.lessons],
    )


@router.patch("/courses/{course_id}", response_model=CourseResponse)
async def update_course(
    request: CourseUpdate,
    course: Course = Depends(RequireCourseEditable()),
    db: Session = Depends(get_db),
) -> CourseResponse:
    course = CourseService.update_course(course, request.model_dump(exclude_unset=True), db)
    return course_response(course)


@router.delete("/courses/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(
    course: Course = Depends(RequireCourseEditable()),
    db: Session = Depends(get_db),
) -> None:
    CourseService.delete_course(course, db)


@router.post("/courses/{course_id}/lock", response_model=LockResponse)
@limiter.limit("30/minute")
async def acquire_course_lock(
    request: Request,
    course_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_editor),
) -> LockResponse:
    """Take or refresh the edit lease. Editors call this as a heartbeat."""
    expires_at = CourseLockService.acquire(course_id, current_user, db)
    return LockResponse(success=True, expires_at=expires_at)


@router.delete("/courses/{course_id}/lock", response_model=LockResponse)
async def release_course_lock(
    course_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_editor),
) -> LockResponse:
    CourseLockService.release(course_id, current_user, db)
    return LockResponse(success=True)

@router.get("/tags", response_model=list[str])
async def list_tags(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[str]:
    """Distinct tag names across all courses, for filters and autocomplete."""
    return CourseService.list_tags(db)

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from learnsphere.auth.dependencies import get_current_user
from learnsphere.auth.models.user import User, UserRole
from learnsphere.core.exceptions import ForbiddenError, PaymentPreconditionError, ValidationError
from learnsphere.courses.dependencies import RequireCourseOwner
from learnsphere.courses.models import AccessRule, Course, Enrollment
from learnsphere.courses.schemas.enrollment import (
    AccessCheckResponse,
    AttendeeLessonProgress,
    AttendeeResponse,
    EnrollmentCreate,
    EnrollmentResponse,
)
from learnsphere.courses.services.enrollment_service import EnrollmentService
from learnsphere.db.session import get_db

router = APIRouter()


def enrollment_response(enrollment: Enrollment) -> EnrollmentResponse:
    return EnrollmentResponse(
        id=str(enrollment.id),
        user_id=str(enrollment.user_id),
        course_id=str(enrollment.course_id),
        status=enrollment.status.value,
        progress=enrollment.progress,
        enrolled_at=enrollment.enrolled_at,
        started_at=enrollment.started_at,
        completed_at=enrollment.completed_at,
        time_spent=enrollment.time_spent,
    )


@router.get("/enrollments", response_model=list[EnrollmentResponse])
async def list_enrollments(
    course_id: UUID | None = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[EnrollmentResponse]:
    """The caller's enrollments; editors may list a whole course instead."""
    if course_id is not None and current_user.is_privileged:
        enrollments = EnrollmentService.list_enrollments(db, course_id=course_id)
    else:
        enrollments = EnrollmentService.list_enrollments(
            db, user_id=current_user.id, course_id=course_id
        )
    return [enrollment_response(e) for e in enrollments]


@router.post("/enrollments", response_model=EnrollmentResponse)
async def create_enrollment(
    request: EnrollmentCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> EnrollmentResponse:
    """Self-enroll in an open course, or (admin) enroll anyone anywhere.

    Paid courses are only joined through checkout.
    """
    try:
        course_id = UUID(request.course_id)
        user_id = UUID(request.user_id) if request.user_id else current_user.id
    except ValueError as e:
        raise ValidationError("Invalid identifier") from e

    is_admin = current_user.role == UserRole.ADMIN
    if user_id != current_user.id and not is_admin:
        raise ForbiddenError("You can only enroll yourself")

    if not is_admin:
        course = db.query(Course).filter(Course.id == course_id).first()
        if course and course.access_rule == AccessRule.PAYMENT:
            raise PaymentPreconditionError(
                "This course requires payment", reason="PAYMENT_REQUIRED"
            )
        if course and course.access_rule == AccessRule.INVITATION:
            raise ForbiddenError("This course is invitation only")

    enrollment, created = EnrollmentService.enroll(user_id, course_id, db)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return enrollment_response(enrollment)


@router.get("/enrollments/check-access", response_model=AccessCheckResponse)
async def check_access(
    course_id: UUID = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AccessCheckResponse:
    result = EnrollmentService.check_access(course_id, current_user.id, db)
    return AccessCheckResponse(**result)


@router.get("/courses/{course_id}/attendees", response_model=list[AttendeeResponse])
async def list_attendees(
    course: Course = Depends(RequireCourseOwner()),
    db: Session = Depends(get_db),
) -> list[AttendeeResponse]:
    """Everyone enrolled in the course with their per-lesson progress."""
    attendees = EnrollmentService.list_attendees(course.id, db)
    return [
        AttendeeResponse(
            user_id=str(enrollment.user.id),
            name=enrollment.user.name,
            email=enrollment.user.email,
            avatar_url=enrollment.user.avatar_url,
            badge_level=enrollment.user.badge_level.value,
            total_points=enrollment.user.total_points,
            enrollment=enrollment_response(enrollment),
            lessons=[
                AttendeeLessonProgress(
                    lesson_id=str(record.lesson_id),
                    lesson_title=record.lesson.title,
                    is_completed=record.is_completed,
                    time_spent=record.time_spent,
                )
                for record in records
            ],
        )
        for enrollment, records in attendees
    ]

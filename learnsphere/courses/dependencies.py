from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from learnsphere.auth.dependencies import get_current_user, require_editor
from learnsphere.auth.models.user import User, UserRole
from learnsphere.courses.models import Course, Lesson, Quiz
from learnsphere.courses.services.enrollment_service import EnrollmentService
from learnsphere.courses.services.lock_service import CourseLockService
from learnsphere.db.session import get_db


def _ensure_owner(course: Course, user: User) -> None:
    if user.role == UserRole.ADMIN:
        return
    if course.instructor_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only manage your own courses",
        )


class RequireCourseEditable:
    """Dependency class guarding course writes against another editor's lease."""

    def __init__(self, require_owner: bool = True):
        """
        Args:
            require_owner: If True, instructors may only edit their own courses.
        """
        self.require_owner = require_owner

    def __call__(
        self,
        course_id: UUID,
        current_user: User = Depends(require_editor),
        db: Session = Depends(get_db),
    ) -> Course:
        course = CourseLockService.ensure_editable(course_id, current_user, db)
        if self.require_owner:
            _ensure_owner(course, current_user)
        return course


class RequireCourseOwner:
    """Read-side ownership check: the course's instructor or an admin."""

    def __call__(
        self,
        course_id: UUID,
        current_user: User = Depends(require_editor),
        db: Session = Depends(get_db),
    ) -> Course:
        course = db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Course not found",
            )
        _ensure_owner(course, current_user)
        return course


class RequireQuizEditable:
    """Same guard, resolved through the quiz's lesson."""

    def __call__(
        self,
        quiz_id: UUID,
        current_user: User = Depends(require_editor),
        db: Session = Depends(get_db),
    ) -> Quiz:
        quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
        if not quiz:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Quiz not found",
            )

        lesson = db.query(Lesson).filter(Lesson.id == quiz.lesson_id).first()
        if not lesson:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Lesson not found",
            )

        course = CourseLockService.ensure_editable(lesson.course_id, current_user, db)
        _ensure_owner(course, current_user)
        return quiz


_ACCESS_DENIED_DETAIL = {
    "PAYMENT_REQUIRED": "Purchase this course to access it",
    "INVITATION_REQUIRED": "This course is available by invitation only",
}


class RequireCourseAccess:
    """Dependency class checking that the caller may study a course.

    Open courses, enrollments and completed payments grant access; the
    course's instructor and admins always pass.
    """

    def __call__(
        self,
        course_id: UUID,
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> None:
        course = db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Course not found",
            )

        if current_user.role == UserRole.ADMIN or course.instructor_id == current_user.id:
            return

        access = EnrollmentService.check_access(course.id, current_user.id, db)
        if not access["has_access"]:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=_ACCESS_DENIED_DETAIL.get(access["reason"], "Access denied"),
            )


class RequireQuizAccess:
    """Course access check, resolved through the quiz's lesson."""

    def __call__(
        self,
        quiz_id: UUID,
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> None:
        quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
        if not quiz:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Quiz not found",
            )

        lesson = db.query(Lesson).filter(Lesson.id == quiz.lesson_id).first()
        if not lesson:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Lesson not found",
            )

        RequireCourseAccess()(course_id=lesson.course_id, current_user=current_user, db=db)

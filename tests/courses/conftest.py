"""
Test fixtures for courses tests.
"""

import pytest
from sqlalchemy.orm import Session

from learnsphere.courses.models import Enrollment, EnrollmentStatus
from tests.utils.factories import (
    create_course_factory,
    create_lesson_factory,
    create_quiz_factory,
)


@pytest.fixture
def test_course(db_session: Session, test_instructor):
    """An open, published course owned by ``test_instructor``."""
    return create_course_factory(db_session, test_instructor, title="Intro to Testing")


@pytest.fixture
def test_lessons(db_session: Session, test_course):
    """Four video lessons of 10 minutes each."""
    lessons = [create_lesson_factory(db_session, test_course, order_index=i) for i in range(4)]
    test_course.total_duration = 40
    db_session.flush()
    return lessons


@pytest.fixture
def test_quiz(db_session: Session, test_course):
    """Four questions; sits after any lessons in ``test_lessons``."""
    return create_quiz_factory(db_session, test_course, question_count=4, order_index=10)


@pytest.fixture
def test_enrollment(db_session: Session, test_user, test_course):
    enrollment = Enrollment(
        user_id=test_user.id,
        course_id=test_course.id,
        status=EnrollmentStatus.ACTIVE,
        progress=0.0,
    )
    db_session.add(enrollment)
    db_session.flush()
    return enrollment

"""
Tests for lesson progress and the enrollment percentage derived from it.
"""

import uuid

import pytest
from httpx import AsyncClient

from learnsphere.core.exceptions import NotFoundError
from learnsphere.courses.models import EnrollmentStatus, LessonProgress
from learnsphere.courses.services.progress_service import ProgressService
from tests.utils.factories import create_course_factory, create_lesson_factory
from tests.utils.helpers import create_auth_headers


def test_completing_one_of_four_lessons(db_session, test_user, test_lessons, test_enrollment):
    progress, course_progress = ProgressService.record_progress(
        test_user.id, test_lessons[0].id, db_session, is_completed=True
    )

    assert progress.is_completed is True
    assert progress.completed_at is not None
    assert course_progress == 25.0
    assert test_enrollment.progress == 25.0
    assert test_enrollment.status == EnrollmentStatus.ACTIVE
    assert test_enrollment.completed_at is None


def test_completing_again_is_idempotent(db_session, test_user, test_lessons, test_enrollment):
    first, _ = ProgressService.record_progress(
        test_user.id, test_lessons[0].id, db_session, is_completed=True
    )
    stamped_at = first.completed_at

    second, course_progress = ProgressService.record_progress(
        test_user.id, test_lessons[0].id, db_session, is_completed=True
    )

    assert second.id == first.id
    assert second.completed_at == stamped_at
    assert course_progress == 25.0
    rows = (
        db_session.query(LessonProgress)
        .filter(LessonProgress.user_id == test_user.id)
        .count()
    )
    assert rows == 1


def test_finishing_course_then_reverting(db_session, test_user, test_lessons, test_enrollment):
    for lesson in test_lessons:
        _, course_progress = ProgressService.record_progress(
            test_user.id, lesson.id, db_session, is_completed=True
        )

    assert course_progress == 100.0
    assert test_enrollment.status == EnrollmentStatus.COMPLETED
    assert test_enrollment.completed_at is not None

    progress, course_progress = ProgressService.record_progress(
        test_user.id, test_lessons[1].id, db_session, is_completed=False
    )

    assert progress.is_completed is False
    assert progress.completed_at is None
    assert course_progress == 75.0
    assert test_enrollment.status == EnrollmentStatus.ACTIVE
    assert test_enrollment.completed_at is None


def test_time_spent_accumulates(db_session, test_user, test_lessons, test_enrollment):
    ProgressService.record_progress(test_user.id, test_lessons[0].id, db_session, time_spent=5)
    progress, _ = ProgressService.record_progress(
        test_user.id, test_lessons[0].id, db_session, time_spent=7
    )

    assert progress.time_spent == 12
    assert progress.is_completed is False
    assert test_enrollment.time_spent == 12


def test_new_lesson_lowers_progress(
    db_session, test_user, test_course, test_lessons, test_enrollment
):
    for lesson in test_lessons:
        ProgressService.record_progress(test_user.id, lesson.id, db_session, is_completed=True)
    assert test_enrollment.status == EnrollmentStatus.COMPLETED

    create_lesson_factory(db_session, test_course, order_index=4)
    course_progress = ProgressService.recalculate_enrollment(
        test_user.id, test_course.id, db_session
    )

    assert course_progress == 80.0
    assert test_enrollment.status == EnrollmentStatus.ACTIVE


def test_course_without_lessons_is_zero(db_session, test_user, test_instructor):
    empty = create_course_factory(db_session, test_instructor)

    assert ProgressService.calculate_course_progress(test_user.id, empty.id, db_session) == 0.0


def test_unknown_lesson_writes_nothing(db_session, test_user):
    with pytest.raises(NotFoundError):
        ProgressService.record_progress(test_user.id, uuid.uuid4(), db_session, is_completed=True)

    assert db_session.query(LessonProgress).count() == 0


def test_progress_without_enrollment(db_session, test_user, test_lessons):
    progress, course_progress = ProgressService.record_progress(
        test_user.id, test_lessons[0].id, db_session, is_completed=True
    )

    assert progress.is_completed is True
    assert course_progress == 25.0


@pytest.mark.asyncio
async def test_update_progress_endpoint(
    test_client: AsyncClient, test_user, test_user_token, test_lessons, test_enrollment
):
    response = await test_client.put(
        "/api/v1/progress",
        json={
            "user_id": str(test_user.id),
            "lesson_id": str(test_lessons[0].id),
            "is_completed": True,
            "time_spent": 3,
        },
        headers=create_auth_headers(test_user_token),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["course_progress"] == 25.0
    assert data["progress"]["is_completed"] is True
    assert data["progress"]["time_spent"] == 3

    response = await test_client.get(
        "/api/v1/progress",
        params={"course_id": str(test_lessons[0].course_id)},
        headers=create_auth_headers(test_user_token),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["course_progress"] == 25.0
    assert len(data["lessons"]) == 1


@pytest.mark.asyncio
async def test_learner_cannot_write_others_progress(
    test_client: AsyncClient, test_admin, test_user_token, test_lessons
):
    response = await test_client.put(
        "/api/v1/progress",
        json={"user_id": str(test_admin.id), "lesson_id": str(test_lessons[0].id)},
        headers=create_auth_headers(test_user_token),
    )

    assert response.status_code == 403

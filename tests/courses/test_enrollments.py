"""
Tests for enrollment and course access checks.
"""

import pytest
from httpx import AsyncClient

from learnsphere.courses.models import AccessRule, EnrollmentStatus
from learnsphere.courses.services.enrollment_service import EnrollmentService
from learnsphere.courses.services.progress_service import ProgressService
from learnsphere.payments.models.payment import Payment, PaymentStatus
from tests.utils.factories import create_course_factory
from tests.utils.helpers import assert_error_envelope, create_auth_headers


def test_enroll_is_idempotent(db_session, test_user, test_course):
    first, created = EnrollmentService.enroll(test_user.id, test_course.id, db_session)
    again, created_again = EnrollmentService.enroll(test_user.id, test_course.id, db_session)

    assert created is True
    assert created_again is False
    assert again.id == first.id
    assert first.progress == 0.0
    assert first.started_at is not None


def test_check_access_reasons(db_session, test_user, test_instructor):
    open_course = create_course_factory(db_session, test_instructor)
    paid = create_course_factory(db_session, test_instructor, price=9900)
    invite = create_course_factory(
        db_session, test_instructor, access_rule=AccessRule.INVITATION
    )

    assert EnrollmentService.check_access(open_course.id, test_user.id, db_session) == {
        "has_access": True,
        "reason": "OPEN_COURSE",
    }
    assert EnrollmentService.check_access(paid.id, test_user.id, db_session) == {
        "has_access": False,
        "reason": "PAYMENT_REQUIRED",
        "price": 9900,
    }
    assert EnrollmentService.check_access(invite.id, test_user.id, db_session) == {
        "has_access": False,
        "reason": "INVITATION_REQUIRED",
    }

    db_session.add(
        Payment(
            user_id=test_user.id,
            course_id=paid.id,
            stripe_session_id="cs_test_paid",
            amount=9900,
            status=PaymentStatus.COMPLETED,
        )
    )
    db_session.flush()
    assert EnrollmentService.check_access(paid.id, test_user.id, db_session)["reason"] == "PAID"

    EnrollmentService.enroll(test_user.id, invite.id, db_session)
    assert EnrollmentService.check_access(invite.id, test_user.id, db_session) == {
        "has_access": True,
        "reason": "ENROLLED",
    }


@pytest.mark.asyncio
async def test_self_enroll_open_course(
    test_client: AsyncClient, test_user, test_user_token, test_course
):
    headers = create_auth_headers(test_user_token)

    response = await test_client.post(
        "/api/v1/enrollments", json={"course_id": str(test_course.id)}, headers=headers
    )
    assert response.status_code == 201
    enrollment_id = response.json()["id"]

    response = await test_client.post(
        "/api/v1/enrollments", json={"course_id": str(test_course.id)}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["id"] == enrollment_id

    response = await test_client.get("/api/v1/enrollments", headers=headers)
    assert [e["id"] for e in response.json()] == [enrollment_id]


@pytest.mark.asyncio
async def test_paid_course_requires_checkout(
    test_client: AsyncClient, db_session, test_instructor, test_user_token
):
    paid = create_course_factory(db_session, test_instructor, price=9900)

    response = await test_client.post(
        "/api/v1/enrollments",
        json={"course_id": str(paid.id)},
        headers=create_auth_headers(test_user_token),
    )

    assert response.status_code == 400
    assert_error_envelope(response.json(), "PAYMENT_PRECONDITION_FAILED")


@pytest.mark.asyncio
async def test_check_access_endpoint(
    test_client: AsyncClient, db_session, test_instructor, test_user_token
):
    paid = create_course_factory(db_session, test_instructor, price=1500)

    response = await test_client.get(
        "/api/v1/enrollments/check-access",
        params={"course_id": str(paid.id)},
        headers=create_auth_headers(test_user_token),
    )

    assert response.status_code == 200
    assert response.json() == {"has_access": False, "reason": "PAYMENT_REQUIRED", "price": 1500}


def test_enroll_counts_progress_recorded_before_enrolling(
    db_session, test_user, test_course, test_lessons
):
    for lesson in test_lessons[:2]:
        ProgressService.record_progress(test_user.id, lesson.id, db_session, is_completed=True)

    enrollment, created = EnrollmentService.enroll(test_user.id, test_course.id, db_session)

    assert created is True
    assert enrollment.progress == 50.0
    assert enrollment.status == EnrollmentStatus.ACTIVE
    assert enrollment.completed_at is None


def test_enroll_after_finishing_every_lesson_is_completed(
    db_session, test_user, test_course, test_lessons
):
    for lesson in test_lessons:
        ProgressService.record_progress(
            test_user.id, lesson.id, db_session, is_completed=True, time_spent=2
        )

    enrollment, _ = EnrollmentService.enroll(test_user.id, test_course.id, db_session)

    assert enrollment.progress == 100.0
    assert enrollment.status == EnrollmentStatus.COMPLETED
    assert enrollment.completed_at is not None


@pytest.mark.asyncio
async def test_attendees_report(
    test_client: AsyncClient,
    db_session,
    test_user,
    test_course,
    test_lessons,
    test_enrollment,
    test_instructor_token,
):
    ProgressService.record_progress(
        test_user.id, test_lessons[1].id, db_session, is_completed=True, time_spent=7
    )

    response = await test_client.get(
        f"/api/v1/courses/{test_course.id}/attendees",
        headers=create_auth_headers(test_instructor_token),
    )

    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    attendee = data[0]
    assert attendee["user_id"] == str(test_user.id)
    assert attendee["email"] == test_user.email
    assert attendee["enrollment"]["progress"] == 25.0
    assert attendee["lessons"] == [
        {
            "lesson_id": str(test_lessons[1].id),
            "lesson_title": test_lessons[1].title,
            "is_completed": True,
            "time_spent": 7,
        }
    ]


@pytest.mark.asyncio
async def test_attendees_limited_to_course_owner(
    test_client: AsyncClient, test_course, test_other_instructor_token, test_user_token
):
    for token in (test_other_instructor_token, test_user_token):
        response = await test_client.get(
            f"/api/v1/courses/{test_course.id}/attendees",
            headers=create_auth_headers(token),
        )
        assert response.status_code == 403

"""
Tests for checkout creation and payment reconciliation.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import stripe

from learnsphere.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    PaymentPreconditionError,
)
from learnsphere.courses.models import Enrollment, EnrollmentStatus
from learnsphere.courses.services.enrollment_service import EnrollmentService
from learnsphere.courses.services.progress_service import ProgressService
from learnsphere.payments.models.payment import Payment, PaymentStatus
from learnsphere.payments.services.payment_service import PaymentService
from tests.utils.factories import create_course_factory, create_lesson_factory
from tests.utils.helpers import CHECKOUT_SESSION_ID as SESSION_ID


@pytest.mark.asyncio
async def test_create_checkout_records_pending_payment(
    db_session, test_user, paid_course, mock_stripe
):
    service = PaymentService(db_session, mock_stripe)

    session = await service.create_checkout(paid_course.id, test_user)

    assert session["session_id"] == SESSION_ID
    mock_stripe.create_checkout_session.assert_awaited_once_with(paid_course, test_user)
    payment = db_session.query(Payment).filter(Payment.stripe_session_id == SESSION_ID).one()
    assert payment.status == PaymentStatus.PENDING
    assert payment.amount == 49900
    assert payment.user_id == test_user.id


@pytest.mark.asyncio
async def test_create_checkout_rejects_free_course(
    db_session, test_user, test_instructor, mock_stripe
):
    free = create_course_factory(db_session, test_instructor)

    with pytest.raises(PaymentPreconditionError):
        await PaymentService(db_session, mock_stripe).create_checkout(free.id, test_user)

    mock_stripe.create_checkout_session.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_checkout_rejects_enrolled_user(
    db_session, test_user, paid_course, mock_stripe
):
    EnrollmentService.enroll(test_user.id, paid_course.id, db_session)

    with pytest.raises(ConflictError):
        await PaymentService(db_session, mock_stripe).create_checkout(paid_course.id, test_user)


@pytest.mark.asyncio
async def test_create_checkout_stripe_failure(db_session, test_user, paid_course, mock_stripe):
    mock_stripe.create_checkout_session = AsyncMock(side_effect=stripe.StripeError("down"))

    with pytest.raises(ExternalServiceError):
        await PaymentService(db_session, mock_stripe).create_checkout(paid_course.id, test_user)

    assert db_session.query(Payment).count() == 0


def test_apply_paid_session_enrolls_once(
    db_session, test_user, paid_course, pending_payment, make_session
):
    service = PaymentService(db_session, MagicMock())

    first = service.apply_paid_session(make_session())
    second = service.apply_paid_session(make_session())

    assert first.status == "enrolled"
    assert first.enrollment_created is True
    assert first.course_id == str(paid_course.id)
    assert second.status == "already_enrolled"
    assert second.enrollment_created is False

    assert pending_payment.status == PaymentStatus.COMPLETED
    assert pending_payment.stripe_payment_id == "pi_test_987"

    enrollments = (
        db_session.query(Enrollment)
        .filter(Enrollment.user_id == test_user.id, Enrollment.course_id == paid_course.id)
        .all()
    )
    assert len(enrollments) == 1
    assert enrollments[0].status == EnrollmentStatus.ACTIVE
    assert enrollments[0].progress == 0.0


def test_apply_paid_session_keeps_existing_enrollment(
    db_session, test_user, paid_course, pending_payment, make_session
):
    existing, _ = EnrollmentService.enroll(test_user.id, paid_course.id, db_session)

    result = PaymentService(db_session, MagicMock()).apply_paid_session(make_session())

    assert result.status == "already_enrolled"
    assert pending_payment.status == PaymentStatus.COMPLETED
    assert db_session.query(Enrollment).one().id == existing.id


@pytest.mark.parametrize(
    ("session_kwargs", "reason"),
    [
        ({"payment_status": "unpaid"}, "NOT_PAID"),
        ({"metadata": {}}, "MISSING_METADATA"),
        ({"metadata": {"userId": "someone"}}, "MISSING_METADATA"),
    ],
)
def test_apply_paid_session_preconditions(
    db_session, pending_payment, make_session, session_kwargs, reason
):
    with pytest.raises(PaymentPreconditionError) as exc_info:
        PaymentService(db_session, MagicMock()).apply_paid_session(make_session(**session_kwargs))

    assert exc_info.value.details["reason"] == reason
    assert pending_payment.status == PaymentStatus.PENDING
    assert db_session.query(Enrollment).count() == 0


def test_apply_paid_session_without_payment_record(db_session, make_session):
    with pytest.raises(PaymentPreconditionError) as exc_info:
        PaymentService(db_session, MagicMock()).apply_paid_session(make_session())

    assert exc_info.value.details["reason"] == "PAYMENT_NOT_FOUND"


def test_enrollment_race_is_treated_as_already_enrolled(
    db_session, test_user, paid_course, pending_payment, make_session, monkeypatch
):
    def stale_lookup(user_id, course_id, db):
        # The webhook enrolls the user after this path found no enrollment
        db.add(Enrollment(user_id=user_id, course_id=course_id, status=EnrollmentStatus.ACTIVE))
        db.flush()
        return None

    monkeypatch.setattr(EnrollmentService, "get_user_enrollment", staticmethod(stale_lookup))
    rollback = MagicMock(wraps=db_session.rollback)
    monkeypatch.setattr(db_session, "rollback", rollback)
    course_id = str(paid_course.id)

    result = PaymentService(db_session, MagicMock()).apply_paid_session(make_session())

    assert result.status == "already_enrolled"
    assert result.enrollment_created is False
    assert result.course_id == course_id
    rollback.assert_called_once()


def test_paid_enrollment_counts_progress_made_before_purchase(
    db_session, test_user, paid_course, pending_payment, make_session
):
    lessons = [create_lesson_factory(db_session, paid_course, order_index=i) for i in range(2)]
    for lesson in lessons:
        ProgressService.record_progress(test_user.id, lesson.id, db_session, is_completed=True)

    PaymentService(db_session, MagicMock()).apply_paid_session(make_session())

    enrollment = EnrollmentService.get_user_enrollment(test_user.id, paid_course.id, db_session)
    assert enrollment.progress == 100.0
    assert enrollment.status == EnrollmentStatus.COMPLETED
    assert enrollment.completed_at is not None


@pytest.mark.asyncio
async def test_reconcile_retrieves_session(
    db_session, pending_payment, make_session, mock_stripe
):
    mock_stripe.retrieve_session = AsyncMock(return_value=make_session())

    result = await PaymentService(db_session, mock_stripe).reconcile(SESSION_ID)

    mock_stripe.retrieve_session.assert_awaited_once_with(SESSION_ID)
    assert result.enrollment_created is True


@pytest.mark.asyncio
async def test_reconcile_stripe_failure(db_session, mock_stripe):
    mock_stripe.retrieve_session = AsyncMock(side_effect=stripe.StripeError("timeout"))

    with pytest.raises(ExternalServiceError):
        await PaymentService(db_session, mock_stripe).reconcile(SESSION_ID)


def test_verify(db_session, test_user, pending_payment, make_session):
    service = PaymentService(db_session, MagicMock())

    assert service.verify(SESSION_ID, test_user)["success"] is False

    service.apply_paid_session(make_session())
    result = service.verify(SESSION_ID, test_user)

    assert result["success"] is True
    assert result["enrolled"] is True
    assert result["course_id"] == str(pending_payment.course_id)

"""
Test fixtures for payments tests. Stripe is never called; ``mock_stripe``
stands in for the SDK wrapper.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.orm import Session

from learnsphere.payments.models.payment import Payment, PaymentStatus
from learnsphere.payments.services.stripe_service import get_stripe_service
from tests.utils.factories import create_course_factory
from tests.utils.helpers import CHECKOUT_SESSION_ID as SESSION_ID


@pytest.fixture
def paid_course(db_session: Session, test_instructor):
    return create_course_factory(db_session, test_instructor, title="Paid Course", price=49900)


@pytest.fixture
def pending_payment(db_session: Session, test_user, paid_course):
    payment = Payment(
        user_id=test_user.id,
        course_id=paid_course.id,
        stripe_session_id=SESSION_ID,
        amount=paid_course.price,
        currency="inr",
        status=PaymentStatus.PENDING,
    )
    db_session.add(payment)
    db_session.flush()
    return payment


@pytest.fixture
def make_session(test_user, paid_course):
    """Build a Checkout session payload the way Stripe returns it."""

    def _make(payment_status: str = "paid", metadata: dict | None = None, **extra):
        session = {
            "id": SESSION_ID,
            "object": "checkout.session",
            "payment_status": payment_status,
            "payment_intent": "pi_test_987",
            "metadata": (
                metadata
                if metadata is not None
                else {"userId": str(test_user.id), "courseId": str(paid_course.id)}
            ),
        }
        session.update(extra)
        return session

    return _make


@pytest.fixture
def mock_stripe():
    service = MagicMock()
    service.create_checkout_session = AsyncMock(
        return_value={"url": "https://checkout.stripe.test/pay/cs_test_a1b2c3", "session_id": SESSION_ID}
    )
    service.retrieve_session = AsyncMock()
    service.verify_webhook = AsyncMock()
    return service


@pytest.fixture
async def stripe_app(test_app, mock_stripe):
    test_app.dependency_overrides[get_stripe_service] = lambda: mock_stripe
    yield test_app

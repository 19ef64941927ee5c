"""Checkout creation and reconciliation of paid Stripe sessions.

Reconciliation can be triggered twice for the same session (the browser
redirect and the webhook); both paths go through ``apply_paid_session``,
which is safe to repeat.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, NoReturn
from uuid import UUID

import stripe
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from learnsphere.auth.models.user import User
from learnsphere.core.config import settings
from learnsphere.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PaymentPreconditionError,
)
from learnsphere.courses.models import AccessRule, Course, Enrollment, EnrollmentStatus
from learnsphere.courses.services.enrollment_service import EnrollmentService
from learnsphere.courses.services.progress_service import ProgressService
from learnsphere.payments.models.payment import Payment, PaymentStatus
from learnsphere.payments.services.stripe_service import StripeService

logger = structlog.get_logger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of applying a paid session."""

    status: str
    course_id: str
    enrollment_created: bool = False


def _field(obj: Any, key: str) -> Any:
    """Read a key from a Stripe object or plain dict, None when absent."""
    if obj is None:
        return None
    return obj[key] if key in obj else None


class PaymentService:
    def __init__(self, db: Session, stripe_service: StripeService | None = None):
        self.db = db
        self.stripe = stripe_service or StripeService()

    def _has_completed_payment(self, user_id: UUID, course_id: UUID) -> bool:
        payment = (
            self.db.query(Payment)
            .filter(
                Payment.user_id == user_id,
                Payment.course_id == course_id,
                Payment.status == PaymentStatus.COMPLETED,
            )
            .first()
        )
        return payment is not None

    async def create_checkout(self, course_id: UUID, user: User) -> dict[str, Any]:
        course = self.db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise NotFoundError("Course not found", resource="course")

        if course.access_rule != AccessRule.PAYMENT or course.price <= 0:
            raise PaymentPreconditionError(
                "This course is not sold through checkout", reason="NOT_A_PAID_COURSE"
            )

        enrolled = (
            self.db.query(Enrollment)
            .filter(Enrollment.user_id == user.id, Enrollment.course_id == course_id)
            .first()
        )
        if enrolled or self._has_completed_payment(user.id, course_id):
            raise ConflictError("You already have access to this course", resource="enrollment")

        try:
            session = await self.stripe.create_checkout_session(course, user)
        except stripe.StripeError as e:
            logger.error("stripe_checkout_failed", course_id=str(course_id), error=str(e))
            raise ExternalServiceError("Could not start checkout", service="stripe") from e

        payment = Payment(
            user_id=user.id,
            course_id=course.id,
            stripe_session_id=session["session_id"],
            amount=course.price,
            currency=settings.STRIPE_CURRENCY,
            status=PaymentStatus.PENDING,
        )
        self.db.add(payment)
        self.db.commit()

        logger.info(
            "checkout_created",
            user_id=str(user.id),
            course_id=str(course_id),
            session_id=session["session_id"],
            amount=course.price,
        )
        return session

    async def reconcile(self, session_id: str, user: User | None = None) -> ReconcileResult:
        """Fetch the session from Stripe and grant access if it is paid.

        With ``user`` set, a session recorded for a different buyer is
        reported as not found.
        """
        if user is not None:
            payment = (
                self.db.query(Payment).filter(Payment.stripe_session_id == session_id).first()
            )
            if payment and payment.user_id != user.id:
                logger.warning(
                    "payment_reconcile_foreign_session",
                    session_id=session_id,
                    user_id=str(user.id),
                )
                raise NotFoundError("Payment not found", resource="payment")

        try:
            session = await self.stripe.retrieve_session(session_id)
        except stripe.StripeError as e:
            logger.error("stripe_session_retrieve_failed", session_id=session_id, error=str(e))
            raise ExternalServiceError("Could not verify payment", service="stripe") from e

        return self.apply_paid_session(session)

    def _precondition_failed(self, message: str, reason: str, session_id: str | None) -> NoReturn:
        logger.warning("payment_precondition_failed", reason=reason, session_id=session_id)
        raise PaymentPreconditionError(message, reason=reason)

    def apply_paid_session(self, session: Any) -> ReconcileResult:
        """Mark the payment COMPLETED and enroll the buyer.

        Safe to call repeatedly for the same session: an already completed
        payment is left as is and an existing enrollment is reused.
        """
        session_id = _field(session, "id")

        if _field(session, "payment_status") != "paid":
            self._precondition_failed("Payment not completed", "NOT_PAID", session_id)

        metadata = _field(session, "metadata")
        user_id = _field(metadata, "userId")
        course_id = _field(metadata, "courseId")
        if not user_id or not course_id:
            self._precondition_failed("Invalid payment session", "MISSING_METADATA", session_id)

        payment = self.db.query(Payment).filter(Payment.stripe_session_id == session_id).first()
        if not payment:
            # Paid at Stripe but unknown locally; needs a human to look at it
            logger.error(
                "payment_record_missing",
                session_id=session_id,
                user_id=user_id,
                course_id=course_id,
            )
            self._precondition_failed("Payment record not found", "PAYMENT_NOT_FOUND", session_id)

        if str(payment.user_id) != str(user_id) or str(payment.course_id) != str(course_id):
            logger.error(
                "payment_metadata_mismatch",
                session_id=session_id,
                payment_id=str(payment.id),
            )
            self._precondition_failed("Invalid payment session", "METADATA_MISMATCH", session_id)

        if payment.status != PaymentStatus.COMPLETED:
            payment.status = PaymentStatus.COMPLETED
            payment.stripe_payment_id = _field(session, "payment_intent")
            self.db.commit()
            logger.info("payment_completed", payment_id=str(payment.id), session_id=session_id)

        existing = EnrollmentService.get_user_enrollment(payment.user_id, payment.course_id, self.db)
        if existing:
            logger.info("enrollment_already_exists", session_id=session_id)
            return ReconcileResult(status="already_enrolled", course_id=str(course_id))

        try:
            self.db.add(
                Enrollment(
                    user_id=payment.user_id,
                    course_id=payment.course_id,
                    status=EnrollmentStatus.ACTIVE,
                    started_at=datetime.now(UTC),
                    progress=0.0,
                )
            )
            self.db.flush()
            # Lessons completed before purchase count towards the new enrollment
            ProgressService.recalculate_enrollment(payment.user_id, payment.course_id, self.db)
            self.db.commit()
        except IntegrityError:
            # The other reconcile path enrolled the user in between
            self.db.rollback()
            logger.info("enrollment_race_resolved", session_id=session_id)
            return ReconcileResult(status="already_enrolled", course_id=str(course_id))

        logger.info(
            "payment_reconciled",
            user_id=str(payment.user_id),
            course_id=str(payment.course_id),
            session_id=session_id,
        )
        return ReconcileResult(
            status="enrolled", course_id=str(payment.course_id), enrollment_created=True
        )

    def verify(self, session_id: str, user: User) -> dict[str, Any]:
        """Read-only: has this session turned into access for the caller?"""
        payment = self.db.query(Payment).filter(Payment.stripe_session_id == session_id).first()
        if not payment or payment.user_id != user.id:
            raise NotFoundError("Payment not found", resource="payment")

        enrolled = (
            self.db.query(Enrollment)
            .filter(Enrollment.user_id == user.id, Enrollment.course_id == payment.course_id)
            .first()
            is not None
        )
        return {
            "success": payment.status == PaymentStatus.COMPLETED,
            "course_id": str(payment.course_id),
            "enrolled": enrolled,
        }

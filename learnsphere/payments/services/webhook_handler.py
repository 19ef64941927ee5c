"""Stripe webhook processing.

Signature problems are the only thing that answers 4xx; everything past
verification answers 200 so Stripe does not keep redelivering an event we
cannot act on.
"""

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from learnsphere.core.exceptions import PaymentPreconditionError
from learnsphere.payments.services.payment_service import PaymentService
from learnsphere.payments.services.stripe_service import StripeService

logger = structlog.get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


@dataclass
class WebhookResult:
    """Result of webhook processing."""

    status: str
    course_id: str | None = None
    message: str | None = None


class StripeWebhookHandler:
    def __init__(self, db: Session, stripe_service: StripeService | None = None):
        self.db = db
        self.stripe = stripe_service or StripeService()

    async def verify_signature(self, payload: bytes, signature: str) -> Any:
        return await self.stripe.verify_webhook(payload, signature)

    async def process(self, payload: bytes, signature: str | None) -> WebhookResult:
        """Verify the event and reconcile completed checkouts.

        Raises:
            HTTPException: If the signature is missing or invalid.
        """
        if not signature:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing Stripe signature",
            )

        try:
            event = await self.verify_signature(payload, signature)
        except ValueError as e:
            logger.error("stripe_webhook_verification_failed", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Signature verification failed",
            ) from e

        event_type = event["type"]
        if event_type != CHECKOUT_COMPLETED:
            logger.info("stripe_event_acknowledged", event_type=event_type)
            return WebhookResult(status="acknowledged")

        session = event["data"]["object"]
        try:
            result = PaymentService(self.db, self.stripe).apply_paid_session(session)
        except PaymentPreconditionError as e:
            return WebhookResult(status="error", message=e.message)

        return WebhookResult(status=result.status, course_id=result.course_id)

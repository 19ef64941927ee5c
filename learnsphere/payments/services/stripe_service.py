"""
Stripe Checkout integration.
"""

from typing import Any

import stripe

from learnsphere.auth.models.user import User
from learnsphere.core.config import settings
from learnsphere.courses.models import Course

stripe.api_key = settings.STRIPE_SECRET_KEY


class StripeService:
    """Thin wrapper over the Stripe SDK so callers (and tests) never touch it directly."""

    async def create_checkout_session(self, course: Course, user: User) -> dict[str, Any]:
        """
        Create a hosted Checkout page for a single course.

        The session metadata carries ``userId``/``courseId``; reconciliation
        relies on them.
        """
        session = stripe.checkout.Session.create(
            mode="payment",
            line_items=[
                {
                    "price_data": {
                        "currency": settings.STRIPE_CURRENCY,
                        "unit_amount": course.price,
                        "product_data": {
                            "name": course.title,
                            "description": (course.description or "")[:500] or None,
                        },
                    },
                    "quantity": 1,
                }
            ],
            success_url=(
                f"{settings.FRONTEND_URL}/courses/{course.id}/payment-success"
                "?session_id={CHECKOUT_SESSION_ID}"
            ),
            cancel_url=f"{settings.FRONTEND_URL}/courses/{course.id}",
            customer_email=user.email,
            metadata={"userId": str(user.id), "courseId": str(course.id)},
        )

        return {
            "url": session.url,
            "session_id": session.id,
        }

    async def retrieve_session(self, session_id: str) -> Any:
        return stripe.checkout.Session.retrieve(session_id)

    async def verify_webhook(self, payload: bytes, signature: str) -> Any:
        """
        Verify the webhook signature and parse the event.

        Raises:
            ValueError: If signature verification fails
        """
        if not settings.STRIPE_WEBHOOK_SECRET:
            raise ValueError("STRIPE_WEBHOOK_SECRET not configured")

        try:
            return stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
        except stripe.SignatureVerificationError as e:
            raise ValueError(f"Invalid signature: {e}") from e
        except ValueError as e:
            raise ValueError(f"Invalid payload: {e}") from e


def get_stripe_service() -> StripeService:
    return StripeService()

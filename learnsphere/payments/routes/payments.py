from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.orm import Session

from learnsphere.auth.dependencies import get_current_user
from learnsphere.auth.models.user import User
from learnsphere.core.exceptions import ValidationError
from learnsphere.core.rate_limit import limiter
from learnsphere.db.session import get_db
from learnsphere.payments.schemas.payment import (
    CheckoutRequest,
    CheckoutResponse,
    ReconcileResponse,
    VerifyResponse,
    WebhookResponse,
)
from learnsphere.payments.services.payment_service import PaymentService
from learnsphere.payments.services.stripe_service import StripeService, get_stripe_service
from learnsphere.payments.services.webhook_handler import StripeWebhookHandler

router = APIRouter(prefix="/payments", tags=["payments"])


def get_payment_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> PaymentService:
    return PaymentService(db, stripe_service)


def get_webhook_handler(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> StripeWebhookHandler:
    return StripeWebhookHandler(db, stripe_service)


@router.post("/create-session", response_model=CheckoutResponse)
@limiter.limit("10/minute")
async def create_checkout_session(
    request: Request,
    body: CheckoutRequest,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
) -> CheckoutResponse:
    try:
        course_id = UUID(body.course_id)
    except ValueError as e:
        raise ValidationError("Invalid course id", field="course_id") from e

    session = await service.create_checkout(course_id, current_user)
    return CheckoutResponse(url=session["url"], session_id=session["session_id"])


@router.post("/complete", response_model=ReconcileResponse)
@limiter.limit("30/minute")
async def complete_payment(
    request: Request,
    session_id: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
) -> ReconcileResponse:
    """Called from the checkout success page; the webhook may have done it already."""
    result = await service.reconcile(session_id, current_user)
    return ReconcileResponse(
        status=result.status,
        course_id=result.course_id,
        enrollment_created=result.enrollment_created,
    )


@router.get("/verify", response_model=VerifyResponse)
async def verify_payment(
    session_id: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
) -> VerifyResponse:
    return VerifyResponse(**service.verify(session_id, current_user))


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    handler: StripeWebhookHandler = Depends(get_webhook_handler),
) -> WebhookResponse:
    payload = await request.body()
    result = await handler.process(payload, stripe_signature)
    return WebhookResponse(
        status=result.status, course_id=result.course_id, message=result.message
    )

from pydantic import BaseModel


class CheckoutRequest(BaseModel):
    course_id: str


class CheckoutResponse(BaseModel):
    url: str
    session_id: str


class ReconcileResponse(BaseModel):
    success: bool = True
    status: str
    course_id: str
    enrollment_created: bool


class VerifyResponse(BaseModel):
    success: bool
    course_id: str
    enrolled: bool


class WebhookResponse(BaseModel):
    status: str
    course_id: str | None = None
    message: str | None = None

"""Payment routes: checkout, refunds and the Stripe webhook."""

import logging

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.core.deps import require_checkout, require_refund
from src.core.exceptions import ValidationError
from src.modules.payments.gateway import StripeGateway, get_payment_gateway
from src.modules.payments.reconciler import PaymentReconciler
from src.modules.payments.schemas import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    RefundRequest,
    RefundResponse,
    WebhookAck,
)
from src.modules.payments.service import PaymentService
from src.modules.users.models import Profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["payments"])


def get_payment_service(
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
) -> PaymentService:
    return PaymentService(db, gateway)


@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    payload: CheckoutSessionRequest,
    current_user: Profile = Depends(require_checkout),
    service: PaymentService = Depends(get_payment_service),
) -> CheckoutSessionResponse:
    session = await service.create_checkout_session(payload, current_user)
    return CheckoutSessionResponse(session_id=session.session_id, url=session.url)


@router.post("/refund-appointment", response_model=RefundResponse)
async def refund_appointment(
    payload: RefundRequest,
    current_user: Profile = Depends(require_refund),
    service: PaymentService = Depends(get_payment_service),
) -> RefundResponse:
    result = await service.refund_appointment(payload.appointment_id, payload.reason, current_user)
    return RefundResponse(
        refund_id=result.refund_id,
        refund_amount=float(result.refund_amount),
        refund_percentage=result.refund_percentage,
        message=result.message,
    )


@router.post("/stripe-webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
) -> WebhookAck:
    if not stripe_signature:
        raise ValidationError("No signature provided")
    payload = await request.body()
    event = gateway.construct_event(payload, stripe_signature)
    await PaymentReconciler(db, gateway).handle_event(event)
    return WebhookAck()

"""Stripe gateway.

Everything that talks to the payment provider goes through ``StripeGateway`` so
the workflows stay testable with a fake. The Stripe SDK is blocking, so calls
run in the threadpool.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe
from fastapi.concurrency import run_in_threadpool

from src.core.config import Settings, settings
from src.core.exceptions import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

# https://docs.stripe.com/currencies#zero-decimal
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga", "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf"}
)


def _minor_unit_factor(currency: str) -> Decimal:
    return Decimal(1) if currency.lower() in ZERO_DECIMAL_CURRENCIES else Decimal(100)


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Convert a major-unit amount to the provider's integer minor units, rounding half up."""
    scaled = Decimal(amount) * _minor_unit_factor(currency)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int, currency: str) -> Decimal:
    return (Decimal(amount) / _minor_unit_factor(currency)).quantize(Decimal("0.01"))


@dataclass
class CheckoutSession:
    session_id: str
    url: str | None


@dataclass
class PaymentIntentDetails:
    payment_intent_id: str
    status: str
    amount_received: int | None = None


class StripeGateway:
    def __init__(self, api_key: str | None, webhook_secret: str | None, webhook_tolerance: int = 300):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.webhook_tolerance = webhook_tolerance

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "StripeGateway":
        return cls(
            api_key=config.stripe_secret_key,
            webhook_secret=config.stripe_webhook_secret,
            webhook_tolerance=config.stripe_webhook_tolerance_seconds,
        )

    async def create_checkout_session(
        self,
        *,
        currency: str,
        unit_amount: int,
        product_name: str,
        description: str,
        customer_email: str | None,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency.lower(),
                        "product_data": {"name": product_name, "description": description},
                        "unit_amount": unit_amount,
                    },
                    "quantity": 1,
                }
            ],
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "payment_method_options": {"card": {"request_three_d_secure": "automatic"}},
        }
        if customer_email:
            params["customer_email"] = customer_email
        session = await self._call(stripe.checkout.Session.create, "create checkout session", **params)
        return CheckoutSession(session_id=session.id, url=session.url)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentDetails:
        intent = await self._call(stripe.PaymentIntent.retrieve, "retrieve payment intent", payment_intent_id)
        return PaymentIntentDetails(
            payment_intent_id=intent.id,
            status=intent.status,
            amount_received=getattr(intent, "amount_received", None),
        )

    async def create_refund(self, *, payment_intent_id: str, amount: int, metadata: dict[str, str]) -> str:
        refund = await self._call(
            stripe.Refund.create,
            "create refund",
            payment_intent=payment_intent_id,
            amount=amount,
            reason="requested_by_customer",
            metadata=metadata,
        )
        return refund.id

    def construct_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify the ``Stripe-Signature`` header and return the decoded event."""
        if not self.webhook_secret:
            raise UpstreamError("Webhook secret is not configured")
        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(body, signature, self.webhook_secret, self.webhook_tolerance)
        except (UnicodeDecodeError, stripe.SignatureVerificationError) as exc:
            logger.warning("Webhook signature verification failed: %s", exc)
            raise ValidationError("Webhook signature verification failed") from exc
        try:
            event = json.loads(body)
        except ValueError as exc:
            raise ValidationError("Invalid webhook payload") from exc
        if not isinstance(event, dict) or "type" not in event:
            raise ValidationError("Invalid webhook payload")
        return event

    async def _call(self, method, action: str, *args: Any, **kwargs: Any) -> Any:
        if not self.api_key:
            raise UpstreamError("Payment system is not configured")
        try:
            return await run_in_threadpool(method, *args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as exc:
            logger.error("Stripe failed to %s: %s", action, exc)
            raise UpstreamError(f"Payment provider failed to {action}") from exc


def get_payment_gateway() -> StripeGateway:
    """FastAPI dependency; overridden in tests."""
    return StripeGateway.from_settings()

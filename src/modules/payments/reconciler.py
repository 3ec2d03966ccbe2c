"""Apply Stripe webhook events to appointments.

Stripe may deliver an event more than once and in any order, so every handler
checks the current payment state first: a transition that is not allowed from
that state (including "to itself") is skipped, which makes redelivery a no-op
and keeps refunded payments from sliding back to completed or failed.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.exceptions import UpstreamError
from src.modules.appointments.models import Appointment
from src.modules.payments.gateway import StripeGateway, from_minor_units
from src.shared.enums import AppointmentStatus, PaymentStatus

logger = logging.getLogger(__name__)

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.PAY_LATER: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.COMPLETED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED}),
    PaymentStatus.PARTIALLY_REFUNDED: frozenset({PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in PAYMENT_TRANSITIONS.get(current, frozenset())


class PaymentReconciler:
    def __init__(self, db: AsyncSession, gateway: StripeGateway):
        self.db = db
        self.gateway = gateway
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[None]]] = {
            "checkout.session.completed": self._on_checkout_completed,
            "checkout.session.expired": self._on_checkout_expired,
            "charge.refunded": self._on_charge_refunded,
        }

    async def handle_event(self, event: dict[str, Any]) -> None:
        event_type = event.get("type", "")
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("Unhandled event type: %s", event_type)
            return
        payload = (event.get("data") or {}).get("object") or {}
        logger.info("Processing %s event %s", event_type, event.get("id"))
        await handler(payload)

    async def _on_checkout_completed(self, session: dict[str, Any]) -> None:
        appointment = await self._appointment_from_metadata(session)
        if appointment is None:
            return
        if not can_transition_payment(appointment.payment_status, PaymentStatus.COMPLETED):
            logger.info(
                "Appointment %s payment already %s; ignoring checkout completion",
                appointment.appointment_id,
                appointment.payment_status,
            )
            return

        payment_intent_id = session.get("payment_intent")
        if not payment_intent_id:
            logger.error("Checkout session %s has no payment intent", session.get("id"))
            return
        intent = await self.gateway.retrieve_payment_intent(payment_intent_id)

        appointment.payment_status = PaymentStatus.COMPLETED
        appointment.stripe_payment_intent_id = intent.payment_intent_id
        appointment.paid_at = datetime.now(tz=timezone.utc)
        if session.get("id"):
            appointment.stripe_session_id = session["id"]
        if appointment.payment_amount is None and session.get("amount_total") is not None:
            currency = session.get("currency") or settings.default_currency
            appointment.payment_amount = from_minor_units(session["amount_total"], currency)
            appointment.payment_currency = currency.upper()
        if appointment.status == AppointmentStatus.PENDING:
            appointment.status = AppointmentStatus.CONFIRMED
        elif appointment.status != AppointmentStatus.CONFIRMED:
            logger.warning(
                "Payment completed for appointment %s in status %s; status left unchanged",
                appointment.appointment_id,
                appointment.status,
            )
        await self._commit()
        logger.info("Payment completed for appointment %s", appointment.appointment_id)

    async def _on_checkout_expired(self, session: dict[str, Any]) -> None:
        appointment = await self._appointment_from_metadata(session)
        if appointment is None:
            return
        # An abandoned earlier session must not fail a newer checkout attempt.
        if appointment.stripe_session_id and session.get("id") != appointment.stripe_session_id:
            logger.info(
                "Ignoring expiry of stale session %s for appointment %s (current session %s)",
                session.get("id"),
                appointment.appointment_id,
                appointment.stripe_session_id,
            )
            return
        if not can_transition_payment(appointment.payment_status, PaymentStatus.FAILED):
            logger.info(
                "Appointment %s payment already %s; ignoring session expiry",
                appointment.appointment_id,
                appointment.payment_status,
            )
            return
        appointment.payment_status = PaymentStatus.FAILED
        await self._commit()
        logger.info("Checkout expired for appointment %s", appointment.appointment_id)

    async def _on_charge_refunded(self, charge: dict[str, Any]) -> None:
        payment_intent_id = charge.get("payment_intent")
        if not payment_intent_id:
            logger.warning("Refunded charge %s has no payment intent", charge.get("id"))
            return
        result = await self._execute(
            select(Appointment).where(Appointment.stripe_payment_intent_id == payment_intent_id)
        )
        appointment = result.scalars().first()
        if appointment is None:
            logger.warning("No appointment found for payment intent %s", payment_intent_id)
            return

        currency = charge.get("currency") or appointment.payment_currency or settings.default_currency
        refund_amount = from_minor_units(int(charge.get("amount_refunded") or 0), currency)
        total = appointment.payment_amount
        if total is None and charge.get("amount") is not None:
            total = from_minor_units(int(charge["amount"]), currency)
        fully_refunded = total is None or refund_amount >= Decimal(total)
        target = PaymentStatus.REFUNDED if fully_refunded else PaymentStatus.PARTIALLY_REFUNDED

        unchanged = appointment.payment_status == target and appointment.refund_amount == refund_amount
        if unchanged or not can_transition_payment(appointment.payment_status, target):
            logger.info(
                "Appointment %s payment already %s; ignoring refund of %s",
                appointment.appointment_id,
                appointment.payment_status,
                refund_amount,
            )
            return

        appointment.payment_status = target
        appointment.refund_amount = refund_amount
        appointment.refunded_at = datetime.now(tz=timezone.utc)
        await self._commit()
        logger.info("Refund of %s recorded for appointment %s", refund_amount, appointment.appointment_id)

    async def _appointment_from_metadata(self, session: dict[str, Any]) -> Appointment | None:
        appointment_id = (session.get("metadata") or {}).get("appointment_id")
        if not appointment_id:
            logger.error("No appointment ID in session metadata for %s", session.get("id"))
            return None
        result = await self._execute(select(Appointment).where(Appointment.appointment_id == appointment_id))
        appointment = result.scalar_one_or_none()
        if appointment is None:
            logger.warning("Session %s references unknown appointment %s", session.get("id"), appointment_id)
        return appointment

    async def _execute(self, stmt):
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as exc:
            raise UpstreamError("Webhook processing failed") from exc

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise UpstreamError("Webhook processing failed") from exc

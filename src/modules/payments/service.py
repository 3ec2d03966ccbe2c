"""Checkout session and refund workflows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.exceptions import InvalidStateError, NotFoundError, PolicyError, UpstreamError, ValidationError
from src.modules.appointments.models import Appointment
from src.modules.appointments.service import AppointmentService, can_manage_appointment
from src.modules.catalog.models import Service
from src.modules.payments.gateway import CheckoutSession, StripeGateway, from_minor_units, to_minor_units
from src.modules.payments.schemas import CheckoutSessionRequest
from src.modules.users.models import Profile
from src.shared.enums import AppointmentStatus, PaymentStatus

logger = logging.getLogger(__name__)

PAID_STATUSES = frozenset({PaymentStatus.COMPLETED, PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED})


def refund_percentage_for(hours_until_appointment: float) -> int:
    """Map hours before the appointment to the refundable percentage (0, partial or 100)."""
    if hours_until_appointment >= settings.refund_full_hours:
        return 100
    if hours_until_appointment >= settings.refund_partial_hours:
        return settings.refund_partial_percentage
    return 0


def _policy_note(percentage: int) -> str:
    if percentage == 100:
        return f"Full refund - cancelled {settings.refund_full_hours:g}+ hours before appointment"
    return (
        f"{percentage}% refund - cancelled {settings.refund_partial_hours:g}-"
        f"{settings.refund_full_hours:g} hours before appointment"
    )


@dataclass
class RefundResult:
    refund_id: str
    refund_amount: Decimal
    refund_percentage: int
    currency: str

    @property
    def message(self) -> str:
        return f"Refund of {self.currency} {self.refund_amount} ({self.refund_percentage}%) processed successfully"


class PaymentService:
    def __init__(self, db: AsyncSession, gateway: StripeGateway):
        self.db = db
        self.gateway = gateway
        self.tz = ZoneInfo(settings.default_timezone)
        self.appointments = AppointmentService(db)

    def _now(self) -> datetime:
        return datetime.now(tz=self.tz)

    def hours_until(self, appointment: Appointment) -> float:
        """Hours from now until the appointment starts, read as clinic-local wall clock."""
        starts_at = datetime.combine(appointment.appointment_date, appointment.start_time, tzinfo=self.tz)
        return (starts_at - self._now()).total_seconds() / 3600

    async def create_checkout_session(self, payload: CheckoutSessionRequest, caller: Profile) -> CheckoutSession:
        appointment = await self.appointments.get_by_id(payload.appointment_id)
        can_manage_appointment(appointment, caller)
        service = await self.db.get(Service, payload.service_id)
        if service is None:
            raise NotFoundError("Service not found")
        if service.service_id != appointment.service_id:
            raise ValidationError("Service does not match the appointment")
        if appointment.payment_status in PAID_STATUSES:
            raise InvalidStateError("Appointment is already paid")
        if appointment.status == AppointmentStatus.CANCELLED:
            raise InvalidStateError("Cannot pay for a cancelled appointment")
        return_path = payload.return_url or "/dashboard"
        if not return_path.startswith("/"):
            raise ValidationError("returnUrl must be a path on this site")

        currency = service.currency.lower()
        session = await self.gateway.create_checkout_session(
            currency=currency,
            unit_amount=to_minor_units(service.price, currency),
            product_name=service.name,
            description=(
                f"Appointment on {appointment.appointment_date.isoformat()} "
                f"at {appointment.start_time.strftime('%H:%M')}"
            ),
            customer_email=appointment.patient.email,
            metadata={
                "appointment_id": appointment.appointment_id,
                "service_id": service.service_id,
                "patient_name": appointment.patient.full_name,
            },
            success_url=(
                f"{settings.app_url}{return_path}?session_id={{CHECKOUT_SESSION_ID}}&success=true"
            ),
            cancel_url=f"{settings.app_url}/book?canceled=true",
        )

        appointment.stripe_session_id = session.session_id
        appointment.payment_amount = service.price
        appointment.payment_currency = service.currency.upper()
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise UpstreamError("Checkout session created but failed to update appointment") from exc
        logger.info("Checkout session %s created for appointment %s", session.session_id, appointment.appointment_id)
        return session

    async def refund_appointment(self, appointment_id: str, reason: str | None, caller: Profile) -> RefundResult:
        appointment = await self.appointments.get_by_id(appointment_id)
        can_manage_appointment(appointment, caller)
        if appointment.payment_status != PaymentStatus.COMPLETED:
            raise InvalidStateError("No completed payment found for this appointment")
        if not appointment.stripe_payment_intent_id:
            raise InvalidStateError("No payment intent found for this appointment")
        if appointment.payment_amount is None:
            raise InvalidStateError("No payment amount recorded for this appointment")

        hours = self.hours_until(appointment)
        percentage = refund_percentage_for(hours)
        if percentage <= 0:
            raise PolicyError(
                f"No refund available - appointment is less than {settings.refund_partial_hours:g} hours away",
                extra={"hoursUntilAppointment": round(hours, 1)},
            )

        currency = (appointment.payment_currency or settings.default_currency).lower()
        total_minor = to_minor_units(appointment.payment_amount, currency)
        refund_minor = int(
            (Decimal(total_minor) * percentage / 100).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        )
        refund_reason = f"{reason or 'Appointment cancelled'} ({_policy_note(percentage)})"

        refund_id = await self.gateway.create_refund(
            payment_intent_id=appointment.stripe_payment_intent_id,
            amount=refund_minor,
            metadata={
                "appointment_id": appointment.appointment_id,
                "refund_percentage": f"{percentage}%",
                "refund_reason": refund_reason,
            },
        )

        refund_amount = from_minor_units(refund_minor, currency)
        appointment.status = AppointmentStatus.CANCELLED
        appointment.payment_status = (
            PaymentStatus.REFUNDED if percentage == 100 else PaymentStatus.PARTIALLY_REFUNDED
        )
        appointment.refund_amount = refund_amount
        appointment.refund_reason = refund_reason
        appointment.refunded_at = datetime.now(tz=timezone.utc)
        if not appointment.cancellation_reason:
            appointment.cancellation_reason = reason or "Appointment cancelled"
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Refund %s issued but appointment %s was not updated", refund_id, appointment_id)
            raise UpstreamError("Refund created but failed to update appointment") from exc

        logger.info(
            "Refunded %s%% (%s minor units) for appointment %s, refund %s",
            percentage,
            refund_minor,
            appointment_id,
            refund_id,
        )
        return RefundResult(
            refund_id=refund_id,
            refund_amount=refund_amount,
            refund_percentage=percentage,
            currency=currency.upper(),
        )

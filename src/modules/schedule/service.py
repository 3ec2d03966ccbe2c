"""Business logic for end-time computation and staff availability."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import UpstreamError, ValidationError
from src.modules.appointments.models import Appointment
from src.shared.enums import AppointmentStatus

logger = logging.getLogger(__name__)

# Statuses that free the slot again.
NON_BLOCKING_STATUSES = (AppointmentStatus.CANCELLED,)


def calculate_end_time(start_time: time, duration_minutes: int) -> time:
    """Return ``start_time + duration_minutes`` on the same wall-clock day.

    Values are naive local times truncated to the minute. An appointment that
    would end at or after midnight is rejected rather than wrapped onto the
    same date.
    """
    if duration_minutes <= 0:
        raise ValidationError("Service duration must be positive")
    start = datetime.combine(date.min, start_time.replace(second=0, microsecond=0, tzinfo=None))
    end = start + timedelta(minutes=duration_minutes)
    if end.date() != start.date():
        raise ValidationError("Appointment must end before midnight")
    return end.time()


def overlaps(slot_a: tuple[time, time], slot_b: tuple[time, time]) -> bool:
    """Half-open interval overlap: [s1, e1) and [s2, e2)."""
    start_a, end_a = slot_a
    start_b, end_b = slot_b
    return start_a < end_b and start_b < end_a


async def is_staff_available(
    db: AsyncSession,
    staff_id: str,
    target_date: date,
    start_time: time,
    end_time: time,
    exclude_appointment_id: str | None = None,
) -> bool:
    """Return True when no live appointment of ``staff_id`` overlaps the range.

    Store failures raise ``UpstreamError`` so callers never book on an
    unanswered check.
    """
    stmt = select(func.count(Appointment.appointment_id)).where(
        Appointment.staff_id == staff_id,
        Appointment.appointment_date == target_date,
        Appointment.status.not_in(NON_BLOCKING_STATUSES),
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
    )
    if exclude_appointment_id:
        stmt = stmt.where(Appointment.appointment_id != exclude_appointment_id)
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        logger.error("Availability check failed for staff %s on %s", staff_id, target_date)
        raise UpstreamError("Failed to check availability") from exc
    return result.scalar_one() == 0

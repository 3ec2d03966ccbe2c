"""Appointment ORM model."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, DateTime, Enum, ForeignKey, Index, Numeric, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database import Base
from src.shared.enums import AppointmentStatus, PaymentStatus, enum_values
from src.shared.models import TimestampMixin
from src.shared.ulid import ULID_LENGTH, generate_ulid

if TYPE_CHECKING:  # pragma: no cover
    from src.modules.catalog.models import Service
    from src.modules.users.models import Profile


class Appointment(Base, TimestampMixin):
    """A booking of one service with one staff member.

    ``appointment_date``/``start_time``/``end_time`` are naive wall-clock values
    in the clinic's timezone; ``end_time`` is always derived from the service
    duration.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_staff_date", "staff_id", "appointment_date"),
        CheckConstraint("end_time > start_time", name="ck_appointments_time_order"),
    )

    appointment_id: Mapped[str] = mapped_column(String(ULID_LENGTH), primary_key=True, default=generate_ulid)
    patient_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.profile_id", ondelete="CASCADE"),
        nullable=False,
    )
    staff_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.profile_id", ondelete="RESTRICT"),
        nullable=False,
    )
    service_id: Mapped[str] = mapped_column(
        String(ULID_LENGTH),
        ForeignKey("services.service_id", ondelete="RESTRICT"),
        nullable=False,
    )
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(
            AppointmentStatus,
            values_callable=enum_values,
            validate_strings=True,
            name="appointmentstatus",
        ),
        default=AppointmentStatus.PENDING,
        nullable=False,
    )
    patient_notes: Mapped[str | None] = mapped_column(Text)
    staff_notes: Mapped[str | None] = mapped_column(Text)
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(
            PaymentStatus,
            values_callable=enum_values,
            validate_strings=True,
            name="paymentstatus",
        ),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    payment_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    payment_currency: Mapped[str | None] = mapped_column(String(3))
    stripe_session_id: Mapped[str | None] = mapped_column(String(255))
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(255), index=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    refund_reason: Mapped[str | None] = mapped_column(Text)

    patient: Mapped[Profile] = relationship(foreign_keys=[patient_id])
    staff: Mapped[Profile] = relationship(foreign_keys=[staff_id])
    service: Mapped[Service] = relationship(back_populates="appointments")

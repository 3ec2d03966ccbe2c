"""Appointments schemas."""

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from src.shared.enums import AppointmentStatus, PaymentOption, PaymentStatus


class AppointmentPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    appointment_id: str = Field(serialization_alias="id")
    patient_id: str
    staff_id: str
    service_id: str
    appointment_date: date
    start_time: time
    end_time: time
    status: AppointmentStatus
    patient_notes: str | None = None
    staff_notes: str | None = None
    cancellation_reason: str | None = None
    payment_status: PaymentStatus
    payment_amount: Decimal | None = None
    payment_currency: str | None = None
    stripe_session_id: str | None = None
    paid_at: datetime | None = None
    refund_amount: Decimal | None = None
    refunded_at: datetime | None = None
    refund_reason: str | None = None

    @field_serializer("start_time", "end_time")
    def _format_time(self, value: time) -> str:
        return value.strftime("%H:%M")


class AppointmentCreate(BaseModel):
    staff_id: str = Field(..., min_length=1)
    service_id: str = Field(..., min_length=1)
    appointment_date: date
    start_time: time
    patient_notes: str | None = None
    payment_option: PaymentOption = PaymentOption.PAY_NOW


class AppointmentUpdate(BaseModel):
    appointment_date: date | None = None
    start_time: time | None = None
    status: AppointmentStatus | None = None
    patient_notes: str | None = None
    staff_notes: str | None = None
    cancellation_reason: str | None = None


class AppointmentFilters(BaseModel):
    status: AppointmentStatus | None = None
    start_date: date | None = None
    end_date: date | None = None
    staff_id: str | None = None

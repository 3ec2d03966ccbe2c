"""Appointment service layer."""

from __future__ import annotations

import logging
from datetime import time

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    UpstreamError,
)
from src.core.permissions import Permission, has_permission
from src.modules.appointments.models import Appointment
from src.modules.appointments.schemas import AppointmentCreate, AppointmentFilters, AppointmentUpdate
from src.modules.catalog.models import Service
from src.modules.schedule.service import calculate_end_time, is_staff_available
from src.modules.users.models import Profile
from src.shared.enums import AppointmentStatus, PaymentOption, PaymentStatus, UserRole

logger = logging.getLogger(__name__)

STATUS_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}
OPEN_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})


def ensure_status_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    if current == target:
        return
    if target not in STATUS_TRANSITIONS[current]:
        raise InvalidStateError(f"Cannot change appointment status from {current} to {target}")


def can_manage_appointment(appointment: Appointment, caller: Profile) -> bool:
    """Return True for admins and the assigned staff member, False for the patient.

    Anyone else gets ``AuthorizationError``.
    """
    if has_permission(caller.role, Permission.VIEW_ALL_APPOINTMENTS):
        return True
    if (
        has_permission(caller.role, Permission.MANAGE_ASSIGNED_APPOINTMENTS)
        and appointment.staff_id == caller.profile_id
    ):
        return True
    if appointment.patient_id == caller.profile_id:
        return False
    raise AuthorizationError("You do not have access to this appointment")


def _truncate(value: time) -> time:
    return value.replace(second=0, microsecond=0, tzinfo=None)


class AppointmentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, payload: AppointmentCreate, caller: Profile) -> Appointment:
        service = await self._get_service(payload.service_id)
        await self._get_staff(payload.staff_id)

        start = _truncate(payload.start_time)
        end = calculate_end_time(start, service.duration_minutes)
        available = await is_staff_available(self.db, payload.staff_id, payload.appointment_date, start, end)
        if not available:
            raise ConflictError("Staff is not available at the selected time")

        if payload.payment_option == PaymentOption.PAY_LATER:
            status, payment_status = AppointmentStatus.CONFIRMED, PaymentStatus.PAY_LATER
        else:
            status, payment_status = AppointmentStatus.PENDING, PaymentStatus.PENDING

        appointment = Appointment(
            patient_id=caller.profile_id,
            staff_id=payload.staff_id,
            service_id=service.service_id,
            appointment_date=payload.appointment_date,
            start_time=start,
            end_time=end,
            status=status,
            payment_status=payment_status,
            patient_notes=payload.patient_notes,
        )
        self.db.add(appointment)
        await self._commit("Failed to create appointment")
        logger.info(
            "Booked appointment %s for staff %s on %s %s-%s",
            appointment.appointment_id,
            appointment.staff_id,
            appointment.appointment_date,
            start.strftime("%H:%M"),
            end.strftime("%H:%M"),
        )
        return await self.get_by_id(appointment.appointment_id)

    async def list_for(self, caller: Profile, filters: AppointmentFilters) -> list[Appointment]:
        stmt = select(Appointment).order_by(Appointment.appointment_date, Appointment.start_time)
        if not has_permission(caller.role, Permission.VIEW_ALL_APPOINTMENTS):
            stmt = stmt.where(
                or_(Appointment.patient_id == caller.profile_id, Appointment.staff_id == caller.profile_id)
            )
        if filters.status:
            stmt = stmt.where(Appointment.status == filters.status)
        if filters.start_date:
            stmt = stmt.where(Appointment.appointment_date >= filters.start_date)
        if filters.end_date:
            stmt = stmt.where(Appointment.appointment_date <= filters.end_date)
        if filters.staff_id:
            stmt = stmt.where(Appointment.staff_id == filters.staff_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_for(self, appointment_id: str, caller: Profile) -> Appointment:
        appointment = await self.get_by_id(appointment_id)
        can_manage_appointment(appointment, caller)
        return appointment

    async def update(self, appointment_id: str, payload: AppointmentUpdate, caller: Profile) -> Appointment:
        appointment = await self.get_by_id(appointment_id)
        manager = can_manage_appointment(appointment, caller)
        update_data = payload.model_dump(exclude_unset=True)
        if not update_data:
            return appointment

        if not manager:
            if "staff_notes" in update_data:
                raise AuthorizationError("Patients cannot edit staff notes")
            if update_data.get("status") not in (None, AppointmentStatus.CANCELLED):
                raise AuthorizationError("Patients can only cancel appointments")

        new_status = update_data.get("status")
        if new_status is not None:
            ensure_status_transition(appointment.status, new_status)

        new_date = update_data.get("appointment_date") or appointment.appointment_date
        new_start = _truncate(update_data.get("start_time") or appointment.start_time)
        rescheduled = new_date != appointment.appointment_date or new_start != appointment.start_time
        if rescheduled:
            if appointment.status not in OPEN_STATUSES:
                raise InvalidStateError("Only pending or confirmed appointments can be rescheduled")
            new_end = calculate_end_time(new_start, appointment.service.duration_minutes)
            available = await is_staff_available(
                self.db,
                appointment.staff_id,
                new_date,
                new_start,
                new_end,
                exclude_appointment_id=appointment.appointment_id,
            )
            if not available:
                raise ConflictError("Staff is not available at the selected time")
            appointment.appointment_date = new_date
            appointment.start_time = new_start
            appointment.end_time = new_end

        if new_status is not None:
            appointment.status = new_status
        for field in ("patient_notes", "staff_notes", "cancellation_reason"):
            if field in update_data:
                setattr(appointment, field, update_data[field])

        await self._commit("Failed to update appointment")
        return await self.get_by_id(appointment.appointment_id)

    async def delete(self, appointment_id: str) -> None:
        appointment = await self.get_by_id(appointment_id)
        await self.db.delete(appointment)
        await self._commit("Failed to delete appointment")
        logger.info("Deleted appointment %s", appointment_id)

    async def get_by_id(self, appointment_id: str) -> Appointment:
        stmt = (
            select(Appointment)
            .options(
                selectinload(Appointment.service),
                selectinload(Appointment.patient),
                selectinload(Appointment.staff),
            )
            .where(Appointment.appointment_id == appointment_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        appointment = result.scalar_one_or_none()
        if appointment is None:
            raise NotFoundError("Appointment not found")
        return appointment

    async def _get_service(self, service_id: str) -> Service:
        service = await self.db.get(Service, service_id)
        if service is None or not service.is_active:
            raise NotFoundError("Service not found")
        return service

    async def _get_staff(self, staff_id: str) -> Profile:
        staff = await self.db.get(Profile, staff_id)
        if staff is None or not staff.is_active or staff.role == UserRole.PATIENT:
            raise NotFoundError("Staff member not found")
        return staff

    async def _commit(self, failure_detail: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise UpstreamError(failure_detail) from exc

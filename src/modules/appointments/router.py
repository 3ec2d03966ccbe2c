"""Appointments API routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.core.deps import (
    require_appointment_delete,
    require_appointment_update,
    require_appointment_view,
    require_booking,
)
from src.modules.appointments.schemas import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentPublic,
    AppointmentUpdate,
)
from src.modules.appointments.service import AppointmentService
from src.modules.users.models import Profile
from src.shared.schemas import ResponseEnvelope

router = APIRouter(prefix="/api/v1/appointments", tags=["appointments"])


def get_service(db: AsyncSession = Depends(get_db)) -> AppointmentService:
    return AppointmentService(db)


@router.get("", response_model=ResponseEnvelope[list[AppointmentPublic]])
async def list_appointments(
    filters: AppointmentFilters = Depends(),
    current_user: Profile = Depends(require_appointment_view),
    service: AppointmentService = Depends(get_service),
) -> ResponseEnvelope[list[AppointmentPublic]]:
    items = await service.list_for(current_user, filters)
    return ResponseEnvelope(data=[AppointmentPublic.model_validate(item) for item in items])


@router.post("", response_model=ResponseEnvelope[AppointmentPublic], status_code=status.HTTP_201_CREATED)
async def create_appointment(
    payload: AppointmentCreate,
    current_user: Profile = Depends(require_booking),
    service: AppointmentService = Depends(get_service),
) -> ResponseEnvelope[AppointmentPublic]:
    appointment = await service.create(payload, current_user)
    return ResponseEnvelope(
        data=AppointmentPublic.model_validate(appointment),
        message="Appointment created successfully",
    )


@router.get("/{appointment_id}", response_model=ResponseEnvelope[AppointmentPublic])
async def get_appointment(
    appointment_id: str,
    current_user: Profile = Depends(require_appointment_view),
    service: AppointmentService = Depends(get_service),
) -> ResponseEnvelope[AppointmentPublic]:
    appointment = await service.get_for(appointment_id, current_user)
    return ResponseEnvelope(data=AppointmentPublic.model_validate(appointment))


@router.patch("/{appointment_id}", response_model=ResponseEnvelope[AppointmentPublic])
async def update_appointment(
    appointment_id: str,
    payload: AppointmentUpdate,
    current_user: Profile = Depends(require_appointment_update),
    service: AppointmentService = Depends(get_service),
) -> ResponseEnvelope[AppointmentPublic]:
    appointment = await service.update(appointment_id, payload, current_user)
    return ResponseEnvelope(
        data=AppointmentPublic.model_validate(appointment),
        message="Appointment updated successfully",
    )


@router.delete("/{appointment_id}", response_model=ResponseEnvelope[None])
async def delete_appointment(
    appointment_id: str,
    _: Profile = Depends(require_appointment_delete),
    service: AppointmentService = Depends(get_service),
) -> ResponseEnvelope[None]:
    await service.delete(appointment_id)
    return ResponseEnvelope(message="Appointment deleted successfully")

"""Admin service catalog routes."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.core.deps import require_service_admin
from src.core.exceptions import ConflictError, NotFoundError
from src.modules.appointments.models import Appointment
from src.modules.catalog.models import Service
from src.modules.catalog.schemas import ServiceCreate, ServicePublic, ServiceUpdate
from src.modules.users.models import Profile
from src.shared.schemas import ResponseEnvelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin/services", tags=["admin-services"])


async def _get_service(db: AsyncSession, service_id: str) -> Service:
    service = await db.get(Service, service_id)
    if service is None:
        raise NotFoundError("Service not found")
    return service


@router.post("", response_model=ResponseEnvelope[ServicePublic], status_code=status.HTTP_201_CREATED)
async def create_service(
    payload: ServiceCreate,
    _: Profile = Depends(require_service_admin),
    db: AsyncSession = Depends(get_db),
) -> ResponseEnvelope[ServicePublic]:
    service = Service(**payload.model_dump(), is_active=True)
    db.add(service)
    await db.commit()
    await db.refresh(service)
    return ResponseEnvelope(data=ServicePublic.model_validate(service), message="Service created successfully")


@router.patch("/{service_id}", response_model=ResponseEnvelope[ServicePublic])
async def update_service(
    service_id: str,
    payload: ServiceUpdate,
    _: Profile = Depends(require_service_admin),
    db: AsyncSession = Depends(get_db),
) -> ResponseEnvelope[ServicePublic]:
    service = await _get_service(db, service_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(service, field, value)
    await db.commit()
    await db.refresh(service)
    return ResponseEnvelope(data=ServicePublic.model_validate(service), message="Service updated successfully")


@router.delete("/{service_id}", response_model=ResponseEnvelope[None])
async def delete_service(
    service_id: str,
    _: Profile = Depends(require_service_admin),
    db: AsyncSession = Depends(get_db),
) -> ResponseEnvelope[None]:
    service = await _get_service(db, service_id)
    result = await db.execute(
        select(func.count(Appointment.appointment_id)).where(Appointment.service_id == service_id)
    )
    if result.scalar_one() > 0:
        raise ConflictError("Service has appointments; deactivate it instead")
    await db.delete(service)
    await db.commit()
    logger.info("Deleted service %s", service_id)
    return ResponseEnvelope(message="Service deleted successfully")

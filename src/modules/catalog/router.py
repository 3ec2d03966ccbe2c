"""Public service catalog routes."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.core.exceptions import NotFoundError
from src.modules.catalog.models import Service
from src.modules.catalog.schemas import ServicePublic
from src.shared.schemas import ResponseEnvelope

router = APIRouter(prefix="/api/v1/services", tags=["services"])


@router.get("", response_model=ResponseEnvelope[list[ServicePublic]])
async def list_services(
    include_inactive: bool = Query(default=False),
    db: AsyncSession = Depends(get_db),
) -> ResponseEnvelope[list[ServicePublic]]:
    stmt = select(Service).order_by(Service.name)
    if not include_inactive:
        stmt = stmt.where(Service.is_active.is_(True))
    result = await db.execute(stmt)
    return ResponseEnvelope(data=[ServicePublic.model_validate(row) for row in result.scalars().all()])


@router.get("/{service_id}", response_model=ResponseEnvelope[ServicePublic])
async def get_service(service_id: str, db: AsyncSession = Depends(get_db)) -> ResponseEnvelope[ServicePublic]:
    service = await db.get(Service, service_id)
    if service is None:
        raise NotFoundError("Service not found")
    return ResponseEnvelope(data=ServicePublic.model_validate(service))

"""Staff availability routes."""

from datetime import date, time

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.core.deps import get_current_user, require_availability_manager
from src.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from src.core.permissions import Permission, has_permission
from src.modules.schedule.models import StaffAvailability
from src.modules.schedule.schemas import (
    AvailabilityCheck,
    AvailabilityCreate,
    AvailabilityPublic,
    AvailabilityUpdate,
)
from src.modules.schedule.service import is_staff_available, overlaps
from src.modules.users.models import Profile
from src.shared.enums import UserRole, Weekday
from src.shared.schemas import ResponseEnvelope

router = APIRouter(prefix="/api/v1/availability", tags=["availability"])

WEEKDAY_ORDER = case(
    {day.value: index for index, day in enumerate(Weekday)},
    value=StaffAvailability.day_of_week,
)


def _ensure_can_manage(current_user: Profile, staff_id: str) -> None:
    if has_permission(current_user.role, Permission.MANAGE_ANY_AVAILABILITY):
        return
    if staff_id != current_user.profile_id:
        raise AuthorizationError("You can only manage your own availability")


async def _get_availability(db: AsyncSession, availability_id: str) -> StaffAvailability:
    result = await db.execute(
        select(StaffAvailability).where(StaffAvailability.availability_id == availability_id)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise NotFoundError("Availability not found")
    return record


async def _ensure_no_overlap(
    db: AsyncSession,
    staff_id: str,
    day_of_week: str,
    window: tuple[time, time],
    exclude_id: str | None = None,
) -> None:
    stmt = select(StaffAvailability).where(
        StaffAvailability.staff_id == staff_id,
        StaffAvailability.day_of_week == day_of_week,
    )
    if exclude_id:
        stmt = stmt.where(StaffAvailability.availability_id != exclude_id)
    existing = (await db.execute(stmt)).scalars().all()
    for row in existing:
        if overlaps((row.start_time, row.end_time), window):
            raise ConflictError("Availability overlaps an existing window for this day")


@router.get("", response_model=ResponseEnvelope[list[AvailabilityPublic]])
async def list_availability(
    staff_id: str | None = Query(default=None),
    day_of_week: Weekday | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> ResponseEnvelope[list[AvailabilityPublic]]:
    stmt = select(StaffAvailability).order_by(WEEKDAY_ORDER, StaffAvailability.start_time)
    if staff_id:
        stmt = stmt.where(StaffAvailability.staff_id == staff_id)
    if day_of_week:
        stmt = stmt.where(StaffAvailability.day_of_week == day_of_week.value)
    result = await db.execute(stmt)
    return ResponseEnvelope(data=[AvailabilityPublic.model_validate(row) for row in result.scalars().all()])


@router.get("/check", response_model=ResponseEnvelope[AvailabilityCheck])
async def check_availability(
    staff_id: str = Query(...),
    date_value: date = Query(..., alias="date"),
    start_time: time = Query(...),
    end_time: time = Query(...),
    _: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ResponseEnvelope[AvailabilityCheck]:
    if start_time >= end_time:
        raise ValidationError("End time must be after start time")
    available = await is_staff_available(db, staff_id, date_value, start_time, end_time)
    return ResponseEnvelope(
        data=AvailabilityCheck(
            staff_id=staff_id,
            target_date=date_value,
            start_time=start_time,
            end_time=end_time,
            available=available,
        )
    )


@router.post("", response_model=ResponseEnvelope[AvailabilityPublic], status_code=status.HTTP_201_CREATED)
async def create_availability(
    payload: AvailabilityCreate,
    current_user: Profile = Depends(require_availability_manager),
    db: AsyncSession = Depends(get_db),
) -> ResponseEnvelope[AvailabilityPublic]:
    _ensure_can_manage(current_user, payload.staff_id)
    staff = await db.get(Profile, payload.staff_id)
    if staff is None or staff.role == UserRole.PATIENT:
        raise NotFoundError("Staff member not found")

    await _ensure_no_overlap(
        db,
        payload.staff_id,
        payload.day_of_week.value,
        (payload.start_time, payload.end_time),
    )
    record = StaffAvailability(
        staff_id=payload.staff_id,
        day_of_week=payload.day_of_week.value,
        start_time=payload.start_time,
        end_time=payload.end_time,
        is_available=True,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return ResponseEnvelope(
        data=AvailabilityPublic.model_validate(record),
        message="Availability created successfully",
    )


@router.patch("/{availability_id}", response_model=ResponseEnvelope[AvailabilityPublic])
async def update_availability(
    availability_id: str,
    payload: AvailabilityUpdate,
    current_user: Profile = Depends(require_availability_manager),
    db: AsyncSession = Depends(get_db),
) -> ResponseEnvelope[AvailabilityPublic]:
    record = await _get_availability(db, availability_id)
    _ensure_can_manage(current_user, record.staff_id)
    update_data = payload.model_dump(exclude_unset=True, exclude_none=True)
    start = update_data.get("start_time", record.start_time)
    end = update_data.get("end_time", record.end_time)
    if start >= end:
        raise ValidationError("End time must be after start time")
    await _ensure_no_overlap(
        db,
        record.staff_id,
        record.day_of_week,
        (start, end),
        exclude_id=record.availability_id,
    )
    for field, value in update_data.items():
        setattr(record, field, value)
    await db.commit()
    await db.refresh(record)
    return ResponseEnvelope(
        data=AvailabilityPublic.model_validate(record),
        message="Availability updated successfully",
    )


@router.delete("/{availability_id}", response_model=ResponseEnvelope[None])
async def delete_availability(
    availability_id: str,
    current_user: Profile = Depends(require_availability_manager),
    db: AsyncSession = Depends(get_db),
) -> ResponseEnvelope[None]:
    record = await _get_availability(db, availability_id)
    _ensure_can_manage(current_user, record.staff_id)
    await db.delete(record)
    await db.commit()
    return ResponseEnvelope(message="Availability deleted successfully")

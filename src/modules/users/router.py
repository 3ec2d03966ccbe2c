"""Profile and user directory routes."""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.core.deps import get_current_user, get_token_subject
from src.core.exceptions import AuthorizationError, ConflictError, ValidationError
from src.modules.users.models import Profile
from src.modules.users.schemas import ProfileCreate, ProfilePublic, ProfileUpdate
from src.shared.enums import UserRole
from src.shared.schemas import ResponseEnvelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["users"])


@router.post("/profile", response_model=ResponseEnvelope[ProfilePublic], status_code=status.HTTP_201_CREATED)
async def create_profile(
    payload: ProfileCreate,
    subject: str = Depends(get_token_subject),
    db: AsyncSession = Depends(get_db),
) -> ResponseEnvelope[ProfilePublic]:
    """Create the clinic profile for a freshly signed-up auth account."""
    if payload.id != subject:
        raise AuthorizationError("Profile id must match the authenticated user")
    if payload.role != UserRole.PATIENT:
        raise AuthorizationError("Only patient profiles can be self-created")
    if await db.get(Profile, payload.id) is not None:
        raise ConflictError("Profile already exists")

    profile = Profile(
        profile_id=payload.id,
        email=payload.email.lower(),
        full_name=payload.full_name.strip(),
        role=payload.role,
    )
    db.add(profile)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Profile already exists")
    await db.refresh(profile)
    logger.info("Created profile %s", profile.profile_id)
    return ResponseEnvelope(data=ProfilePublic.model_validate(profile), message="Profile created successfully")


@router.get("/profile", response_model=ResponseEnvelope[ProfilePublic])
async def get_profile(current_user: Profile = Depends(get_current_user)) -> ResponseEnvelope[ProfilePublic]:
    return ResponseEnvelope(data=ProfilePublic.model_validate(current_user))


@router.patch("/profile", response_model=ResponseEnvelope[ProfilePublic])
async def update_profile(
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_user),
) -> ResponseEnvelope[ProfilePublic]:
    update_data = payload.model_dump(exclude_unset=True)
    if "full_name" in update_data:
        value = update_data["full_name"]
        cleaned = value.strip() if value is not None else ""
        if not cleaned:
            raise ValidationError("full_name cannot be empty")
        update_data["full_name"] = cleaned
    if not update_data:
        return ResponseEnvelope(data=ProfilePublic.model_validate(current_user))
    for key, value in update_data.items():
        setattr(current_user, key, value)
    await db.commit()
    await db.refresh(current_user)
    return ResponseEnvelope(
        data=ProfilePublic.model_validate(current_user),
        message="Profile updated successfully",
    )


@router.get("/users", response_model=ResponseEnvelope[list[ProfilePublic]])
async def list_users(
    role: UserRole | None = Query(default=None),
    _: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ResponseEnvelope[list[ProfilePublic]]:
    stmt = select(Profile).where(Profile.is_active.is_(True)).order_by(Profile.full_name)
    if role:
        stmt = stmt.where(Profile.role == role)
    result = await db.execute(stmt)
    return ResponseEnvelope(data=[ProfilePublic.model_validate(row) for row in result.scalars().all()])

"""Pydantic schemas for profiles."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.shared.enums import UserRole


class ProfilePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    profile_id: str = Field(serialization_alias="id")
    email: str
    full_name: str
    phone: str | None = None
    role: UserRole
    created_at: datetime


class ProfileCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=36)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    full_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = UserRole.PATIENT


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=32)

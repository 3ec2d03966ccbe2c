"""Catalog schemas."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.config import settings


class ServicePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    service_id: str = Field(serialization_alias="id")
    name: str
    description: str | None = None
    duration_minutes: int
    price: Decimal
    currency: str
    is_active: bool


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: str | None = None
    duration_minutes: int = Field(..., gt=0)
    price: Decimal = Field(..., ge=0)
    currency: str = Field(default_factory=lambda: settings.default_currency, min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.upper()


class ServiceUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=120)
    description: str | None = None
    duration_minutes: int | None = Field(None, gt=0)
    price: Decimal | None = Field(None, ge=0)
    is_active: bool | None = None

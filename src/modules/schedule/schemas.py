"""Schedule schemas."""

from datetime import date, time

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from src.shared.enums import Weekday


class AvailabilityPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    availability_id: str = Field(serialization_alias="id")
    staff_id: str
    day_of_week: Weekday
    start_time: time
    end_time: time
    is_available: bool

    @field_serializer("start_time", "end_time")
    def _format_time(self, value: time) -> str:
        return value.strftime("%H:%M")


class AvailabilityCreate(BaseModel):
    staff_id: str
    day_of_week: Weekday
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def validate_range(self) -> "AvailabilityCreate":
        if self.start_time >= self.end_time:
            raise ValueError("End time must be after start time")
        return self


class AvailabilityUpdate(BaseModel):
    start_time: time | None = None
    end_time: time | None = None
    is_available: bool | None = None


class AvailabilityCheck(BaseModel):
    staff_id: str
    target_date: date = Field(serialization_alias="date")
    start_time: time
    end_time: time
    available: bool

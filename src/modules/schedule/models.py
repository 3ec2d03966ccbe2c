"""Schedule ORM models."""

from __future__ import annotations

from datetime import time
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database import Base
from src.shared.enums import Weekday, enum_values
from src.shared.models import TimestampMixin
from src.shared.ulid import ULID_LENGTH, generate_ulid

WEEKDAY_VALUES = ", ".join(f"'{value}'" for value in enum_values(Weekday))

if TYPE_CHECKING:  # pragma: no cover
    from src.modules.users.models import Profile


class StaffAvailability(Base, TimestampMixin):
    """Weekly schedule template row for one staff member."""

    __tablename__ = "staff_availability"
    __table_args__ = (
        Index("ix_staff_availability_staff_day", "staff_id", "day_of_week"),
        CheckConstraint(
            f"day_of_week IN ({WEEKDAY_VALUES})",
            name="ck_staff_availability_weekday",
        ),
        CheckConstraint("end_time > start_time", name="ck_staff_availability_time_order"),
    )

    availability_id: Mapped[str] = mapped_column(String(ULID_LENGTH), primary_key=True, default=generate_ulid)
    staff_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.profile_id", ondelete="CASCADE"),
        nullable=False,
    )
    day_of_week: Mapped[str] = mapped_column(String(16), nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    staff: Mapped["Profile"] = relationship(back_populates="availability")

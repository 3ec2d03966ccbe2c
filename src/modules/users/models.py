"""ORM models for the users domain."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database import Base
from src.shared.enums import UserRole, enum_values
from src.shared.models import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing only
    from src.modules.schedule.models import StaffAvailability


class Profile(Base, TimestampMixin):
    """Clinic-side record for an auth provider account.

    ``profile_id`` is the auth provider's user id, so it is assigned by the
    caller instead of generated here.
    """

    __tablename__ = "profiles"

    profile_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32))
    role: Mapped[UserRole] = mapped_column(
        Enum(
            UserRole,
            values_callable=enum_values,
            validate_strings=True,
            name="userrole",
        ),
        nullable=False,
        default=UserRole.PATIENT,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    availability: Mapped[list[StaffAvailability]] = relationship(
        back_populates="staff",
        cascade="all,delete-orphan",
    )


# Late imports for type-checking relationship targets.
from src.modules.schedule.models import StaffAvailability  # noqa: E402

"""Role to capability mapping.

Every mutating route declares the permission it needs instead of comparing
role strings inline. Ownership checks (a patient touching someone else's
appointment) stay in the service layer because they need the loaded row.
"""

from enum import StrEnum

from src.shared.enums import UserRole


class Permission(StrEnum):
    BOOK_APPOINTMENT = "appointments:book"
    VIEW_APPOINTMENTS = "appointments:view"
    UPDATE_APPOINTMENT = "appointments:update"
    DELETE_APPOINTMENT = "appointments:delete"
    PAY_APPOINTMENT = "payments:checkout"
    REFUND_APPOINTMENT = "payments:refund"
    MANAGE_SERVICES = "services:manage"
    MANAGE_AVAILABILITY = "availability:manage"
    MANAGE_ANY_AVAILABILITY = "availability:manage_any"
    VIEW_ALL_APPOINTMENTS = "appointments:view_all"
    MANAGE_ASSIGNED_APPOINTMENTS = "appointments:manage_assigned"


_PATIENT = frozenset(
    {
        Permission.BOOK_APPOINTMENT,
        Permission.VIEW_APPOINTMENTS,
        Permission.UPDATE_APPOINTMENT,
        Permission.PAY_APPOINTMENT,
        Permission.REFUND_APPOINTMENT,
    }
)
_STAFF = _PATIENT | {
    Permission.MANAGE_AVAILABILITY,
    Permission.MANAGE_ASSIGNED_APPOINTMENTS,
}
_ADMIN = _STAFF | {
    Permission.DELETE_APPOINTMENT,
    Permission.MANAGE_SERVICES,
    Permission.MANAGE_ANY_AVAILABILITY,
    Permission.VIEW_ALL_APPOINTMENTS,
}

ROLE_PERMISSIONS: dict[UserRole, frozenset[Permission]] = {
    UserRole.PATIENT: _PATIENT,
    UserRole.STAFF: frozenset(_STAFF),
    UserRole.ADMIN: frozenset(_ADMIN),
}


def has_permission(role: UserRole, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())

"""FastAPI dependencies for authentication/authorization."""

from fastapi import Depends, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.core.exceptions import AuthorizationError
from src.core.permissions import Permission, has_permission
from src.core.security import TokenDecodeError, decode_access_token
from src.modules.users.models import Profile

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> AuthorizationError:
    return AuthorizationError(detail, status_code=status.HTTP_401_UNAUTHORIZED)


async def get_token_subject(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> str:
    """Return the auth provider's user id from the bearer token."""
    if credentials is None:
        raise _unauthorized("Missing authentication")
    try:
        payload = decode_access_token(credentials.credentials)
    except TokenDecodeError as exc:
        raise _unauthorized("Invalid token") from exc

    subject = payload.get("sub")
    if not subject:
        raise _unauthorized("Invalid token payload")
    return subject


async def get_current_user(
    subject: str = Depends(get_token_subject),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    result = await db.execute(select(Profile).where(Profile.profile_id == subject))
    profile = result.scalar_one_or_none()
    if profile is None or not profile.is_active:
        raise _unauthorized("Unauthorized")
    return profile


def require_permission(permission: Permission):
    async def dependency(current_user: Profile = Depends(get_current_user)) -> Profile:
        if not has_permission(current_user.role, permission):
            raise AuthorizationError("Forbidden")
        return current_user

    return dependency


require_booking = require_permission(Permission.BOOK_APPOINTMENT)
require_appointment_delete = require_permission(Permission.DELETE_APPOINTMENT)
require_service_admin = require_permission(Permission.MANAGE_SERVICES)
require_availability_manager = require_permission(Permission.MANAGE_AVAILABILITY)
require_appointment_view = require_permission(Permission.VIEW_APPOINTMENTS)
require_appointment_update = require_permission(Permission.UPDATE_APPOINTMENT)
require_checkout = require_permission(Permission.PAY_APPOINTMENT)
require_refund = require_permission(Permission.REFUND_APPOINTMENT)

"""FastAPI dependency injection utilities."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from dentbook.core.security import STAFF_ACTOR_TYPE, decode_access_token
from dentbook.db.session import get_db
from dentbook.services.notifications import (
    NotificationDispatcher,
    get_notification_dispatcher,
)

# Security scheme
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class StaffPrincipal:
    """Staff member identified by a bearer token from the account system."""

    id: str
    email: str | None = None
    role: str | None = None


async def get_current_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> dict | None:
    """Extract and decode the current JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Decoded token payload or None
    """
    if not credentials:
        return None

    return decode_access_token(credentials.credentials)


async def get_current_staff(
    token: Annotated[dict | None, Depends(get_current_token)],
) -> StaffPrincipal:
    """Get the staff member making the request.

    Raises:
        HTTPException: 401 without a valid token, 403 for non-staff tokens
    """
    if not token or not token.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if token.get("actor_type") != STAFF_ACTOR_TYPE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff authentication required",
        )

    return StaffPrincipal(
        id=str(token["sub"]),
        email=token.get("email"),
        role=token.get("role"),
    )


# Type aliases for cleaner dependency injection
CurrentStaff = Annotated[StaffPrincipal, Depends(get_current_staff)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)]

"""API dependencies for authentication and common operations."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.middleware import get_client_ip
from app.core.permissions import ActorContext, admin_gate
from app.core.security import token_subject
from app.database import get_db
from app.models.user import Profile

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Profile:
    """Get the current authenticated user from JWT token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    user = await db.get(Profile, token_subject(credentials.credentials))
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user


async def get_actor(
    request: Request,
    current_user: Annotated[Profile, Depends(get_current_user)],
) -> ActorContext:
    """The caller as an explicit context for service calls."""
    return ActorContext(
        user_id=current_user.user_id,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


async def get_current_admin(
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ActorContext:
    """Require a stored admin role. Token role claims are ignored."""
    if not await admin_gate.is_admin(db, actor.user_id):
        raise AuthorizationError("Admin access required")
    return actor

"""Role model and the admin authorization gate."""

import logging
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking
from app.models.user import UserRoleAssignment

logger = logging.getLogger(__name__)


class ActorRole(str, Enum):
    """Capacity in which a user acts on a booking."""

    RENTER = "renter"
    COMPANION = "companion"
    ADMIN = "admin"


@dataclass(frozen=True)
class ActorContext:
    """The authenticated caller, passed explicitly into every service call."""

    user_id: UUID
    ip_address: str | None = None
    user_agent: str | None = None


class AdminAuthorizationGate:
    """Answers "is this user an admin right now?" from stored role rows.

    Every call hits the database. Nothing is cached, so a revoked admin loses
    access on their next request.
    """

    async def is_admin(self, db: AsyncSession, user_id: UUID) -> bool:
        try:
            result = await db.execute(
                select(UserRoleAssignment.id).where(
                    UserRoleAssignment.user_id == user_id,
                    UserRoleAssignment.role == ActorRole.ADMIN.value,
                )
            )
            return result.first() is not None
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Admin role lookup failed for user_id={user_id}: {e}")
            return False

    async def has_role(self, db: AsyncSession, user_id: UUID, role: ActorRole) -> bool:
        """Check a stored role assignment. Fails closed like :meth:`is_admin`."""
        try:
            result = await db.execute(
                select(UserRoleAssignment.id).where(
                    UserRoleAssignment.user_id == user_id,
                    UserRoleAssignment.role == role.value,
                )
            )
            return result.first() is not None
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Role lookup ({role.value}) failed for user_id={user_id}: {e}")
            return False


admin_gate = AdminAuthorizationGate()


async def resolve_actor_role(
    db: AsyncSession,
    actor: ActorContext,
    booking: Booking,
    gate: AdminAuthorizationGate = admin_gate,
) -> ActorRole | None:
    """Work out how ``actor`` relates to ``booking``.

    Admin wins over party membership. Returns ``None`` for an unrelated user.
    """
    if await gate.is_admin(db, actor.user_id):
        return ActorRole.ADMIN
    if actor.user_id == booking.companion_id:
        return ActorRole.COMPANION
    if actor.user_id == booking.renter_id:
        return ActorRole.RENTER
    return None

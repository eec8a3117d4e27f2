"""Admin user moderation service."""

import logging
from collections import defaultdict
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.core.permissions import ActorContext, ActorRole, AdminAuthorizationGate, admin_gate
from app.models.user import Profile, UserRoleAssignment
from app.services.audit_service import AuditService, audit_service

logger = logging.getLogger(__name__)


class UserService:
    """Listing and moderating renter and companion accounts.

    Accounts are suspended, never deleted; bookings keep pointing at them.
    """

    def __init__(
        self,
        audit: AuditService = audit_service,
        gate: AdminAuthorizationGate = admin_gate,
    ) -> None:
        self.audit = audit
        self.gate = gate

    async def list_users(self, db: AsyncSession) -> tuple[list[Profile], list[Profile]]:
        """Return ``(renters, companions)``, newest first.

        Users holding the companion role are companions; everyone else is a renter.
        Admin-only accounts are left out.
        """
        role_rows = await db.execute(select(UserRoleAssignment.user_id, UserRoleAssignment.role))
        roles_by_user: dict[UUID, set[str]] = defaultdict(set)
        for user_id, role in role_rows.all():
            roles_by_user[user_id].add(role)

        result = await db.execute(select(Profile).order_by(Profile.created_at.desc()))
        renters: list[Profile] = []
        companions: list[Profile] = []
        for profile in result.scalars().all():
            roles = roles_by_user.get(profile.user_id, set())
            if ActorRole.COMPANION.value in roles:
                companions.append(profile)
            elif ActorRole.RENTER.value in roles or not roles:
                renters.append(profile)
        return renters, companions

    async def _get_profile(self, db: AsyncSession, user_id: UUID) -> Profile:
        profile = await db.get(Profile, user_id)
        if not profile:
            raise NotFoundError("User", str(user_id))
        return profile

    async def set_verified(
        self, db: AsyncSession, actor: ActorContext, user_id: UUID, verified: bool
    ) -> Profile:
        """Verify or unverify a companion."""
        profile = await self._get_profile(db, user_id)
        if not await self.gate.has_role(db, user_id, ActorRole.COMPANION):
            raise ValidationError("Only companions can be verified")

        old = profile.is_verified
        profile.is_verified = verified
        await self.audit.log_admin_action(
            db=db,
            actor=actor,
            action="user_verify" if verified else "user_unverify",
            resource_type="profile",
            resource_id=user_id,
            old_values={"is_verified": old},
            new_values={"is_verified": verified},
        )
        await db.flush()
        logger.info(f"Companion user_id={user_id} verified={verified} by admin_id={actor.user_id}")
        return profile

    async def set_active(
        self, db: AsyncSession, actor: ActorContext, user_id: UUID, active: bool
    ) -> Profile:
        """Suspend or reactivate an account."""
        if user_id == actor.user_id and not active:
            raise ValidationError("You cannot suspend your own account")

        profile = await self._get_profile(db, user_id)
        old = profile.is_active
        profile.is_active = active
        if not active:
            profile.is_online = False
        await self.audit.log_admin_action(
            db=db,
            actor=actor,
            action="user_activate" if active else "user_suspend",
            resource_type="profile",
            resource_id=user_id,
            old_values={"is_active": old},
            new_values={"is_active": active},
        )
        await db.flush()
        logger.info(f"User user_id={user_id} active={active} by admin_id={actor.user_id}")
        return profile


user_service = UserService()

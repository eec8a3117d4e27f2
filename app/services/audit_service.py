"""Moderation audit trail service."""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import ActorContext
from app.models.admin import AuditLog


class AuditService:
    """Service for append-only logging of admin moderation actions."""

    MODERATION_ACTIONS = {
        "booking_approve",
        "booking_reject",
        "booking_cancel",
        "booking_complete",
        "user_verify",
        "user_unverify",
        "user_suspend",
        "user_activate",
    }

    async def log_admin_action(
        self,
        db: AsyncSession,
        actor: ActorContext,
        action: str,
        resource_type: str,
        resource_id: UUID,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Log an admin action (append-only).

        Args:
            db: Database session
            actor: Admin performing the action
            action: Action name (e.g., "booking_approve")
            resource_type: Resource type (e.g., "booking", "profile")
            resource_id: Resource ID
            old_values: Previous state
            new_values: New state

        Returns:
            Created audit log entry
        """
        if action not in self.MODERATION_ACTIONS:
            raise ValueError(f"Unknown moderation action: {action}")

        audit = AuditLog(
            user_id=actor.user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values=old_values,
            new_values=new_values,
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
        )
        db.add(audit)
        return audit

    async def log_booking_transition(
        self,
        db: AsyncSession,
        actor: ActorContext,
        booking_id: UUID,
        old_status: str,
        new_status: str,
        notes: str | None = None,
    ) -> AuditLog:
        """Log a booking status change made with admin authority."""
        action = {
            "approved": "booking_approve",
            "rejected": "booking_reject",
            "cancelled": "booking_cancel",
            "completed": "booking_complete",
        }[new_status]
        new_values: dict[str, Any] = {"status": new_status}
        if notes:
            new_values["notes"] = notes

        return await self.log_admin_action(
            db=db,
            actor=actor,
            action=action,
            resource_type="booking",
            resource_id=booking_id,
            old_values={"status": old_status},
            new_values=new_values,
        )

    async def list_entries(
        self,
        db: AsyncSession,
        resource_type: str | None = None,
        action: str | None = None,
        limit: int = 100,
    ) -> list[AuditLog]:
        """Most recent audit entries, newest first."""
        query = select(AuditLog).order_by(AuditLog.created_at.desc())
        if resource_type:
            query = query.where(AuditLog.resource_type == resource_type)
        if action:
            query = query.where(AuditLog.action == action)
        result = await db.execute(query.limit(limit))
        return list(result.scalars().all())


audit_service = AuditService()

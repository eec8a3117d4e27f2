"""Admin back-office endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin, get_db
from app.config import local_today
from app.core.permissions import ActorContext
from app.domain.booking_state import BookingStatus
from app.models.admin import AuditLog
from app.models.booking import Booking
from app.models.user import Profile
from app.schemas.admin import AuditLogResponse, DashboardStats
from app.schemas.booking import (
    BookingApproveRequest,
    BookingCancelRequest,
    BookingDetailResponse,
    BookingFilters,
    BookingListResponse,
    BookingRejectRequest,
    BookingResponse,
    StatusHistoryItem,
)
from app.schemas.user import AdminUserListResponse, ProfileResponse
from app.services.audit_service import audit_service
from app.services.booking_service import booking_service
from app.services.dashboard_service import dashboard_service
from app.services.user_service import user_service

router = APIRouter()


# ============ DASHBOARD ============


@router.get("/dashboard", response_model=DashboardStats)
async def get_dashboard(
    admin: Annotated[ActorContext, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DashboardStats:
    """Headline statistics."""
    return await dashboard_service.get_dashboard_stats(db, local_today())


# ============ BOOKINGS ============


@router.get("/bookings", response_model=BookingListResponse)
async def list_bookings(
    admin: Annotated[ActorContext, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    date_from: date | None = None,
    date_to: date | None = None,
    companion_id: UUID | None = None,
    search: str | None = Query(default=None, max_length=100),
) -> BookingListResponse:
    """All bookings matching the filters, newest first."""
    filters = BookingFilters(
        status=status_filter or "all",
        date_from=date_from,
        date_to=date_to,
        companion_id=companion_id,
        search=search,
    )
    bookings = await booking_service.fetch_bookings(db, filters)
    return BookingListResponse(bookings=bookings, total=len(bookings))


@router.get("/bookings/{booking_id}", response_model=BookingDetailResponse)
async def get_booking_detail(
    booking_id: UUID,
    admin: Annotated[ActorContext, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingDetailResponse:
    """Booking detail with full status history."""
    detail = await booking_service.get_with_parties(db, booking_id)
    history = await booking_service.get_history(db, booking_id)
    return BookingDetailResponse(
        **detail.model_dump(),
        status_history=[StatusHistoryItem.model_validate(h) for h in history],
    )


@router.post("/bookings/{booking_id}/approve", response_model=BookingResponse)
async def approve_booking(
    booking_id: UUID,
    admin: Annotated[ActorContext, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    request: BookingApproveRequest | None = None,
) -> Booking:
    """Approve a pending booking."""
    notes = request.notes if request else None
    return await booking_service.approve(db, admin, booking_id, notes)


@router.post("/bookings/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: UUID,
    admin: Annotated[ActorContext, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    request: BookingRejectRequest | None = None,
) -> Booking:
    """Reject a pending booking."""
    reason = request.reason if request else None
    return await booking_service.reject(db, admin, booking_id, reason)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    admin: Annotated[ActorContext, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    request: BookingCancelRequest | None = None,
) -> Booking:
    """Cancel a pending or approved booking."""
    reason = request.reason if request else None
    return await booking_service.cancel(db, admin, booking_id, reason)


# ============ USERS ============


@router.get("/users", response_model=AdminUserListResponse)
async def get_users(
    admin: Annotated[ActorContext, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AdminUserListResponse:
    """Renters and companions."""
    renters, companions = await user_service.list_users(db)
    return AdminUserListResponse(
        renters=[ProfileResponse.model_validate(p) for p in renters],
        companions=[ProfileResponse.model_validate(p) for p in companions],
    )


@router.post("/users/{user_id}/verify", response_model=ProfileResponse)
async def verify_companion(
    user_id: UUID,
    admin: Annotated[ActorContext, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Profile:
    """Mark a companion verified."""
    return await user_service.set_verified(db, admin, user_id, True)


@router.post("/users/{user_id}/unverify", response_model=ProfileResponse)
async def unverify_companion(
    user_id: UUID,
    admin: Annotated[ActorContext, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Profile:
    """Withdraw a companion's verification."""
    return await user_service.set_verified(db, admin, user_id, False)


@router.post("/users/{user_id}/suspend", response_model=ProfileResponse)
async def suspend_user(
    user_id: UUID,
    admin: Annotated[ActorContext, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Profile:
    """Suspend a user account."""
    return await user_service.set_active(db, admin, user_id, False)


@router.post("/users/{user_id}/activate", response_model=ProfileResponse)
async def activate_user(
    user_id: UUID,
    admin: Annotated[ActorContext, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Profile:
    """Reactivate a suspended account."""
    return await user_service.set_active(db, admin, user_id, True)


# ============ AUDIT LOGS ============


@router.get("/audit-logs", response_model=list[AuditLogResponse])
async def get_audit_logs(
    admin: Annotated[ActorContext, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    resource_type: str | None = None,
    action: str | None = None,
    limit: int = Query(default=100, ge=1, le=500),
) -> list[AuditLog]:
    """Get audit logs."""
    return await audit_service.list_entries(db, resource_type=resource_type, action=action, limit=limit)

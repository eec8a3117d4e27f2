"""Booking endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_actor, get_db
from app.core.exceptions import AuthorizationError
from app.core.permissions import ActorContext, admin_gate
from app.domain.booking_state import BookingStatus
from app.models.booking import Booking
from app.schemas.booking import (
    BookingApproveRequest,
    BookingCancelRequest,
    BookingCompleteRequest,
    BookingCreate,
    BookingDetailResponse,
    BookingFilters,
    BookingListResponse,
    BookingRejectRequest,
    BookingResponse,
    CompanionBookingStats,
    StatusHistoryItem,
)
from app.services.booking_service import booking_service

router = APIRouter()


async def _require_party_or_admin(
    db: AsyncSession, actor: ActorContext, booking: Booking
) -> None:
    if actor.user_id in (booking.renter_id, booking.companion_id):
        return
    if await admin_gate.is_admin(db, actor.user_id):
        return
    raise AuthorizationError("You don't have permission to access this booking")


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Request a booking with a companion."""
    return await booking_service.create_booking(db, actor, booking_data)


@router.get("/", response_model=BookingListResponse)
async def get_my_bookings(
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    party: str = Query(default="renter", alias="as", pattern="^(renter|companion)$"),
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    date_from: date | None = None,
    date_to: date | None = None,
) -> BookingListResponse:
    """Get bookings where the caller is the renter or the companion."""
    filters = BookingFilters(
        status=status_filter or "all",
        date_from=date_from,
        date_to=date_to,
        renter_id=actor.user_id if party == "renter" else None,
        companion_id=actor.user_id if party == "companion" else None,
    )
    bookings = await booking_service.fetch_bookings(db, filters)
    return BookingListResponse(bookings=bookings, total=len(bookings))


@router.get("/stats", response_model=CompanionBookingStats)
async def get_my_booking_stats(
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CompanionBookingStats:
    """Dashboard numbers for the caller's incoming bookings."""
    return await booking_service.companion_stats(db, actor.user_id)


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: UUID,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingDetailResponse:
    """Get a booking with its status history."""
    booking = await booking_service.get_by_id(db, booking_id)
    await _require_party_or_admin(db, actor, booking)
    detail = await booking_service.get_with_parties(db, booking_id)
    history = await booking_service.get_history(db, booking_id)
    return BookingDetailResponse(
        **detail.model_dump(),
        status_history=[StatusHistoryItem.model_validate(h) for h in history],
    )


@router.get("/{booking_id}/history", response_model=list[StatusHistoryItem])
async def get_booking_history(
    booking_id: UUID,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[StatusHistoryItem]:
    """Get a booking's status history, oldest first."""
    booking = await booking_service.get_by_id(db, booking_id)
    await _require_party_or_admin(db, actor, booking)
    history = await booking_service.get_history(db, booking_id)
    return [StatusHistoryItem.model_validate(h) for h in history]


@router.post("/{booking_id}/approve", response_model=BookingResponse)
async def approve_booking(
    booking_id: UUID,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    request: BookingApproveRequest | None = None,
) -> Booking:
    """Approve a pending booking (companion or admin)."""
    notes = request.notes if request else None
    return await booking_service.approve(db, actor, booking_id, notes)


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: UUID,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    request: BookingRejectRequest | None = None,
) -> Booking:
    """Reject a pending booking with a reason (companion or admin)."""
    reason = request.reason if request else None
    return await booking_service.reject(db, actor, booking_id, reason)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    request: BookingCancelRequest | None = None,
) -> Booking:
    """Cancel a pending or approved booking (renter or admin)."""
    reason = request.reason if request else None
    return await booking_service.cancel(db, actor, booking_id, reason)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: UUID,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    request: BookingCompleteRequest | None = None,
) -> Booking:
    """Mark an approved booking completed after its slot ends (companion or admin)."""
    notes = request.notes if request else None
    return await booking_service.complete(db, actor, booking_id, notes)

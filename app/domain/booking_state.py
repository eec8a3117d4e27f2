"""Booking state machine.

Pure decision logic for booking status changes. Nothing here touches the
database; callers load the booking, resolve the actor's role and then ask
:func:`validate_transition` whether the change is legal.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from app.core.exceptions import InvalidTransition, MissingReason, Unauthorized
from app.core.permissions import ActorRole


class BookingStatus(str, Enum):
    """Lifecycle states of a booking."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {BookingStatus.REJECTED, BookingStatus.COMPLETED, BookingStatus.CANCELLED}
)

_COMPANION_OR_ADMIN = frozenset({ActorRole.COMPANION, ActorRole.ADMIN})
_RENTER_OR_ADMIN = frozenset({ActorRole.RENTER, ActorRole.ADMIN})

# (current, requested) -> roles allowed to perform it
BOOKING_TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], frozenset[ActorRole]] = {
    (BookingStatus.PENDING, BookingStatus.APPROVED): _COMPANION_OR_ADMIN,
    (BookingStatus.PENDING, BookingStatus.REJECTED): _COMPANION_OR_ADMIN,
    (BookingStatus.APPROVED, BookingStatus.COMPLETED): _COMPANION_OR_ADMIN,
    (BookingStatus.PENDING, BookingStatus.CANCELLED): _RENTER_OR_ADMIN,
    (BookingStatus.APPROVED, BookingStatus.CANCELLED): _RENTER_OR_ADMIN,
}

REASON_REQUIRED = frozenset({BookingStatus.REJECTED})


def allowed_targets(current: BookingStatus | str) -> set[BookingStatus]:
    """Statuses reachable from ``current`` by some role."""
    current = BookingStatus(current)
    return {target for (source, target) in BOOKING_TRANSITIONS if source == current}


def validate_transition(
    current: BookingStatus | str,
    requested: BookingStatus | str,
    actor_role: ActorRole | None,
    *,
    reason: str | None = None,
    scheduled_end: datetime | None = None,
    now: datetime | None = None,
) -> BookingStatus:
    """Decide whether ``actor_role`` may move a booking to ``requested``.

    Returns the new status on success. ``actor_role`` is ``None`` for an
    actor who is neither a party to the booking nor an admin.

    Raises:
        InvalidTransition: the pair is not in the transition table, or a
            completion is requested before ``scheduled_end``.
        MissingReason: the transition needs a reason and none was given.
        Unauthorized: the pair is legal but not for this role.
    """
    current = BookingStatus(current)
    requested = BookingStatus(requested)

    allowed_roles = BOOKING_TRANSITIONS.get((current, requested))
    if allowed_roles is None:
        if current in TERMINAL_STATUSES:
            detail = f"Booking is already {current.value} and can no longer change"
        else:
            options = ", ".join(sorted(s.value for s in allowed_targets(current)))
            detail = (
                f"Cannot move a booking from {current.value} to {requested.value} "
                f"(allowed: {options})"
            )
        raise InvalidTransition(current.value, requested.value, detail=detail)

    if requested in REASON_REQUIRED and not (reason and reason.strip()):
        raise MissingReason(f"A reason is required to mark a booking {requested.value}")

    if actor_role not in allowed_roles:
        raise Unauthorized(
            f"Role '{actor_role.value if actor_role else 'none'}' may not move a "
            f"booking from {current.value} to {requested.value}"
        )

    if requested is BookingStatus.COMPLETED and scheduled_end is not None:
        now = now or datetime.now(UTC)
        if now < scheduled_end:
            raise InvalidTransition(
                current.value,
                requested.value,
                detail="Booking cannot be completed before its scheduled end time",
            )

    return requested

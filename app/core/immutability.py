"""Append-only enforcement for audit records using SQLAlchemy events."""

import logging
from datetime import UTC, datetime

from sqlalchemy import event

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify an append-only record."""

    def __init__(self, model_name: str, operation: str, record_id: str):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot {operation} {model_name} record {record_id}. "
            "Audit records are append-only."
        )


def _log_immutability_violation(model_name: str, operation: str, record_id: str) -> None:
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to {operation} {model_name} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def _forbid(model, operation: str) -> None:
    model_name = model.__name__
    event_name = "before_update" if operation == "UPDATE" else "before_delete"

    @event.listens_for(model, event_name)
    def prevent(mapper, connection, target):
        _log_immutability_violation(model_name, operation, str(target.id))
        raise ImmutabilityViolationError(model_name, operation, str(target.id))


def register_immutability_enforcement() -> None:
    """Register listeners that block UPDATE and DELETE on audit tables.

    Safe to call more than once.
    """
    global _registered
    if _registered:
        return

    from app.models.admin import AuditLog
    from app.models.booking import BookingStatusHistory

    for model in (BookingStatusHistory, AuditLog):
        _forbid(model, "UPDATE")
        _forbid(model, "DELETE")

    _registered = True
    logger.info("Append-only enforcement registered for status history and audit log")

# Overview: Error taxonomy for the booking engine; each error renders as a typed result.

from __future__ import annotations

from typing import Any


class BookingError(Exception):
    """
    Base class for every failure the booking engine reports to callers.

    Each subclass carries a stable machine-readable `code` and an HTTP status
    so the API layer can render a precise message without string matching.
    """
    code = "BOOKING_ERROR"
    http_status = 400

    def __init__(self, message: str, *, data: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.data = data or {}

    def to_result(self) -> dict:
        return {
            "success": False,
            "code": self.code,
            "message": self.message,
            "data": self.data,
        }


class ValidationError(BookingError):
    """400-level input problem (missing field, malformed payload)."""
    code = "VALIDATION_ERROR"
    http_status = 400


class NotFound(BookingError):
    """Asset or booking header does not exist."""
    code = "NOT_FOUND"
    http_status = 404


class InvalidPrecondition(BookingError):
    """Asset status is not in the allowed set for the requested transition."""
    code = "INVALID_PRECONDITION"
    http_status = 422

    def __init__(self, message: str, *, actual: str | None, allowed, data: dict[str, Any] | None = None):
        payload = dict(data or {})
        payload["actual_status"] = actual
        payload["allowed_statuses"] = sorted(str(getattr(s, "value", s)) for s in allowed)
        super().__init__(message, data=payload)
        self.actual = actual
        self.allowed = tuple(allowed)


class AlreadyAttached(BookingError):
    """Duplicate scan into the same open booking."""
    code = "ALREADY_ATTACHED"
    http_status = 409


class RoutingMismatch(BookingError):
    """Booking origin does not match where the asset was last sent."""
    code = "ROUTING_MISMATCH"
    http_status = 409


class IllegalTransition(BookingError):
    """Header (or asset) is not in a state that permits the operation."""
    code = "ILLEGAL_TRANSITION"
    http_status = 409


class Conflict(BookingError):
    """Reference code collision; the caller should regenerate and retry."""
    code = "CONFLICT"
    http_status = 409


class InfrastructureFailure(BookingError):
    """Persistence layer unavailable. Never retried by the engine."""
    code = "INFRASTRUCTURE_FAILURE"
    http_status = 503


class LedgerImmutableError(RuntimeError):
    """Raised when code attempts to update or delete a ledger row."""

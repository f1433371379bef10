from __future__ import annotations

from typing import Any, Optional


class BookingError(Exception):
    """Base class for errors surfaced to callers. ``status_code`` is the HTTP mapping."""

    status_code = 500

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def payload(self) -> dict[str, Any]:
        return {"error": self.message, **self.details}


class ValidationError(BookingError):
    status_code = 400


class NotFoundError(BookingError):
    status_code = 404


class OwnershipError(BookingError):
    status_code = 403


class RateLimitError(BookingError):
    status_code = 429


class TransientStoreError(BookingError):
    status_code = 503


class ConflictError(BookingError):
    status_code = 409

    def __init__(self, message: str, *, slot_status: Optional[list[dict[str, Any]]] = None) -> None:
        super().__init__(message, details={"slotStatus": slot_status} if slot_status else None)
        self.slot_status = slot_status or []


class DuplicateBookingError(ConflictError):
    pass


class SlotFullError(ConflictError):
    pass


class RaceLostError(ConflictError):
    def __init__(
        self,
        message: str,
        *,
        batch_id: str,
        signup_ids: list[int],
        slot_status: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message, slot_status=slot_status)
        self.batch_id = batch_id
        self.signup_ids = signup_ids


class AlreadyCancelledError(ConflictError):
    pass


class DeleteBlockedError(ConflictError):
    status_code = 400

    def __init__(self, message: str, *, blocked: list[dict[str, Any]]) -> None:
        super().__init__(message)
        self.blocked = blocked
        self.details = {"blockedSlots": blocked, "affectedCount": sum(b["activeBookings"] for b in blocked)}

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from ..models import Signup, Slot
from .contact import Contact, is_valid_email, is_valid_phone, normalize_phone, sanitize_input
from .errors import ValidationError

REASON_MISSING = "Slot data missing"
REASON_DUPLICATE = "Already booked"
REASON_FULL = "Slot full"


@dataclass(frozen=True)
class BookingLimits:
    max_slots: int = 10
    min_name_length: int = 2
    max_name_length: int = 100
    max_email_length: int = 254
    max_phone_length: int = 20
    max_notes_length: int = 500
    max_category_length: int = 50


@dataclass(frozen=True)
class BookingRequest:
    name: str
    contact: Contact
    notes: str
    category: str
    slot_ids: tuple[int, ...]


@dataclass(frozen=True)
class SlotSnapshot:
    slot: Optional[Slot]
    contact_has_active_signup: bool


def build_booking_request(
    *,
    name: Any,
    phone: Any,
    email: Any,
    notes: Any,
    category: Any,
    slot_ids: Any,
    limits: BookingLimits,
) -> BookingRequest:
    """
    Sanitize and validate a raw booking submission. Every problem is reported at once,
    joined with ``; ``, and nothing has been read or written when this raises.
    """
    errors: list[str] = []

    clean_name = sanitize_input(name, limits.max_name_length)
    if len(clean_name) < limits.min_name_length:
        errors.append(
            f"Name is required (min {limits.min_name_length}, max {limits.max_name_length} characters)."
        )

    raw_phone = sanitize_input(phone, limits.max_phone_length)
    clean_email = sanitize_input(email, limits.max_email_length).lower()
    if not raw_phone and not clean_email:
        errors.append("A phone number or email address is required.")
    if raw_phone and not is_valid_phone(raw_phone):
        errors.append("Valid 10-digit phone number is required.")
    if clean_email and not is_valid_email(clean_email, max_length=limits.max_email_length):
        errors.append("Invalid email address.")

    if category is not None and len(str(category).strip()) > limits.max_category_length:
        errors.append(f"Category must be at most {limits.max_category_length} characters.")
    if notes is not None and len(str(notes)) > limits.max_notes_length:
        errors.append(f"Notes must be less than {limits.max_notes_length} characters.")

    ids: list[int] = []
    if not isinstance(slot_ids, (list, tuple)) or len(slot_ids) == 0:
        errors.append("At least one slot must be selected.")
    else:
        if len(slot_ids) > limits.max_slots:
            errors.append(f"Only up to {limits.max_slots} slots allowed.")
        if not all(isinstance(i, int) and not isinstance(i, bool) and i > 0 for i in slot_ids):
            errors.append("Invalid slot IDs provided.")
        elif len(set(slot_ids)) != len(slot_ids):
            errors.append("Each slot may only be selected once.")
        else:
            ids = list(slot_ids)

    if errors:
        raise ValidationError("; ".join(errors))

    return BookingRequest(
        name=clean_name,
        contact=Contact(phone=normalize_phone(raw_phone), email=clean_email),
        notes=sanitize_input(notes, limits.max_notes_length),
        category=sanitize_input(category, limits.max_category_length),
        slot_ids=tuple(ids),
    )


def slot_conflict_reason(snapshot: SlotSnapshot) -> Optional[str]:
    """Pure per-slot check. Returns ``None`` when the slot can take one more signup."""
    if snapshot.slot is None:
        return REASON_MISSING
    if snapshot.contact_has_active_signup:
        return REASON_DUPLICATE
    if snapshot.slot.taken >= snapshot.slot.capacity:
        return REASON_FULL
    return None


def over_capacity(active: Sequence[Signup], capacity: int) -> list[Signup]:
    """
    Active signups for one slot beyond its capacity, in append order. Every concurrent
    booker derives the same list from the same rows, so exactly the late writers lose.
    """
    ordered = sorted(active, key=lambda s: s.row if s.row is not None else -1)
    return ordered[max(capacity, 0):]


def clamp_taken(taken: int, capacity: int) -> int:
    return max(0, min(taken, capacity))

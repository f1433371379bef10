from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..domain.contact import contact_from_query
from ..domain.errors import (
    AlreadyCancelledError,
    ConflictError,
    DuplicateBookingError,
    NotFoundError,
    OwnershipError,
    RaceLostError,
    SlotFullError,
    TransientStoreError,
    ValidationError,
)
from ..domain.repositories import SignupRepository, SlotRepository
from ..domain.services import (
    REASON_DUPLICATE,
    REASON_FULL,
    REASON_MISSING,
    BookingLimits,
    SlotSnapshot,
    build_booking_request,
    clamp_taken,
    over_capacity,
    slot_conflict_reason,
)
from ..models import Signup, SignupStatus, Slot, status_value
from ..utils.ids import generate_batch_id, generate_row_id
from ..utils.time import timestamp
from .catalog import SlotCache

logger = logging.getLogger(__name__)

REASON_RACE = "Slot became full during processing"


@dataclass
class BookingResult:
    message: str
    batch_id: str
    signups: List[Signup] = field(default_factory=list)


@dataclass
class CancellationResult:
    message: str
    signup: Signup
    slot: Optional[Slot]
    status_from: SignupStatus
    status_to: SignupStatus


def _slot_status(slot_id: int, slot: Optional[Slot], reason: Optional[str]) -> Dict[str, Any]:
    return {
        "slotId": slot_id,
        "date": slot.date if slot else "Unknown",
        "label": slot.label if slot else "Unknown",
        "status": "conflict" if reason else "valid",
        "reason": reason,
    }


def _conflict_error(slot_status: List[Dict[str, Any]]) -> ConflictError:
    conflicts = [s for s in slot_status if s["status"] == "conflict"]
    reasons = {c["reason"] for c in conflicts}
    message = f"{len(conflicts)} of {len(slot_status)} slots unavailable"
    if reasons == {REASON_DUPLICATE}:
        return DuplicateBookingError(f"{message}: already booked", slot_status=slot_status)
    if reasons == {REASON_FULL}:
        return SlotFullError(f"{message}: slot full", slot_status=slot_status)
    return ConflictError(message, slot_status=slot_status)


def _active_for(signups: Iterable[Signup], slot_id: int) -> List[Signup]:
    return [s for s in signups if s.is_active and s.slot_id == slot_id]


def _counter_repairs(slots: Iterable[Slot], signups: Sequence[Signup]) -> List[tuple[Slot, int]]:
    """
    Counters must cover every active signup and never exceed capacity. A counter above
    its active count is left alone; it is an independent tally, not a join.
    """
    repairs: List[tuple[Slot, int]] = []
    for slot in slots:
        target = clamp_taken(max(slot.taken, len(_active_for(signups, slot.id))), slot.capacity)
        if target != slot.taken:
            repairs.append((slot, target))
    return repairs


def _recounts(slots: Iterable[Slot], signups: Sequence[Signup]) -> List[tuple[Slot, int]]:
    """Counters re-derived from the active signups, for slots this request has written to."""
    recounts: List[tuple[Slot, int]] = []
    for slot in slots:
        target = clamp_taken(len(_active_for(signups, slot.id)), slot.capacity)
        if target != slot.taken:
            recounts.append((slot, target))
    return recounts


async def book(
    slot_repo: SlotRepository,
    signup_repo: SignupRepository,
    *,
    name: Any,
    phone: Any = None,
    email: Any = None,
    notes: Any = None,
    category: Any = None,
    slot_ids: Any,
    limits: BookingLimits,
    tz_name: str,
    cache: Optional[SlotCache] = None,
) -> BookingResult:
    """
    Book one contact into every requested slot, or into none of them.

    The store has no transactions, so the write is optimistic: validate against a fresh
    read, append the signups, bump each counter clamped at capacity, then re-read. If a
    concurrent booker filled a slot first, this request's rows are marked FAILED and
    ``RaceLostError`` is raised.
    """
    request = build_booking_request(
        name=name,
        phone=phone,
        email=email,
        notes=notes,
        category=category,
        slot_ids=slot_ids,
        limits=limits,
    )

    slots = await slot_repo.get_many(request.slot_ids)
    existing = await signup_repo.list_all()

    slot_status: List[Dict[str, Any]] = []
    for slot_id in request.slot_ids:
        slot = slots.get(slot_id)
        has_active = any(request.contact.matches(s.phone, s.email) for s in _active_for(existing, slot_id))
        reason = slot_conflict_reason(SlotSnapshot(slot=slot, contact_has_active_signup=has_active))
        slot_status.append(_slot_status(slot_id, slot, reason))

    if any(s["status"] == "conflict" for s in slot_status):
        logger.info("booking rejected for %s: %s", request.contact.key, slot_status)
        raise _conflict_error(slot_status)

    stamp = timestamp(tz_name)
    batch_id = generate_batch_id()
    ordered = [slots[slot_id] for slot_id in request.slot_ids]
    new_signups = [
        Signup(
            id=generate_row_id(),
            timestamp=stamp,
            date=slot.date,
            slot_label=slot.label,
            name=request.name,
            email=request.contact.email,
            phone=request.contact.phone,
            category=request.category,
            notes=request.notes,
            slot_id=slot.id,
            status=SignupStatus.ACTIVE.value,
            batch_id=batch_id,
        )
        for slot in ordered
    ]

    try:
        try:
            await signup_repo.append(new_signups)
            await slot_repo.set_taken([(slot, clamp_taken(slot.taken + 1, slot.capacity)) for slot in ordered])
            lost = await _verify_batch(slot_repo, signup_repo, batch_id=batch_id, slot_ids=request.slot_ids)
        except TransientStoreError:
            logger.error("booking %s failed during its writes; rolling back", batch_id)
            await _compensate(slot_repo, signup_repo, batch_id=batch_id, slot_ids=request.slot_ids, tz_name=tz_name)
            raise

        if lost:
            failed = await _roll_back(
                slot_repo, signup_repo, batch_id=batch_id, slot_ids=request.slot_ids, tz_name=tz_name
            )
            logger.warning("booking %s lost slot(s) %s", batch_id, [s["slotId"] for s in lost])
            reasons = "; ".join(dict.fromkeys(s["reason"] for s in lost))
            raise RaceLostError(
                f"{reasons}. Please refresh and try again.",
                batch_id=batch_id,
                signup_ids=[s.id for s in failed],
                slot_status=lost,
            )
    finally:
        if cache is not None:
            cache.invalidate()

    count = len(new_signups)
    logger.info("booking %s committed %d signup(s) for %s", batch_id, count, request.contact.key)
    return BookingResult(
        message=f"Booked {count} slot{'' if count == 1 else 's'} successfully!",
        batch_id=batch_id,
        signups=new_signups,
    )


async def _verify_batch(
    slot_repo: SlotRepository,
    signup_repo: SignupRepository,
    *,
    batch_id: str,
    slot_ids: Sequence[int],
) -> List[Dict[str, Any]]:
    """Return the slots this batch lost; repairs stale counters when nothing was lost."""
    slots = await slot_repo.get_many(slot_ids)
    signups = await signup_repo.list_all()

    lost: List[Dict[str, Any]] = []
    for slot_id in slot_ids:
        slot = slots.get(slot_id)
        if slot is None:
            lost.append(_slot_status(slot_id, None, REASON_MISSING))
            continue
        excess = over_capacity(_active_for(signups, slot_id), slot.capacity)
        if any(s.batch_id == batch_id for s in excess):
            lost.append(_slot_status(slot_id, slot, REASON_RACE))

    if not lost:
        await slot_repo.set_taken(_counter_repairs(slots.values(), signups))
    return lost


async def _roll_back(
    slot_repo: SlotRepository,
    signup_repo: SignupRepository,
    *,
    batch_id: str,
    slot_ids: Sequence[int],
    tz_name: str,
) -> List[Signup]:
    written = [s for s in await signup_repo.list_batch(batch_id) if s.is_active]
    if not written:
        # Nothing of this batch landed, so no counter was bumped either.
        return written
    await signup_repo.set_status(written, status_value(SignupStatus.FAILED, timestamp(tz_name)))

    slots = await slot_repo.get_many(slot_ids)
    signups = await signup_repo.list_all()
    await slot_repo.set_taken(_recounts(slots.values(), signups))
    return written


async def _compensate(
    slot_repo: SlotRepository,
    signup_repo: SignupRepository,
    *,
    batch_id: str,
    slot_ids: Sequence[int],
    tz_name: str,
) -> None:
    """Roll back after a store failure; the caller re-raises the original error."""
    try:
        await _roll_back(slot_repo, signup_repo, batch_id=batch_id, slot_ids=slot_ids, tz_name=tz_name)
    except TransientStoreError:
        logger.exception("rollback of booking %s failed; rows may remain ACTIVE", batch_id)


async def cancel_booking(
    slot_repo: SlotRepository,
    signup_repo: SignupRepository,
    *,
    signup_id: int,
    slot_id: Optional[int] = None,
    contact_value: Optional[str] = None,
    require_contact: bool = True,
    tz_name: str,
    cache: Optional[SlotCache] = None,
) -> CancellationResult:
    if signup_id <= 0:
        raise ValidationError("Invalid signup id.")
    contact = contact_from_query(contact_value) if contact_value else None
    if contact is None or not contact.key:
        if require_contact:
            raise ValidationError("A phone number or email address is required to cancel.")
        contact = None

    signup = await signup_repo.get(signup_id)
    if signup is None:
        raise NotFoundError("Booking not found.")
    if slot_id is not None and slot_id != signup.slot_id:
        raise ValidationError("Slot does not match this booking.")
    if contact is not None and not contact.matches(signup.phone, signup.email):
        raise OwnershipError("Contact does not match this booking. Cannot cancel.")
    if not signup.is_active:
        raise AlreadyCancelledError(f"Booking is already {signup.status_kind.value.lower()}.")

    writes = [signup_repo.status_write(signup, status_value(SignupStatus.CANCELLED, timestamp(tz_name)))]
    slot = (await slot_repo.get_many([signup.slot_id])).get(signup.slot_id)
    if slot is not None:
        writes.append(slot_repo.taken_write(slot, max(0, slot.taken - 1)))
    else:
        logger.warning("cancelling signup %s whose slot %s no longer exists", signup.id, signup.slot_id)

    # Status and counter go out in one store call.
    await signup_repo.apply(writes)
    if cache is not None:
        cache.invalidate()

    logger.info("signup %s cancelled", signup.id)
    return CancellationResult(
        message="Cancelled successfully.",
        signup=signup,
        slot=slot,
        status_from=SignupStatus.ACTIVE,
        status_to=SignupStatus.CANCELLED,
    )

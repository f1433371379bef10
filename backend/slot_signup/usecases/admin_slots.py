from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..domain.contact import sanitize_input
from ..domain.errors import DeleteBlockedError, NotFoundError, ValidationError
from ..domain.repositories import SignupRepository, SlotRepository
from ..models import Slot
from ..utils.ids import generate_row_id
from ..utils.time import local_today, parse_slot_date
from .catalog import SlotCache

logger = logging.getLogger(__name__)

MAX_LABEL_LENGTH = 100


@dataclass(frozen=True)
class SlotDraft:
    date: str
    label: str
    capacity: int


@dataclass(frozen=True)
class CapacityRange:
    minimum: int = 1
    maximum: int = 99


@dataclass
class SlotBatchResult:
    message: str
    slots: List[Slot]


def _key(date: str, label: str) -> tuple[str, str]:
    return date.strip(), " ".join(label.split()).lower()


async def add_slots(
    slot_repo: SlotRepository,
    *,
    drafts: Sequence[SlotDraft],
    capacity_range: CapacityRange,
    tz_name: str,
    cache: Optional[SlotCache] = None,
) -> SlotBatchResult:
    """
    Append a batch of new slots with ``taken=0``. Any invalid or duplicate entry rejects
    the whole batch before anything is written.
    """
    if not drafts:
        raise ValidationError("Missing or invalid newSlotsData array")

    today = local_today(tz_name)
    errors: List[str] = []
    seen: set[tuple[str, str]] = set()
    cleaned: List[SlotDraft] = []

    for draft in drafts:
        label = sanitize_input(draft.label, MAX_LABEL_LENGTH)
        slot_date = parse_slot_date(draft.date)
        if slot_date is None:
            errors.append(f"Invalid date '{draft.date}' (expected YYYY-MM-DD).")
            continue
        if slot_date < today:
            errors.append(f"Date {draft.date} is in the past.")
        if not label:
            errors.append(f"Slot on {draft.date} is missing a label.")
            continue
        if not capacity_range.minimum <= draft.capacity <= capacity_range.maximum:
            errors.append(
                f"Capacity for {draft.date} {label} must be between "
                f"{capacity_range.minimum} and {capacity_range.maximum}."
            )
        key = _key(draft.date, label)
        if key in seen:
            errors.append(f"Duplicate slot in batch: {draft.date} {label}.")
        seen.add(key)
        cleaned.append(SlotDraft(date=draft.date.strip(), label=label, capacity=draft.capacity))

    if not errors:
        existing = {_key(slot.date, slot.label) for slot in await slot_repo.list_all()}
        errors.extend(
            f"Slot already exists: {draft.date} {draft.label}."
            for draft in cleaned
            if _key(draft.date, draft.label) in existing
        )

    if errors:
        raise ValidationError("Slot batch rejected", details={"details": errors})

    new_slots = [
        Slot(id=generate_row_id(), date=d.date, label=d.label, capacity=d.capacity, taken=0) for d in cleaned
    ]
    await slot_repo.append(new_slots)
    if cache is not None:
        cache.invalidate()

    dates = len({slot.date for slot in new_slots})
    logger.info("added %d slot(s) across %d date(s)", len(new_slots), dates)
    return SlotBatchResult(
        message=f"Successfully added {len(new_slots)} slots across {dates} date(s).",
        slots=new_slots,
    )


async def delete_slots(
    slot_repo: SlotRepository,
    signup_repo: SignupRepository,
    *,
    slot_ids: Sequence[Any],
    cache: Optional[SlotCache] = None,
) -> SlotBatchResult:
    """Delete slots, refusing the whole batch if any of them still has an active signup."""
    if not slot_ids:
        raise ValidationError("Missing or invalid rowIds array")
    if not all(isinstance(i, int) and not isinstance(i, bool) and i > 0 for i in slot_ids):
        raise ValidationError("No valid row IDs provided")
    wanted = list(dict.fromkeys(slot_ids))

    slots = await slot_repo.get_many(wanted)
    missing = [slot_id for slot_id in wanted if slot_id not in slots]
    if missing:
        raise NotFoundError(f"Unknown slot id(s): {', '.join(str(m) for m in missing)}")

    active_counts: Dict[int, int] = {}
    for signup in await signup_repo.list_all():
        if signup.is_active and signup.slot_id in slots:
            active_counts[signup.slot_id] = active_counts.get(signup.slot_id, 0) + 1

    blocked = [
        {"slotId": slot.id, "date": slot.date, "label": slot.label, "activeBookings": active_counts[slot.id]}
        for slot in (slots[slot_id] for slot_id in wanted)
        if active_counts.get(slot.id)
    ]
    if blocked:
        total = sum(b["activeBookings"] for b in blocked)
        logger.warning("slot delete blocked by %d active booking(s)", total)
        raise DeleteBlockedError(
            f"Cannot delete: {total} active booking(s) exist. Cancel bookings first or contact users.",
            blocked=blocked,
        )

    targets = [slots[slot_id] for slot_id in wanted]
    await slot_repo.delete(targets)
    if cache is not None:
        cache.invalidate()

    logger.info("deleted %d slot(s)", len(targets))
    return SlotBatchResult(message=f"Successfully deleted {len(targets)} slot(s).", slots=targets)

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Optional, Sequence

from ..domain.repositories import SignupRepository, SlotRepository
from ..domain.store import CellWrite, TabularStore
from ..models import Signup, Slot
from .tables import SIGNUPS, SLOTS

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*(-?\d+)")


def to_int(value: Any, default: int = 0) -> int:
    match = _LEADING_INT_RE.match(str(value or ""))
    return int(match.group(1)) if match else default


def _cell(row: Sequence[str], index: int) -> str:
    return row[index].strip() if index < len(row) and row[index] is not None else ""


def _row_position(obj: Slot | Signup) -> int:
    if obj.row is None:
        raise ValueError(f"{type(obj).__name__} {obj.id} has no row position")
    return obj.row


def decode_slot(row: Sequence[str], position: int) -> Optional[Slot]:
    slot_id = to_int(_cell(row, SLOTS.index("id")))
    if slot_id <= 0:
        return None
    return Slot(
        id=slot_id,
        date=_cell(row, SLOTS.index("date")),
        label=_cell(row, SLOTS.index("label")),
        capacity=to_int(_cell(row, SLOTS.index("capacity"))),
        taken=to_int(_cell(row, SLOTS.index("taken"))),
        row=position,
    )


def encode_slot(slot: Slot) -> list[Any]:
    return [slot.id, slot.date, slot.label, slot.capacity, slot.taken]


def decode_signup(row: Sequence[str], position: int) -> Optional[Signup]:
    signup_id = to_int(_cell(row, SIGNUPS.index("id")))
    if signup_id <= 0:
        return None
    return Signup(
        id=signup_id,
        timestamp=_cell(row, SIGNUPS.index("timestamp")),
        date=_cell(row, SIGNUPS.index("date")),
        slot_label=_cell(row, SIGNUPS.index("slot_label")),
        name=_cell(row, SIGNUPS.index("name")),
        email=_cell(row, SIGNUPS.index("email")),
        phone=_cell(row, SIGNUPS.index("phone")),
        category=_cell(row, SIGNUPS.index("category")),
        notes=_cell(row, SIGNUPS.index("notes")),
        slot_id=to_int(_cell(row, SIGNUPS.index("slot_id"))),
        status=_cell(row, SIGNUPS.index("status")),
        batch_id=_cell(row, SIGNUPS.index("batch_id")),
        row=position,
    )


def encode_signup(signup: Signup) -> list[Any]:
    return [
        signup.id,
        signup.timestamp,
        signup.date,
        signup.slot_label,
        signup.name,
        signup.email,
        signup.phone,
        signup.category,
        signup.notes,
        signup.slot_id,
        signup.status,
        signup.batch_id,
    ]


class SheetSlotRepository(SlotRepository):
    def __init__(self, store: TabularStore) -> None:
        self.store = store

    async def list_all(self) -> List[Slot]:
        rows = await self.store.read_range(SLOTS.name)
        slots: List[Slot] = []
        for position, row in enumerate(rows):
            slot = decode_slot(row, position)
            if slot is None:
                if any(cell.strip() for cell in row):
                    logger.warning("skipping %s row %d without an id", SLOTS.name, position)
                continue
            slots.append(slot)
        return slots

    async def get_many(self, slot_ids: Iterable[int]) -> dict[int, Slot]:
        wanted = set(slot_ids)
        return {slot.id: slot for slot in await self.list_all() if slot.id in wanted}

    async def append(self, slots: Sequence[Slot]) -> None:
        await self.store.append_rows(SLOTS.name, [encode_slot(slot) for slot in slots])

    def taken_write(self, slot: Slot, taken: int) -> CellWrite:
        return CellWrite(SLOTS.name, _row_position(slot), SLOTS.index("taken"), taken)

    async def set_taken(self, updates: Sequence[tuple[Slot, int]]) -> None:
        if not updates:
            return
        await self.store.update_cells(SLOTS.name, [self.taken_write(slot, taken) for slot, taken in updates])

    async def delete(self, slots: Sequence[Slot]) -> None:
        await self.store.delete_rows(SLOTS.name, [_row_position(slot) for slot in slots])


class SheetSignupRepository(SignupRepository):
    def __init__(self, store: TabularStore) -> None:
        self.store = store

    async def list_all(self) -> List[Signup]:
        rows = await self.store.read_range(SIGNUPS.name)
        signups: List[Signup] = []
        for position, row in enumerate(rows):
            signup = decode_signup(row, position)
            if signup is not None:
                signups.append(signup)
        return signups

    async def get(self, signup_id: int) -> Optional[Signup]:
        for signup in await self.list_all():
            if signup.id == signup_id:
                return signup
        return None

    async def list_batch(self, batch_id: str) -> List[Signup]:
        return [s for s in await self.list_all() if s.batch_id == batch_id]

    async def append(self, signups: Sequence[Signup]) -> None:
        await self.store.append_rows(SIGNUPS.name, [encode_signup(signup) for signup in signups])

    def status_write(self, signup: Signup, status: str) -> CellWrite:
        return CellWrite(SIGNUPS.name, _row_position(signup), SIGNUPS.index("status"), status)

    async def set_status(self, signups: Sequence[Signup], status: str) -> None:
        if not signups:
            return
        await self.store.update_cells(SIGNUPS.name, [self.status_write(s, status) for s in signups])

    async def apply(self, writes: Sequence[CellWrite]) -> None:
        await self.store.batch_update(writes)

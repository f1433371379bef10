from __future__ import annotations

from typing import Iterable, Protocol, Sequence

from ..models import Signup, Slot
from .store import CellWrite


class SlotRepository(Protocol):
    async def list_all(self) -> list[Slot]: ...

    async def get_many(self, slot_ids: Iterable[int]) -> dict[int, Slot]: ...

    async def append(self, slots: Sequence[Slot]) -> None: ...

    def taken_write(self, slot: Slot, taken: int) -> CellWrite: ...

    async def set_taken(self, updates: Sequence[tuple[Slot, int]]) -> None: ...

    async def delete(self, slots: Sequence[Slot]) -> None: ...


class SignupRepository(Protocol):
    async def list_all(self) -> list[Signup]: ...

    async def get(self, signup_id: int) -> Signup | None: ...

    async def list_batch(self, batch_id: str) -> list[Signup]: ...

    async def append(self, signups: Sequence[Signup]) -> None: ...

    def status_write(self, signup: Signup, status: str) -> CellWrite: ...

    async def set_status(self, signups: Sequence[Signup], status: str) -> None: ...

    async def apply(self, writes: Sequence[CellWrite]) -> None: ...

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence


@dataclass(frozen=True)
class CellWrite:
    """A single-cell write. ``row`` is the 0-based data row (header excluded)."""

    table: str
    row: int
    column: int
    value: Any


class TabularStore(Protocol):
    """Row-addressed tables with no multi-row transactions.

    Any call may raise ``TransientStoreError``. A read followed by a write can race
    against another writer in between.
    """

    async def read_range(self, table: str, start: int = 0, stop: Optional[int] = None) -> list[list[str]]: ...

    async def append_rows(self, table: str, rows: Sequence[Sequence[Any]]) -> None: ...

    async def update_cells(self, table: str, writes: Sequence[CellWrite]) -> None: ...

    async def batch_update(self, writes: Sequence[CellWrite]) -> None: ...

    async def delete_rows(self, table: str, rows: Sequence[int]) -> None: ...

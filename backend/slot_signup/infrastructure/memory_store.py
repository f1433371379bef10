from __future__ import annotations

import asyncio
from typing import Any, Iterable, Optional, Sequence

from ..domain.errors import TransientStoreError
from ..domain.store import CellWrite
from .tables import LAYOUTS


class InMemoryTabularStore:
    """
    List-backed tables with the same contract as the spreadsheet store.

    Values are kept as strings, like a spreadsheet's formatted read. Every call yields to
    the event loop once before touching data, so concurrent coroutines interleave between
    a read and the write that follows it.
    """

    def __init__(self, tables: Optional[dict[str, Iterable[Sequence[Any]]]] = None) -> None:
        self.tables: dict[str, list[list[str]]] = {name: [] for name in LAYOUTS}
        for name, rows in (tables or {}).items():
            self.tables[name] = [self._to_cells(row) for row in rows]
        self.calls: list[str] = []

    @staticmethod
    def _to_cells(row: Sequence[Any]) -> list[str]:
        return ["" if value is None else str(value) for value in row]

    def _table(self, table: str) -> list[list[str]]:
        try:
            return self.tables[table]
        except KeyError as exc:
            raise TransientStoreError(f"unknown table {table!r}") from exc

    async def _tick(self, op: str) -> None:
        self.calls.append(op)
        await asyncio.sleep(0)

    async def read_range(self, table: str, start: int = 0, stop: Optional[int] = None) -> list[list[str]]:
        await self._tick("read_range")
        return [list(row) for row in self._table(table)[start:stop]]

    async def append_rows(self, table: str, rows: Sequence[Sequence[Any]]) -> None:
        await self._tick("append_rows")
        self._table(table).extend(self._to_cells(row) for row in rows)

    async def update_cells(self, table: str, writes: Sequence[CellWrite]) -> None:
        if any(w.table != table for w in writes):
            raise ValueError("update_cells writes must target a single table")
        await self._tick("update_cells")
        self._apply(writes)

    async def batch_update(self, writes: Sequence[CellWrite]) -> None:
        await self._tick("batch_update")
        self._apply(writes)

    async def delete_rows(self, table: str, rows: Sequence[int]) -> None:
        await self._tick("delete_rows")
        data = self._table(table)
        for index in sorted(set(rows), reverse=True):
            if 0 <= index < len(data):
                del data[index]

    def _apply(self, writes: Sequence[CellWrite]) -> None:
        for write in writes:
            data = self._table(write.table)
            if not 0 <= write.row < len(data):
                raise TransientStoreError(f"row {write.row} out of range for {write.table}")
            row = data[write.row]
            if len(row) <= write.column:
                row.extend([""] * (write.column + 1 - len(row)))
            row[write.column] = "" if write.value is None else str(write.value)

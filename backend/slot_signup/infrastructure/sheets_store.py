from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Sequence

import httplib2
from google.auth.exceptions import TransportError
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..config import Settings
from ..domain.errors import TransientStoreError
from ..domain.store import CellWrite
from .tables import LAYOUTS, TableLayout, column_letter

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
# Row 1 holds the column headers; data row 0 is sheet row 2.
HEADER_ROWS = 1


def _cell_text(value: Any) -> str:
    # Unformatted numbers arrive as JSON numbers; whole floats are ids and counters.
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def load_credentials(settings: Settings) -> service_account.Credentials:
    if settings.google_service_account:
        info = json.loads(settings.google_service_account)
    else:
        info = {
            "type": "service_account",
            "client_email": settings.google_service_account_email,
            "private_key": settings.google_private_key,
            "token_uri": TOKEN_URI,
        }
    return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)


class GoogleSheetsStore:
    """Tabular store over one spreadsheet, one tab per table."""

    def __init__(
        self,
        *,
        spreadsheet_id: str,
        sheet_gids: dict[str, int],
        credentials: service_account.Credentials,
        timeout: Optional[float] = 30.0,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.sheet_gids = sheet_gids
        self._credentials = credentials
        self._timeout = timeout
        self._service: Any = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleSheetsStore":
        return cls(
            spreadsheet_id=settings.sheet_id,
            sheet_gids={"Slots": settings.slots_gid, "Signups": settings.signups_gid},
            credentials=load_credentials(settings),
        )

    def _sheets(self) -> Any:
        if self._service is None:
            self._service = build("sheets", "v4", credentials=self._credentials, cache_discovery=False)
        return self._service.spreadsheets()

    def _http(self) -> AuthorizedHttp:
        # httplib2 connections are not thread safe; each call gets its own.
        return AuthorizedHttp(self._credentials, http=httplib2.Http(timeout=self._timeout))

    async def _execute(self, request: Any, what: str) -> dict[str, Any]:
        try:
            return await asyncio.to_thread(request.execute, http=self._http())
        except HttpError as exc:
            logger.warning("sheets %s failed: status=%s", what, exc.resp.status)
            raise TransientStoreError(f"spreadsheet {what} failed ({exc.resp.status})") from exc
        except (httplib2.HttpLib2Error, TransportError, OSError) as exc:
            logger.warning("sheets %s failed: %s", what, exc)
            raise TransientStoreError(f"spreadsheet {what} failed") from exc

    @staticmethod
    def _layout(table: str) -> TableLayout:
        try:
            return LAYOUTS[table]
        except KeyError as exc:
            raise ValueError(f"unknown table {table!r}") from exc

    @staticmethod
    def _sheet_row(row: int) -> int:
        return row + HEADER_ROWS + 1

    async def read_range(self, table: str, start: int = 0, stop: Optional[int] = None) -> list[list[str]]:
        layout = self._layout(table)
        end = f"{layout.last_column}{self._sheet_row(stop - 1)}" if stop is not None else layout.last_column
        request = self._sheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=f"{layout.name}!A{self._sheet_row(start)}:{end}",
            valueRenderOption="UNFORMATTED_VALUE",
        )
        response = await self._execute(request, "read")
        width = len(layout.columns)
        rows = response.get("values", [])
        return [[_cell_text(cell) for cell in row] + [""] * (width - len(row)) for row in rows]

    async def append_rows(self, table: str, rows: Sequence[Sequence[Any]]) -> None:
        layout = self._layout(table)
        request = self._sheets().values().append(
            spreadsheetId=self.spreadsheet_id,
            range=f"{layout.name}!A1",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [list(row) for row in rows]},
        )
        await self._execute(request, "append")

    async def update_cells(self, table: str, writes: Sequence[CellWrite]) -> None:
        if any(w.table != table for w in writes):
            raise ValueError("update_cells writes must target a single table")
        await self.batch_update(writes)

    async def batch_update(self, writes: Sequence[CellWrite]) -> None:
        if not writes:
            return
        data = [
            {
                "range": f"{self._layout(w.table).name}!{column_letter(w.column)}{self._sheet_row(w.row)}",
                "values": [[w.value]],
            }
            for w in writes
        ]
        request = self._sheets().values().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={"valueInputOption": "RAW", "data": data},
        )
        await self._execute(request, "update")

    async def delete_rows(self, table: str, rows: Sequence[int]) -> None:
        layout = self._layout(table)
        gid = self.sheet_gids[layout.name]
        # Descending so earlier deletions do not shift the rows still to delete.
        requests = [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": gid,
                        "dimension": "ROWS",
                        "startIndex": self._sheet_row(row) - 1,
                        "endIndex": self._sheet_row(row),
                    }
                }
            }
            for row in sorted(set(rows), reverse=True)
        ]
        if not requests:
            return
        request = self._sheets().batchUpdate(spreadsheetId=self.spreadsheet_id, body={"requests": requests})
        await self._execute(request, "delete")

from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
_ACCEPTED_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def generate_request_id() -> str:
    """Generate a random request id."""
    return uuid.uuid4().hex


def resolve_request_id(incoming: Optional[str]) -> str:
    """Reuse a caller-supplied id when it is a plain token, else generate one."""
    if incoming and _ACCEPTED_RE.match(incoming):
        return incoming
    return generate_request_id()


def set_request_id(request_id: str | None) -> None:
    """Store request id in context (None to clear)."""
    _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    """Return current request id if set."""
    return _request_id_ctx.get()

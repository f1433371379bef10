from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Sequence

from .request_id import get_request_id

AuditAction = Literal[
    "booking.created",
    "booking.rolled_back",
    "booking.cancelled",
    "slots.added",
    "slots.deleted",
]
AuditInitiator = Literal["user", "system", "admin"]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _enum_to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    slot_ids: Optional[Sequence[int]] = None,
    signup_ids: Optional[Sequence[int]] = None,
    batch_id: Optional[str] = None,
    contact: Optional[str] = None,
    status_from: Optional[Any] = None,
    status_to: Optional[Any] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "slot_ids": list(slot_ids) if slot_ids is not None else None,
        "signup_ids": list(signup_ids) if signup_ids is not None else None,
        "batch_id": batch_id,
        "contact": contact,
        "status_from": _enum_to_str(status_from),
        "status_to": _enum_to_str(status_to),
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:  # pragma: no cover
        raise RuntimeError("failed to emit audit log") from exc

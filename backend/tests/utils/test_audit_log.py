import json
from typing import Any, List

import pytest
from slot_signup.models import SignupStatus
from slot_signup.utils import audit_log
from slot_signup.utils.request_id import set_request_id


def test_emit_audit_log_outputs_json(monkeypatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    dummy_logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", dummy_logger)

    set_request_id("req-123")
    audit_log.emit_audit_log(
        action="booking.created",
        initiator="user",
        slot_ids=[2, 3],
        signup_ids=[10, 11],
        batch_id="batch-1",
        contact="5551234567",
        status_from=None,
        status_to=SignupStatus.ACTIVE,
    )
    set_request_id(None)
    assert len(messages) == 1
    payload = json.loads(messages[0])
    assert payload["action"] == "booking.created"
    assert payload["initiator"] == "user"
    assert payload["request_id"] == "req-123"
    assert payload["slot_ids"] == [2, 3]
    assert payload["status_to"] == "ACTIVE"
    assert "status_from" not in payload
    assert "timestamp" in payload


def test_emit_audit_log_merges_extra(monkeypatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())

    audit_log.emit_audit_log(
        action="slots.deleted",
        initiator="admin",
        slot_ids=[5],
        message="Successfully deleted 1 slot(s).",
        extra={"affected": 1},
    )
    payload = json.loads(messages[0])
    assert payload["message"] == "Successfully deleted 1 slot(s)."
    assert payload["affected"] == 1


def test_emit_audit_log_raises_on_logger_failure(monkeypatch) -> None:
    class DummyLogger:
        def info(self, _: Any) -> None:
            raise ValueError("fail")

    dummy_logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", dummy_logger)

    with pytest.raises(RuntimeError):
        audit_log.emit_audit_log(
            action="booking.cancelled",
            initiator="user",
            slot_ids=[2],
            signup_ids=[10],
            status_from=SignupStatus.ACTIVE,
            status_to=SignupStatus.CANCELLED,
        )

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional


class SignupStatus(StrEnum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


def status_value(status: SignupStatus, stamp: str) -> str:
    """Terminal statuses are stored with the time of the transition, e.g. ``CANCELLED:<ts>``."""
    if status == SignupStatus.ACTIVE:
        return status.value
    return f"{status.value}:{stamp}"


def parse_status(raw: str) -> SignupStatus:
    # A blank status cell predates the status column and counts as active.
    head = (raw or SignupStatus.ACTIVE.value).split(":", 1)[0].strip().upper()
    try:
        return SignupStatus(head)
    except ValueError:
        return SignupStatus.FAILED


@dataclass
class Slot:
    id: int
    date: str
    label: str
    capacity: int
    taken: int
    row: Optional[int] = None

    @property
    def available(self) -> int:
        return max(0, self.capacity - self.taken)


@dataclass
class Signup:
    id: int
    timestamp: str
    date: str
    slot_label: str
    name: str
    email: str
    phone: str
    category: str
    notes: str
    slot_id: int
    status: str
    batch_id: str
    row: Optional[int] = None

    @property
    def status_kind(self) -> SignupStatus:
        return parse_status(self.status)

    @property
    def is_active(self) -> bool:
        return self.status_kind == SignupStatus.ACTIVE

    @property
    def contact(self) -> str:
        return self.phone or self.email

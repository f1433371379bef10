from datetime import date, timedelta
from typing import Any, Callable, Iterable, Sequence

import pytest
from slot_signup.config import Settings
from slot_signup.domain.services import BookingLimits
from slot_signup.infrastructure.memory_store import InMemoryTabularStore

FUTURE = (date.today() + timedelta(days=30)).isoformat()
LATER = (date.today() + timedelta(days=31)).isoformat()
PAST = (date.today() - timedelta(days=30)).isoformat()


def _slot_row(
    slot_id: int,
    *,
    day: str = FUTURE,
    label: str = "10am-11am",
    capacity: int = 1,
    taken: int = 0,
) -> list[Any]:
    return [slot_id, day, label, capacity, taken]


def _signup_row(
    signup_id: int,
    slot_id: int,
    *,
    phone: str = "5551234567",
    email: str = "",
    status: str = "ACTIVE",
    batch_id: str = "seed",
    name: str = "Ann Example",
    day: str = FUTURE,
    label: str = "10am-11am",
) -> list[Any]:
    return [signup_id, "2026-01-01T09:00:00-05:00", day, label, name, email, phone, "", "", slot_id, status, batch_id]


@pytest.fixture
def future_date() -> str:
    return FUTURE


@pytest.fixture
def later_date() -> str:
    return LATER


@pytest.fixture
def past_date() -> str:
    return PAST


@pytest.fixture
def slot_row() -> Callable[..., list[Any]]:
    return _slot_row


@pytest.fixture
def signup_row() -> Callable[..., list[Any]]:
    return _signup_row


@pytest.fixture
def make_store() -> Callable[..., InMemoryTabularStore]:
    def _make(
        slots: Iterable[Sequence[Any]] = (),
        signups: Iterable[Sequence[Any]] = (),
    ) -> InMemoryTabularStore:
        return InMemoryTabularStore({"Slots": list(slots), "Signups": list(signups)})

    return _make


@pytest.fixture
def limits() -> BookingLimits:
    return BookingLimits()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        store_backend="memory",
        admin_password="letmein",
        auth_secret="testsecret",
        timezone="America/New_York",
    )

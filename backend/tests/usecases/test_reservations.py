import asyncio
from typing import Any, Optional, Sequence

import pytest
from slot_signup.domain.errors import (
    ConflictError,
    DuplicateBookingError,
    RaceLostError,
    SlotFullError,
    TransientStoreError,
    ValidationError,
)
from slot_signup.infrastructure.memory_store import InMemoryTabularStore
from slot_signup.infrastructure.repositories import SheetSignupRepository, SheetSlotRepository
from slot_signup.infrastructure.tables import SIGNUPS, SLOTS
from slot_signup.usecases import reservations as uc
from slot_signup.usecases.catalog import SlotCache

TZ = "America/New_York"


def _repos(store: InMemoryTabularStore) -> tuple[SheetSlotRepository, SheetSignupRepository]:
    return SheetSlotRepository(store), SheetSignupRepository(store)


def _taken(store: InMemoryTabularStore, slot_id: int) -> int:
    for row in store.tables["Slots"]:
        if row[0] == str(slot_id):
            return int(row[SLOTS.index("taken")])
    raise AssertionError(f"slot {slot_id} missing")


def _statuses(store: InMemoryTabularStore) -> list[str]:
    return [row[SIGNUPS.index("status")].split(":", 1)[0] for row in store.tables["Signups"]]


async def _book(store: InMemoryTabularStore, limits, *, phone: str = "5551234567", slot_ids: Any = (1,), **kw):
    slot_repo, signup_repo = _repos(store)
    return await uc.book(
        slot_repo,
        signup_repo,
        name=kw.pop("name", "Ann Example"),
        phone=phone,
        email=kw.pop("email", None),
        notes=kw.pop("notes", "first visit"),
        category=kw.pop("category", None),
        slot_ids=list(slot_ids),
        limits=limits,
        tz_name=TZ,
        **kw,
    )


class RacingStore(InMemoryTabularStore):
    """Another booker's signup lands just before ours, after validation has passed."""

    def __init__(self, *args: Any, intruder: Sequence[Any], **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.intruder: Optional[Sequence[Any]] = intruder

    async def append_rows(self, table: str, rows: Sequence[Sequence[Any]]) -> None:
        if table == SIGNUPS.name and self.intruder is not None:
            self.tables[table].append(self._to_cells(self.intruder))
            self.intruder = None
        await super().append_rows(table, rows)


class FlakyStore(InMemoryTabularStore):
    """Fails the first counter write; everything else succeeds."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.failed = False

    async def update_cells(self, table: str, writes) -> None:
        if table == SLOTS.name and not self.failed:
            self.failed = True
            raise TransientStoreError("spreadsheet update failed (503)")
        await super().update_cells(table, writes)


class AppendTimesOutStore(InMemoryTabularStore):
    """The signup append lands, but the caller only sees a timeout."""

    async def append_rows(self, table: str, rows: Sequence[Sequence[Any]]) -> None:
        await super().append_rows(table, rows)
        if table == SIGNUPS.name:
            raise TransientStoreError("spreadsheet append failed")


class AppendRefusedStore(InMemoryTabularStore):
    async def append_rows(self, table: str, rows: Sequence[Sequence[Any]]) -> None:
        raise TransientStoreError("spreadsheet append failed (503)")


class VanishingSlotStore(InMemoryTabularStore):
    """An admin deletes the slot right after this booking bumps its counter."""

    async def update_cells(self, table: str, writes) -> None:
        await super().update_cells(table, writes)
        if table == SLOTS.name and self.tables[table]:
            self.tables[table].clear()


@pytest.mark.asyncio
async def test_book_success_writes_signups_and_counters(make_store, slot_row, limits) -> None:
    store = make_store(slots=[slot_row(1, capacity=3), slot_row(2, label="11am-12pm", capacity=1)])

    result = await _book(store, limits, slot_ids=[1, 2])

    assert result.message == "Booked 2 slots successfully!"
    assert _taken(store, 1) == 1
    assert _taken(store, 2) == 1
    rows = store.tables["Signups"]
    assert [row[SIGNUPS.index("slot_id")] for row in rows] == ["1", "2"]
    assert {row[SIGNUPS.index("batch_id")] for row in rows} == {result.batch_id}
    assert rows[1][SIGNUPS.index("slot_label")] == "11am-12pm"
    assert rows[0][SIGNUPS.index("phone")] == "5551234567"
    assert _statuses(store) == ["ACTIVE", "ACTIVE"]


@pytest.mark.asyncio
async def test_single_slot_message(make_store, slot_row, limits) -> None:
    store = make_store(slots=[slot_row(1)])
    result = await _book(store, limits)
    assert result.message == "Booked 1 slot successfully!"


@pytest.mark.asyncio
async def test_duplicate_booking_is_rejected(make_store, slot_row, signup_row, limits) -> None:
    store = make_store(slots=[slot_row(1, capacity=3, taken=1)], signups=[signup_row(10, 1)])

    with pytest.raises(DuplicateBookingError) as excinfo:
        await _book(store, limits, phone="555-123-4567")

    assert excinfo.value.slot_status[0]["reason"] == "Already booked"
    assert len(store.tables["Signups"]) == 1
    assert _taken(store, 1) == 1


@pytest.mark.asyncio
async def test_cancelled_signup_does_not_count_as_duplicate(make_store, slot_row, signup_row, limits) -> None:
    store = make_store(slots=[slot_row(1, capacity=3)], signups=[signup_row(10, 1, status="CANCELLED:t")])

    await _book(store, limits)

    assert _statuses(store) == ["CANCELLED", "ACTIVE"]


@pytest.mark.asyncio
async def test_full_slot_is_rejected(make_store, slot_row, limits) -> None:
    store = make_store(slots=[slot_row(1, capacity=1, taken=1)])

    with pytest.raises(SlotFullError):
        await _book(store, limits)

    assert store.tables["Signups"] == []


@pytest.mark.asyncio
async def test_one_bad_slot_aborts_the_whole_batch(make_store, slot_row, limits) -> None:
    store = make_store(slots=[slot_row(1, capacity=2), slot_row(2, label="1pm", capacity=1, taken=1)])

    with pytest.raises(ConflictError) as excinfo:
        await _book(store, limits, slot_ids=[1, 2, 3])

    err = excinfo.value
    assert not isinstance(err, (SlotFullError, DuplicateBookingError))
    assert err.message == "2 of 3 slots unavailable"
    assert [s["status"] for s in err.slot_status] == ["valid", "conflict", "conflict"]
    assert err.slot_status[2]["reason"] == "Slot data missing"
    assert store.tables["Signups"] == []
    assert _taken(store, 1) == 0
    assert "append_rows" not in store.calls


@pytest.mark.asyncio
async def test_validation_failure_never_touches_the_store(make_store, limits) -> None:
    store = make_store()

    with pytest.raises(ValidationError):
        await _book(store, limits, phone="12", slot_ids=[1])

    assert store.calls == []


@pytest.mark.asyncio
async def test_concurrent_bookers_for_last_seat(make_store, slot_row, limits) -> None:
    store = make_store(slots=[slot_row(1, capacity=1)])

    results = await asyncio.gather(
        _book(store, limits, phone="5551111111"),
        _book(store, limits, phone="5552222222"),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, uc.BookingResult)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 1
    assert _taken(store, 1) == 1
    assert _statuses(store).count("ACTIVE") == 1


@pytest.mark.asyncio
async def test_race_loser_is_rolled_back(slot_row, signup_row, limits) -> None:
    intruder = signup_row(99, 1, phone="5559999999", batch_id="other")
    store = RacingStore({"Slots": [slot_row(1, capacity=1)]}, intruder=intruder)

    with pytest.raises(RaceLostError) as excinfo:
        await _book(store, limits)

    err = excinfo.value
    assert "Slot became full during processing" in err.message
    assert err.slot_status[0]["slotId"] == 1
    assert _statuses(store) == ["ACTIVE", "FAILED"]
    ours = store.tables["Signups"][1]
    assert ours[SIGNUPS.index("batch_id")] == err.batch_id
    assert err.signup_ids == [int(ours[0])]
    assert _taken(store, 1) == 1


@pytest.mark.asyncio
async def test_race_on_one_slot_releases_the_others(slot_row, signup_row, limits) -> None:
    intruder = signup_row(99, 2, phone="5559999999", batch_id="other", label="1pm")
    store = RacingStore(
        {"Slots": [slot_row(1, capacity=2), slot_row(2, label="1pm", capacity=1)]},
        intruder=intruder,
    )

    with pytest.raises(RaceLostError):
        await _book(store, limits, slot_ids=[1, 2])

    assert _statuses(store) == ["ACTIVE", "FAILED", "FAILED"]
    assert _taken(store, 1) == 0
    assert _taken(store, 2) == 1


@pytest.mark.asyncio
async def test_store_failure_after_append_is_compensated(slot_row, limits) -> None:
    store = FlakyStore({"Slots": [slot_row(1, capacity=2)]})

    with pytest.raises(TransientStoreError):
        await _book(store, limits)

    assert _statuses(store) == ["FAILED"]
    assert _taken(store, 1) == 0


@pytest.mark.asyncio
async def test_append_timeout_after_commit_is_compensated(slot_row, limits) -> None:
    store = AppendTimesOutStore({"Slots": [slot_row(1, capacity=2)]})

    with pytest.raises(TransientStoreError):
        await _book(store, limits)

    assert _statuses(store) == ["FAILED"]
    assert _taken(store, 1) == 0


@pytest.mark.asyncio
async def test_refused_append_leaves_counters_alone(slot_row, limits) -> None:
    store = AppendRefusedStore({"Slots": [slot_row(1, capacity=2, taken=1)]})

    with pytest.raises(TransientStoreError):
        await _book(store, limits)

    assert store.tables["Signups"] == []
    assert _taken(store, 1) == 1
    assert "update_cells" not in store.calls


@pytest.mark.asyncio
async def test_slot_deleted_mid_booking_reports_missing_slot(slot_row, limits) -> None:
    store = VanishingSlotStore({"Slots": [slot_row(1, capacity=2)]})

    with pytest.raises(RaceLostError) as excinfo:
        await _book(store, limits)

    err = excinfo.value
    assert err.message == "Slot data missing. Please refresh and try again."
    assert err.slot_status[0]["reason"] == "Slot data missing"
    assert _statuses(store) == ["FAILED"]


@pytest.mark.asyncio
async def test_stale_counter_is_repaired_on_success(make_store, slot_row, signup_row, limits) -> None:
    store = make_store(
        slots=[slot_row(1, capacity=4, taken=0)],
        signups=[signup_row(10, 1, phone="5550000001"), signup_row(11, 1, phone="5550000002")],
    )

    await _book(store, limits)

    assert _taken(store, 1) == 3


@pytest.mark.asyncio
async def test_booking_invalidates_cache(make_store, slot_row, limits) -> None:
    store = make_store(slots=[slot_row(1, capacity=1, taken=1)])
    cache: SlotCache = SlotCache(ttl_seconds=30)

    cache.set({"stale": []})
    await _book(make_store(slots=[slot_row(1)]), limits, cache=cache)
    assert cache.get() is None

    cache.set({"stale": []})
    with pytest.raises(SlotFullError):
        await _book(store, limits, cache=cache)
    assert cache.get() == {"stale": []}


@pytest.mark.asyncio
async def test_book_cancel_rebook_scenario(make_store, slot_row, signup_row, limits) -> None:
    store = make_store(
        slots=[slot_row(5, capacity=2, taken=1)],
        signups=[signup_row(50, 5, phone="5550000000")],
    )
    slot_repo, signup_repo = _repos(store)

    booked = await _book(store, limits, phone="5551111111", slot_ids=[5])
    assert _taken(store, 5) == 2

    with pytest.raises(SlotFullError):
        await _book(store, limits, phone="5552222222", slot_ids=[5])

    await uc.cancel_booking(
        slot_repo,
        signup_repo,
        signup_id=booked.signups[0].id,
        slot_id=5,
        contact_value="5551111111",
        tz_name=TZ,
    )
    assert _taken(store, 5) == 1

    await _book(store, limits, phone="5552222222", slot_ids=[5])
    assert _taken(store, 5) == 2
    assert _statuses(store) == ["ACTIVE", "CANCELLED", "ACTIVE"]

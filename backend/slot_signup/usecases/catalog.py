from __future__ import annotations

import asyncio
import logging
import time
from datetime import date
from typing import Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from ..domain.contact import PHONE_DIGITS, contact_from_query, is_valid_email
from ..domain.errors import ValidationError
from ..domain.repositories import SignupRepository, SlotRepository
from ..models import Signup, Slot
from ..utils.time import label_start_minutes, local_today, parse_slot_date

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SlotCache(Generic[T]):
    """
    Last value with a timestamp. Concurrent misses share one refresh, and a load that
    started before an invalidation is returned to its callers but never stored.
    """

    def __init__(self, *, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Optional[T] = None
        self._stored_at = 0.0
        self._generation = 0
        self._lock = asyncio.Lock()

    def get(self) -> Optional[T]:
        if self._value is not None and self._clock() - self._stored_at < self.ttl_seconds:
            return self._value
        return None

    def set(self, value: T) -> None:
        self._value = value
        self._stored_at = self._clock()

    def invalidate(self) -> None:
        self._value = None
        self._stored_at = 0.0
        self._generation += 1
        logger.info("slot cache invalidated")

    async def get_or_load(self, loader: Callable[[], Awaitable[T]]) -> T:
        cached = self.get()
        if cached is not None:
            logger.debug("slot cache hit")
            return cached
        async with self._lock:
            cached = self.get()
            if cached is not None:
                return cached
            logger.debug("slot cache miss")
            generation = self._generation
            value = await loader()
            if generation == self._generation:
                self.set(value)
            return value


def group_available(slots: List[Slot], *, today: date) -> Dict[str, List[Slot]]:
    """Bookable slots grouped by date, dates ascending and slots by start time."""
    grouped: Dict[str, List[Slot]] = {}
    for slot in slots:
        slot_date = parse_slot_date(slot.date)
        if slot_date is None or slot_date < today:
            continue
        if slot.capacity <= 0 or slot.available <= 0:
            continue
        grouped.setdefault(slot.date, []).append(slot)
    return {
        day: sorted(grouped[day], key=lambda s: label_start_minutes(s.label))
        for day in sorted(grouped)
    }


async def list_available_slots(
    slot_repo: SlotRepository,
    *,
    tz_name: str,
    cache: Optional[SlotCache[Dict[str, List[Slot]]]] = None,
) -> Dict[str, List[Slot]]:
    async def load() -> Dict[str, List[Slot]]:
        slots = await slot_repo.list_all()
        return group_available(slots, today=local_today(tz_name))

    if cache is None:
        return await load()
    return await cache.get_or_load(load)


async def list_all_slots(slot_repo: SlotRepository) -> List[Slot]:
    slots = await slot_repo.list_all()
    return sorted(slots, key=lambda s: (s.date, label_start_minutes(s.label)))


async def lookup_bookings(signup_repo: SignupRepository, *, contact_value: str) -> List[Signup]:
    contact = contact_from_query(contact_value)
    if contact.email:
        if not is_valid_email(contact.email):
            raise ValidationError("Invalid email address.")
    elif len(contact.phone) != PHONE_DIGITS:
        raise ValidationError("Invalid 10-digit phone number.")

    signups = await signup_repo.list_all()
    return [s for s in signups if s.is_active and contact.matches(s.phone, s.email)]

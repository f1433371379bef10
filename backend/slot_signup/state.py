from __future__ import annotations

from typing import Dict, List, Optional

from .config import Settings
from .domain.services import BookingLimits
from .domain.store import TabularStore
from .infrastructure.memory_store import InMemoryTabularStore
from .infrastructure.sheets_store import GoogleSheetsStore
from .models import Slot
from .usecases.admin_slots import CapacityRange
from .usecases.catalog import SlotCache
from .utils.rate_limit import ConcurrencyGuard, SlidingWindowRateLimiter


def build_store(settings: Settings) -> TabularStore:
    if settings.store_backend == "memory":
        return InMemoryTabularStore()
    if settings.store_backend != "sheets":
        raise RuntimeError(f"Unknown STORE_BACKEND: {settings.store_backend}")

    missing = [] if settings.sheet_id else ["SHEET_ID"]
    if not settings.google_service_account:
        if not settings.google_service_account_email:
            missing.append("GOOGLE_SERVICE_ACCOUNT_EMAIL")
        if not settings.google_private_key:
            missing.append("GOOGLE_PRIVATE_KEY")
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    return GoogleSheetsStore.from_settings(settings)


class ServiceState:
    """Per-app mutable state: the store handle, slot cache and throttles."""

    def __init__(self, settings: Settings, store: Optional[TabularStore] = None) -> None:
        self.settings = settings
        self._store = store
        self.slot_cache: SlotCache[Dict[str, List[Slot]]] = SlotCache(ttl_seconds=settings.cache_ttl_seconds)
        self.rate_limiter = SlidingWindowRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
        self.booking_guard = ConcurrencyGuard(max_in_flight=settings.max_concurrent_bookings)

    @property
    def store(self) -> TabularStore:
        if self._store is None:
            self._store = build_store(self.settings)
        return self._store

    @property
    def booking_limits(self) -> BookingLimits:
        s = self.settings
        return BookingLimits(
            max_slots=s.max_slots_per_booking,
            min_name_length=s.min_name_length,
            max_name_length=s.max_name_length,
            max_email_length=s.max_email_length,
            max_phone_length=s.max_phone_length,
            max_notes_length=s.max_notes_length,
            max_category_length=s.max_category_length,
        )

    @property
    def capacity_range(self) -> CapacityRange:
        return CapacityRange(minimum=self.settings.min_slot_capacity, maximum=self.settings.max_slot_capacity)

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..deps import get_signup_repo, get_slot_repo, get_state, to_http_exception
from ..domain.errors import BookingError
from ..infrastructure.repositories import SheetSignupRepository, SheetSlotRepository
from ..schemas import BookingsRead, SignupLookupRead, SlotRead, SlotsByDate
from ..state import ServiceState
from ..usecases import catalog as catalog_usecase

router = APIRouter(prefix="", tags=["slots"])


@router.get("/slots", response_model=SlotsByDate | BookingsRead)
async def list_slots(
    contact: Optional[str] = Query(default=None, description="Phone number or email to look up bookings for"),
    state: ServiceState = Depends(get_state),
    slot_repo: SheetSlotRepository = Depends(get_slot_repo),
    signup_repo: SheetSignupRepository = Depends(get_signup_repo),
) -> SlotsByDate | BookingsRead:
    if contact is not None:
        try:
            signups = await catalog_usecase.lookup_bookings(signup_repo, contact_value=contact)
        except BookingError as exc:
            raise to_http_exception(exc) from exc
        return BookingsRead(bookings=[SignupLookupRead.from_domain(s) for s in signups])

    try:
        grouped = await catalog_usecase.list_available_slots(
            slot_repo,
            tz_name=state.settings.timezone,
            cache=state.slot_cache,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return SlotsByDate(dates={day: [SlotRead.from_domain(slot) for slot in slots] for day, slots in grouped.items()})

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..deps import client_identity, enforce_rate_limit, get_signup_repo, get_slot_repo, get_state, to_http_exception
from ..domain.contact import normalize_phone
from ..domain.errors import BookingError, RaceLostError
from ..infrastructure.repositories import SheetSignupRepository, SheetSlotRepository
from ..models import SignupStatus
from ..schemas import BookingCancel, BookingCreate, MessageRead
from ..state import ServiceState
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log

router = APIRouter(prefix="", tags=["bookings"])


def _audit(**kwargs: Any) -> None:
    try:
        emit_audit_log(**kwargs)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to write audit log") from exc


@router.post("/book", response_model=MessageRead, response_model_exclude_none=True, dependencies=[Depends(enforce_rate_limit)])
async def create_booking(
    payload: BookingCreate,
    request: Request,
    state: ServiceState = Depends(get_state),
    slot_repo: SheetSlotRepository = Depends(get_slot_repo),
    signup_repo: SheetSignupRepository = Depends(get_signup_repo),
) -> MessageRead:
    guard_key = normalize_phone(payload.phone) or (payload.email or "").strip().lower() or client_identity(request)
    try:
        with state.booking_guard.hold(guard_key):
            result = await reservation_usecase.book(
                slot_repo,
                signup_repo,
                name=payload.name,
                phone=payload.phone,
                email=payload.email,
                notes=payload.notes,
                category=payload.category,
                slot_ids=payload.slot_ids,
                limits=state.booking_limits,
                tz_name=state.settings.timezone,
                cache=state.slot_cache,
            )
    except RaceLostError as exc:
        _audit(
            action="booking.rolled_back",
            initiator="system",
            slot_ids=[s["slotId"] for s in exc.slot_status],
            signup_ids=exc.signup_ids,
            batch_id=exc.batch_id,
            status_from=SignupStatus.ACTIVE,
            status_to=SignupStatus.FAILED,
            message=exc.message,
        )
        raise to_http_exception(exc) from exc
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    _audit(
        action="booking.created",
        initiator="user",
        slot_ids=[s.slot_id for s in result.signups],
        signup_ids=[s.id for s in result.signups],
        batch_id=result.batch_id,
        contact=result.signups[0].contact if result.signups else None,
        status_to=SignupStatus.ACTIVE,
    )
    return MessageRead(message=result.message)


@router.patch("/book", response_model=MessageRead, response_model_exclude_none=True, dependencies=[Depends(enforce_rate_limit)])
async def cancel_booking(
    payload: BookingCancel,
    state: ServiceState = Depends(get_state),
    slot_repo: SheetSlotRepository = Depends(get_slot_repo),
    signup_repo: SheetSignupRepository = Depends(get_signup_repo),
) -> MessageRead:
    try:
        result = await reservation_usecase.cancel_booking(
            slot_repo,
            signup_repo,
            signup_id=payload.signup_id,
            slot_id=payload.slot_id,
            contact_value=payload.contact_value,
            require_contact=state.settings.require_contact_for_cancel,
            tz_name=state.settings.timezone,
            cache=state.slot_cache,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    _audit(
        action="booking.cancelled",
        initiator="user",
        slot_ids=[result.signup.slot_id],
        signup_ids=[result.signup.id],
        batch_id=result.signup.batch_id or None,
        contact=result.signup.contact,
        status_from=result.status_from,
        status_to=result.status_to,
    )
    return MessageRead(message=result.message)

from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, status

from ..deps import get_signup_repo, get_slot_repo, get_state, require_admin, to_http_exception
from ..domain.errors import BookingError
from ..infrastructure.repositories import SheetSignupRepository, SheetSlotRepository
from ..schemas import AdminAddSlots, AdminDeleteSlots, AdminLogin, AdminSessionRead, MessageRead, SlotList, SlotRead
from ..state import ServiceState
from ..usecases import admin_slots as admin_usecase
from ..usecases import catalog as catalog_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.auth import ADMIN_SUBJECT, check_password, create_access_token, decode_access_token

router = APIRouter(prefix="/admin", tags=["admin"])


def _audit(**kwargs: Any) -> None:
    try:
        emit_audit_log(**kwargs)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to write audit log") from exc


@router.post("/session", response_model=AdminSessionRead, response_model_exclude_none=True)
async def login(payload: AdminLogin, state: ServiceState = Depends(get_state)) -> AdminSessionRead:
    settings = state.settings
    if not check_password(payload.password, settings.admin_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")
    token = create_access_token(
        subject=ADMIN_SUBJECT,
        secret=settings.auth_secret,
        algorithm=settings.auth_algorithm,
        expires_delta=timedelta(seconds=settings.admin_token_ttl_seconds),
    )
    return AdminSessionRead(ok=True, token=token, expires_in=settings.admin_token_ttl_seconds)


@router.get("/session", response_model=AdminSessionRead, response_model_exclude_none=True)
async def check_session(
    authorization: str | None = Header(default=None),
    state: ServiceState = Depends(get_state),
) -> AdminSessionRead:
    if authorization is None or not authorization.startswith("Bearer "):
        return AdminSessionRead(ok=False)
    settings = state.settings
    try:
        subject = decode_access_token(
            authorization.removeprefix("Bearer ").strip(),
            secret=settings.auth_secret,
            algorithms=[settings.auth_algorithm],
        )
    except ValueError:
        return AdminSessionRead(ok=False)
    return AdminSessionRead(ok=subject == ADMIN_SUBJECT)


@router.get("/slots", response_model=SlotList, dependencies=[Depends(require_admin)])
async def list_slots(slot_repo: SheetSlotRepository = Depends(get_slot_repo)) -> SlotList:
    try:
        slots = await catalog_usecase.list_all_slots(slot_repo)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return SlotList(slots=[SlotRead.from_domain(slot) for slot in slots])


@router.post("/slots", response_model=MessageRead, dependencies=[Depends(require_admin)])
async def add_slots(
    payload: AdminAddSlots,
    state: ServiceState = Depends(get_state),
    slot_repo: SheetSlotRepository = Depends(get_slot_repo),
) -> MessageRead:
    default_capacity = state.settings.default_slot_capacity
    drafts = [
        admin_usecase.SlotDraft(
            date=day.date,
            label=entry.label,
            capacity=entry.capacity if entry.capacity is not None else default_capacity,
        )
        for day in payload.new_slots_data
        for entry in day.slots
    ]
    try:
        result = await admin_usecase.add_slots(
            slot_repo,
            drafts=drafts,
            capacity_range=state.capacity_range,
            tz_name=state.settings.timezone,
            cache=state.slot_cache,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    _audit(action="slots.added", initiator="admin", slot_ids=[slot.id for slot in result.slots])
    return MessageRead(message=result.message, details=[SlotRead.from_domain(s).model_dump(by_alias=True) for s in result.slots])


@router.delete("/slots", response_model=MessageRead, response_model_exclude_none=True, dependencies=[Depends(require_admin)])
async def delete_slots(
    payload: AdminDeleteSlots,
    state: ServiceState = Depends(get_state),
    slot_repo: SheetSlotRepository = Depends(get_slot_repo),
    signup_repo: SheetSignupRepository = Depends(get_signup_repo),
) -> MessageRead:
    try:
        result = await admin_usecase.delete_slots(
            slot_repo,
            signup_repo,
            slot_ids=payload.row_ids,
            cache=state.slot_cache,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    _audit(action="slots.deleted", initiator="admin", slot_ids=[slot.id for slot in result.slots])
    return MessageRead(message=result.message)

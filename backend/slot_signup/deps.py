from fastapi import Depends, Header, HTTPException, Request, status

from .domain.errors import BookingError, RateLimitError
from .domain.store import TabularStore
from .infrastructure.repositories import SheetSignupRepository, SheetSlotRepository
from .state import ServiceState
from .utils.auth import ADMIN_SUBJECT, decode_access_token


def to_http_exception(exc: BookingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.payload())


def get_state(request: Request) -> ServiceState:
    return request.app.state.service


def get_store(state: ServiceState = Depends(get_state)) -> TabularStore:
    return state.store


def get_slot_repo(store: TabularStore = Depends(get_store)) -> SheetSlotRepository:
    return SheetSlotRepository(store)


def get_signup_repo(store: TabularStore = Depends(get_store)) -> SheetSignupRepository:
    return SheetSignupRepository(store)


def client_identity(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(request: Request, state: ServiceState = Depends(get_state)) -> None:
    try:
        state.rate_limiter.hit(client_identity(request))
    except RateLimitError as exc:
        raise to_http_exception(exc) from exc


async def require_admin(
    authorization: str | None = Header(default=None),
    state: ServiceState = Depends(get_state),
) -> str:
    if authorization is None or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    token = authorization.removeprefix("Bearer ").strip()
    settings = state.settings
    try:
        subject = decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from exc
    if subject != ADMIN_SUBJECT:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return subject

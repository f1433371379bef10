from typing import Awaitable, Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .domain.store import TabularStore
from .routers import admin, bookings, slots
from .state import ServiceState
from .utils.request_id import REQUEST_ID_HEADER, resolve_request_id, set_request_id


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        body = {"ok": False, **exc.detail}
    else:
        body = {"ok": False, "error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"ok": False, "error": "; ".join(messages) or "Invalid request."},
    )


def create_app(settings: Optional[Settings] = None, store: Optional[TabularStore] = None) -> FastAPI:
    app = FastAPI(title="Slot Signup API")
    app.state.service = ServiceState(settings or get_settings(), store=store)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.middleware("http")(request_id_middleware)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(slots.router)
    app.include_router(bookings.router)
    app.include_router(admin.router)
    return app


app = create_app()

import json
import logging
import time
import traceback
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from pharmacy_inventory.core.config import settings
from pharmacy_inventory.services.errors import InventoryError

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
logger = logging.getLogger("pharmacy_inventory.api")
inventory_logger = logging.getLogger("pharmacy_inventory.inventory")


def setup_observability() -> None:
    for target in (logger, inventory_logger):
        if target.handlers:
            continue
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        target.addHandler(handler)
        target.setLevel(logging.INFO)
        target.propagate = False


def get_request_id() -> str:
    return request_id_ctx.get()


def _emit(target: logging.Logger, level: int, payload: dict[str, Any]) -> None:
    # Decimals, dates and enums are rendered with str().
    target.log(level, json.dumps(payload, default=str))


def log_inventory_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """One JSON line per stock mutation or rejection, tagged with the current request id."""
    _emit(inventory_logger, level, {"event": event, "request_id": get_request_id(), **fields})


def _resolve_request_id(request: Request) -> str:
    return (
        getattr(request.state, "request_id", None)
        or request.headers.get("x-request-id")
        or get_request_id()
    )


def _error_response(
    *,
    status_code: int,
    request: Request,
    code: str,
    message: str,
    details: list[dict] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    envelope = {
        "code": code,
        "message": message,
        "request_id": _resolve_request_id(request),
        "path": request.url.path,
        "details": details,
    }
    return JSONResponse(status_code=status_code, headers=headers, content={"error": envelope})


async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    request.state.request_id = request_id
    token = request_id_ctx.set(request_id)
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    finally:
        _emit(
            logger,
            logging.WARNING if status_code >= 500 else logging.INFO,
            {
                "event": "request",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        request_id_ctx.reset(token)

    response.headers["X-Request-ID"] = request_id
    response.headers["X-API-Timeout-Hint-Ms"] = str(settings.api_timeout_hint_ms)
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    _emit(
        logger,
        logging.ERROR,
        {
            "event": "unhandled_exception",
            "request_id": _resolve_request_id(request),
            "path": request.url.path,
            "error": str(exc),
            "traceback": traceback.format_exc(limit=10),
        },
    )
    return _error_response(
        status_code=500,
        request=request,
        code="internal_error",
        message="Internal server error",
    )


_STATUS_CODE_MAP = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
}


async def http_exception_handler(request: Request, exc: HTTPException):
    if isinstance(exc.detail, str):
        message, details = exc.detail, None
    else:
        message, details = "HTTP error", exc.detail
    return _error_response(
        status_code=exc.status_code,
        request=request,
        code=_STATUS_CODE_MAP.get(exc.status_code, "http_error"),
        message=message,
        details=details,
        headers=exc.headers,
    )


async def inventory_exception_handler(request: Request, exc: InventoryError):
    # 409 and above log at WARNING.
    log_inventory_event(
        "inventory.rejected",
        level=logging.WARNING if exc.status_code >= 409 else logging.INFO,
        code=exc.code,
        path=request.url.path,
        message=exc.message,
    )
    return _error_response(
        status_code=exc.status_code,
        request=request,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


def _validation_details(errors) -> list[dict]:
    details = []
    for err in errors:
        # Drop the "body"/"query" prefix so clients see the bare field path.
        location = [str(part) for part in err.get("loc", [])[1:]]
        details.append(
            {
                "field": ".".join(location) if location else "body",
                "message": err.get("msg", "Invalid value"),
                "type": err.get("type"),
            }
        )
    return details


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error_response(
        status_code=422,
        request=request,
        code="validation_error",
        message="Validation failed",
        details=_validation_details(exc.errors()),
    )

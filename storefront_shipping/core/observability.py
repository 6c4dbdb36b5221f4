import json
import logging
import time
import traceback
from contextvars import ContextVar
from uuid import uuid4

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
logger = logging.getLogger("storefront.api")
shipping_logger = logging.getLogger("storefront.shipping")

ERROR_CODES: dict[int, str] = {
    400: "bad_request",
    404: "not_found",
    422: "validation_error",
    429: "rate_limited",
    500: "internal_error",
    502: "upstream_unavailable",
}


def setup_observability(level: str = "INFO") -> None:
    for target in (logger, shipping_logger):
        target.setLevel(level.upper())
        target.propagate = False
        if not target.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("%(message)s"))
            target.addHandler(handler)


def get_request_id() -> str:
    return request_id_ctx.get()


def log_event(target: logging.Logger, level: int, event: str, **fields) -> None:
    """Writes one JSON line tagged with the current request id."""
    target.log(
        level,
        json.dumps(
            {"event": event, "request_id": get_request_id(), **fields},
            default=str,
            ensure_ascii=False,
        ),
    )


def _resolve_request_id(request: Request) -> str:
    return (
        getattr(request.state, "request_id", None)
        or request.headers.get("x-request-id")
        or get_request_id()
    )


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    *,
    details: list[dict] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content={
            "error": {
                "code": ERROR_CODES.get(status_code, "http_error"),
                "message": message,
                "request_id": _resolve_request_id(request),
                "path": request.url.path,
                "details": details,
            }
        },
    )


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
        log_event(
            logger,
            logging.INFO,
            "request",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        request_id_ctx.reset(token)

    response.headers["X-Request-ID"] = request_id
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        json.dumps(
            {
                "event": "unhandled_exception",
                "request_id": _resolve_request_id(request),
                "path": request.url.path,
                "error": str(exc),
                "traceback": traceback.format_exc(limit=10),
            }
        )
    )
    return _error_response(request, 500, "Internal server error")


async def http_exception_handler(request: Request, exc: HTTPException):
    if isinstance(exc.detail, str):
        return _error_response(request, exc.status_code, exc.detail, headers=exc.headers)
    return _error_response(request, exc.status_code, "HTTP error", details=exc.detail, headers=exc.headers)


def _validation_issues(exc: RequestValidationError) -> list[dict]:
    issues = []
    for err in exc.errors():
        # Drop the "body" prefix so fields read as the client sent them.
        location = [str(part) for part in err.get("loc", []) if part != "body"]
        issues.append(
            {
                "field": ".".join(location) or "body",
                "message": err.get("msg", "Invalid value"),
                "type": err.get("type"),
            }
        )
    return issues


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error_response(request, 422, "Validation failed", details=_validation_issues(exc))

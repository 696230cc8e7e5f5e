import logging
import time
from uuid import uuid4

from fastapi import Request
from fastapi.responses import JSONResponse

from bolsago.config import settings

logger = logging.getLogger("bolsago.api")


def _request_id(request: Request):
    return getattr(request.state, "request_id", None)


async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or uuid4().hex
    request.state.request_id = rid
    response = await call_next(request)
    response.headers["x-request-id"] = rid
    return response


async def enforce_body_size(request: Request, call_next):
    """Reject any request whose declared body exceeds the configured limit."""
    max_mb = settings.imports.max_upload_mb
    declared = request.headers.get("content-length", "")
    if declared and not declared.isdigit():
        return JSONResponse(
            status_code=400,
            content={"error": "invalid_content_length", "detail": declared, "request_id": _request_id(request)},
        )
    if declared and int(declared) > max_mb * 1024 * 1024:
        logger.warning(
            "request body rejected",
            extra={"path": request.url.path, "content_length": int(declared), "limit_mb": max_mb},
        )
        return JSONResponse(
            status_code=413,
            content={
                "error": "request_too_large",
                "detail": f"Requisição muito grande. Tamanho máximo: {max_mb}MB",
                "request_id": _request_id(request),
            },
        )
    return await call_next(request)


async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        level = logging.WARNING if status >= 500 else logging.INFO
        logger.log(
            level,
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                "request_id": _request_id(request),
            },
        )

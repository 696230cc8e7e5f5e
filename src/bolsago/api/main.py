import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bolsago.config import settings
from bolsago.exceptions import (
    ContractViolationError,
    DataSourceError,
    LookupUnavailableError,
    PersistenceError,
)
from bolsago.api.middleware import add_request_id, enforce_body_size, log_requests
from bolsago.api import deps
from bolsago.imports import InMemoryExistingRecords

# Routers
from bolsago.api.routers import imports, system

# Configure logging
logging.basicConfig(level=getattr(logging, settings.logging.level.upper(), logging.INFO))
logger = logging.getLogger("bolsago.api")


def _error_payload(request: Request, error: str, detail: str) -> dict:
    payload = {"error": error, "detail": detail}
    rid = getattr(request.state, "request_id", None)
    if rid:
        payload["request_id"] = rid
    return payload


def create_app(existing_records_file: Optional[Path] = None) -> FastAPI:
    """
    Factory to build the FastAPI application.
    Passing existing_records_file swaps the duplicate-detection snapshot (used in tests).
    """
    deps.reset_cached_instances()

    app = FastAPI(title=f"{settings.app.name} Import API", version=settings.app.version)
    if existing_records_file:
        snapshot = InMemoryExistingRecords.from_json_file(existing_records_file)
        app.dependency_overrides[deps.get_existing_records] = lambda: snapshot

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Last registered runs first: request id, then request log, then the body cap.
    app.middleware("http")(enforce_body_size)
    if settings.logging.log_requests:
        app.middleware("http")(log_requests)
    app.middleware("http")(add_request_id)

    app.include_router(system.router)
    app.include_router(imports.router)

    @app.exception_handler(DataSourceError)
    async def datasource_exception_handler(request: Request, exc: DataSourceError):
        return JSONResponse(status_code=422, content=_error_payload(request, "invalid_source", str(exc)))

    @app.exception_handler(LookupUnavailableError)
    @app.exception_handler(PersistenceError)
    async def collaborator_exception_handler(request: Request, exc: Exception):
        logger.error("collaborator failure", extra={"path": str(request.url), "detail": str(exc)})
        return JSONResponse(status_code=503, content=_error_payload(request, "collaborator_unavailable", str(exc)))

    @app.exception_handler(ContractViolationError)
    async def contract_exception_handler(request: Request, exc: ContractViolationError):
        return JSONResponse(status_code=409, content=_error_payload(request, "contract_violation", str(exc)))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        from starlette.exceptions import HTTPException as StarletteHTTPException
        if isinstance(exc, StarletteHTTPException):
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

        rid = getattr(request.state, "request_id", None)
        logger.exception("Unhandled error", extra={"path": str(request.url), "request_id": rid})
        return JSONResponse(status_code=500, content=_error_payload(request, "internal_error", "Unexpected server error"))

    return app

# Module-level app for uvicorn entrypoint
app = create_app()

# src/dropline/main.py
"""Main entry point for the Dropline application."""

from __future__ import annotations

import logging
import re
import time

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from dropline.api.v1 import auth_router, files_router, share_router, users_router
from dropline.core.errors import TransferError
from dropline.core.settings import settings
from dropline.services.storage import LocalDiskStore, build_storage_gateway

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Share tokens are bearer capabilities and must not end up in access logs
_SHARE_TOKEN_IN_PATH = re.compile(r"(/(?:share|transfers)/)[^/]+")

# Initialize FastAPI app
app = FastAPI(
    title="Dropline API",
    description="Time-limited file transfers with optional recipient-gated access",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(files_router, prefix="/api/v1")
app.include_router(share_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")


@app.middleware("http")
async def log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s %d %.1fms",
        request.method,
        _SHARE_TOKEN_IN_PATH.sub(r"\1***", request.url.path),
        response.status_code,
        elapsed_ms,
    )
    return response


@app.exception_handler(TransferError)
async def transfer_error_handler(request: Request, exc: TransferError) -> JSONResponse:
    """Map service errors to their HTTP status with a ``detail`` message."""
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.on_event("startup")
async def on_startup() -> None:
    # Tests may install their own gateway before startup
    if getattr(app.state, "storage", None) is None:
        app.state.storage = build_storage_gateway(settings)
    if getattr(app.state, "local_store", None) is None:
        app.state.local_store = LocalDiskStore(settings.local_storage_dir)
    logger.info("%s %s started (%s)", settings.app_name, settings.app_version, settings.environment)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("dropline.main:app", host="0.0.0.0", port=8000, reload=settings.debug)

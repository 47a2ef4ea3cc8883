"""
FastAPI application wiring.

This file creates the `FastAPI` instance, installs CORS and maps domain errors to
HTTP responses. Business logic lives in `medshare.api.routes` and `medshare.repository`.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from medshare.backend.client import BackendError
from medshare.core.logging import configure_logging
from medshare.donations.validation import InvalidImage
from medshare.repository.medicines import MedicineNotFound, NotListingOwner
from medshare.repository.profiles import ProfileNotFound

from .deps import get_backend
from .routes import router

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    # Only close the shared client if a request actually built it.
    if get_backend.cache_info().currsize:
        await get_backend().aclose()


app = FastAPI(title="MedShare API", version="0.1.0", lifespan=lifespan)

# CORS (dev-friendly): allow local frontends to call this API.
# - MEDSHARE_CORS_ORIGINS="http://localhost:5173,http://127.0.0.1:5173"
# - MEDSHARE_CORS_ALLOW_LOCAL=0 to disable the default localhost allowance
cors_origins = [s.strip() for s in os.getenv("MEDSHARE_CORS_ORIGINS", "").split(",") if s.strip()]
cors_allow_local = os.getenv("MEDSHARE_CORS_ALLOW_LOCAL", "1").strip().lower() in {"1", "true", "yes", "y"}
cors_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$" if cors_allow_local and not cors_origins else ""
if cors_origins or cors_origin_regex:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_origin_regex=cors_origin_regex or None,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router)


def _error(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": {"code": code, "message": message, **extra}})


@app.exception_handler(BackendError)
async def _backend_error(_request: Request, exc: BackendError) -> JSONResponse:
    logger.warning("Backend error: %s (code=%s status=%s)", exc.message, exc.code, exc.status)
    return _error(502, "BACKEND_ERROR", exc.message)


@app.exception_handler(MedicineNotFound)
@app.exception_handler(ProfileNotFound)
async def _not_found(_request: Request, exc: LookupError) -> JSONResponse:
    return _error(404, "NOT_FOUND", str(exc))


@app.exception_handler(NotListingOwner)
async def _not_owner(_request: Request, exc: NotListingOwner) -> JSONResponse:
    return _error(403, "FORBIDDEN", str(exc))


@app.exception_handler(InvalidImage)
async def _invalid_image(_request: Request, exc: InvalidImage) -> JSONResponse:
    return _error(400, "VALIDATION_ERROR", str(exc), fields={exc.field: str(exc)})


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}

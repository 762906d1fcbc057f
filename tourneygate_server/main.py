# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""TourneyGate Server - Main FastAPI application."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tourneygate_server.core.results import ERROR_MESSAGES, ErrorKind
from tourneygate_server.database import init_db
from tourneygate_server.routers import admin, auth, config, invitations, invite, members, tournaments
from tourneygate_server.storage.base import StorageError

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def _get_cors_origins() -> list[str]:
    from tourneygate_server.config import settings
    raw = (settings.cors_origins or "*").strip()
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    from tourneygate_server.config import settings

    await init_db()
    logger.info("Storage backend: %s", settings.storage_backend)
    if settings.jwt_secret == "change-me-in-production":
        logger.warning("JWT_SECRET is the default value - set it before exposing this server")
    if settings.allow_guest_redemption:
        logger.info("Guest and anonymous accounts may redeem invitations (ALLOW_GUEST_REDEMPTION)")
    yield
    # shutdown


app = FastAPI(
    title="TourneyGate Server",
    description="Tournament roles, permissions and invitations API",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status, and duration for each request (no body, query or auth headers)."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, duration_ms)
    return response


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    """Storage faults outside the service layer (e.g. loading the caller). No internals in the body."""
    logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
    kind = ErrorKind.STORAGE_FAILURE
    return JSONResponse(
        status_code=503,
        content={"detail": {"code": kind.value, "message": ERROR_MESSAGES[kind]}},
    )


# API v1
app.include_router(auth.router, prefix="/api/v1")
app.include_router(config.router, prefix="/api/v1")
app.include_router(tournaments.router, prefix="/api/v1")
app.include_router(members.router, prefix="/api/v1")
app.include_router(invitations.router, prefix="/api/v1")
app.include_router(invite.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")


@app.get("/")
async def root():
    """Health check / API info."""
    return {
        "name": "TourneyGate Server",
        "version": VERSION,
        "api": "/api/v1",
        "docs": "/api/docs",
    }


@app.get("/api/v1/health")
async def health():
    """Health check for load balancers."""
    return {"status": "ok"}

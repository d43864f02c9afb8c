#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Fuuka — FastAPI application factory
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fuuka.core.config import get_settings
from fuuka.core.database import create_all_tables, init_db
from fuuka.routes import chan


log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    settings = get_settings()
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    init_db()
    if settings.environment != "production":
        await create_all_tables()   # CREATE TABLE IF NOT EXISTS; the scraper owns production
    yield


# -----------------------------------------------------------------------------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Imageboard archive comment renderer and cross-reference API.",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # ── CORS ──────────────────────────────────────────────────────────────

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── API routers ───────────────────────────────────────────────────────

    app.include_router(chan.router, prefix="/api")

    # ── Global exception handlers ─────────────────────────────────────────

    @app.exception_handler(404)
    async def not_found(request: Request, exc):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "Not found"},
        )

    @app.exception_handler(500)
    async def server_error(request: Request, exc):
        log.error("%s %s failed", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    # ── Health check ──────────────────────────────────────────────────────

    @app.get("/api/health", tags=["system"])
    async def health():
        return {"status": "ok", "version": settings.app_version, "app": settings.app_name}

    return app


# -----------------------------------------------------------------------------

app = create_app()


# -----------------------------------------------------------------------------

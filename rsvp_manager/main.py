from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .config import settings
from .database import init_db
from .scheduler import shutdown_scheduler, start_scheduler

from .api.events import router as events_router
from .api.rsvps import router as rsvps_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="RSVP Manager API",
        version=settings.app_version,
    )

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Startup / shutdown ---
    @app.on_event("startup")
    def _startup() -> None:
        # Creates tables for all registered SQLModel models (non-destructive)
        init_db()
        if settings.scheduler_enabled:
            start_scheduler()

    @app.on_event("shutdown")
    def _shutdown() -> None:
        shutdown_scheduler()

    # --- Consistent error envelope ---
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc: HTTPException):  # noqa: ANN001
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    # --- Health / meta ---
    @app.get("/health", tags=["meta"])
    def health() -> Dict[str, Any]:
        return {
            "ok": True,
            "env": settings.env,
            "scheduler": settings.scheduler_enabled,
        }

    @app.get("/version", tags=["meta"])
    def version() -> Dict[str, Any]:
        return {"version": settings.app_version}

    # --- API routers ---
    app.include_router(events_router)
    app.include_router(rsvps_router)

    # --- Uploaded wallpapers ---
    settings.wallpaper_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

    return app


app = create_app()


def run() -> None:
    logging.basicConfig(
        level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    import uvicorn

    # NOTE: init_db and the scheduler are handled by the FastAPI startup hook.
    uvicorn.run(
        "rsvp_manager.main:app",
        host=settings.host,
        port=int(settings.port),
        reload=bool(settings.reload),
    )

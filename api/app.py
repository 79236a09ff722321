# ============================================================================
# API APPLICATION FACTORY
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - FastAPI application
# PURPOSE: Build the watchdog HTTP app around injected services
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Application Factory

The HTTP surface is a thin read-only adapter. The CLI serves it with
uvicorn in --serve-watchdog mode.

Usage:
    app = create_app(WatchdogService(EventLogRepository(path)))
    uvicorn.run(app, host="127.0.0.1", port=8710)
"""

from fastapi import FastAPI

from __version__ import __version__, EPOCH
from api.routes import router, set_services


def create_app(watchdog_service, scheduler=None) -> FastAPI:
    """Create the FastAPI app and wire the services into the routes."""
    set_services(watchdog_service, scheduler)

    app = FastAPI(
        title="Monitoring Scheduler",
        description=f"Epoch {EPOCH} tiered monitoring scheduler and task watchdog",
        version=__version__,
    )
    app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "Monitoring Scheduler",
            "version": __version__,
            "epoch": EPOCH,
            "status": "running",
            "docs": "/docs",
        }

    return app


__all__ = ["create_app"]

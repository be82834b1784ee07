"""
Network Monitor - API.

============================================================
RESPONSIBILITY
============================================================
Provides REST API over NetworkService for the monitoring UI.
============================================================
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .service import STATUS_BOOTSTRAP_FAILED, NetworkService

logger = logging.getLogger(__name__)


API_VERSION = "1.0.0"


# ============================================================
# Response Models
# ============================================================

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str = API_VERSION
    uptime_seconds: float = 0
    poller_running: bool = False
    total_cycles: int = 0
    failed_cycles: int = 0


def _respond(payload: Dict[str, Any]) -> JSONResponse:
    """Map service error objects onto HTTP status codes."""
    if "error" in payload:
        status_code = 503 if payload.get("status") == STATUS_BOOTSTRAP_FAILED else 500
        return JSONResponse(payload, status_code=status_code)
    return JSONResponse(payload)


# ============================================================
# FastAPI Application
# ============================================================

def create_app(service: NetworkService, manage_poller: bool = False) -> FastAPI:
    """
    Build the API app.

    Args:
        service: Service to expose
        manage_poller: Start the poller's loop on startup and close it on shutdown
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_poller:
            await service.poller.start()
        try:
            yield
        finally:
            if manage_poller:
                await service.poller.close()

    app = FastAPI(
        title="pNode Network Monitor API",
        description="Network overview, node health, change events and alerts for pNodes",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    startup_time = datetime.utcnow()

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint."""
        return {
            "service": "pNode Network Monitor API",
            "version": API_VERSION,
            "docs": "/docs",
        }

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        stats = service.poller.stats()
        return HealthResponse(
            status="healthy",
            timestamp=datetime.utcnow().isoformat(),
            uptime_seconds=(datetime.utcnow() - startup_time).total_seconds(),
            poller_running=stats["running"],
            total_cycles=stats["total_cycles"],
            failed_cycles=stats["failed_cycles"],
        )

    @app.get("/api/network", tags=["Network"])
    async def get_network():
        """Network overview statistics."""
        return _respond(await service.get_network())

    @app.get("/api/nodes", tags=["Network"])
    async def get_nodes():
        """Roster with stats, online flag and health score per node."""
        return _respond(await service.get_nodes())

    @app.get("/api/events", tags=["Activity"])
    async def get_events(limit: int = Query(50, ge=1, le=500)):
        """Recent change events, newest first."""
        return _respond(await service.get_events(limit))

    @app.get("/api/alerts", tags=["Activity"])
    async def get_alerts(limit: int = Query(50, ge=1, le=500)):
        """Recent alerts, newest first."""
        return _respond(await service.get_alerts(limit))

    @app.post("/api/refresh", tags=["Network"])
    async def refresh():
        """Run a cycle now, bypassing the cache."""
        return _respond(await service.refresh())

    return app

"""
Tracker Admin API

Design Decision: API Framework
==============================

Decision: FastAPI
- Native async support (runs on the tracker's event loop)
- Automatic OpenAPI documentation
- Pydantic models for the response shapes

API Design:
- Read-only: peers still register over the TCP protocol
- JSON responses built from registry snapshots, never the live mapping
"""

import logging
from typing import List, Dict
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .. import __version__

logger = logging.getLogger(__name__)


# === Pydantic Models ===

class TrackerStatus(BaseModel):
    """Tracker status response."""
    running: bool
    host: str
    port: int
    peers: int
    stats: Dict[str, int]


class PeerEntry(BaseModel):
    """One registered peer and what it advertises."""
    peer: str
    files: List[str]


# === API Creation ===

def create_app(service) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: TrackerService to inspect

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown."""
        logger.info("Admin API starting...")
        yield
        logger.info("Admin API stopping...")

    app = FastAPI(
        title="chunkshare Tracker API",
        description="Read-only view of the tracker's peer/file registry",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/", tags=["General"])
    async def root():
        """API root."""
        return {"name": "chunkshare tracker", "version": __version__}

    @app.get("/status", response_model=TrackerStatus, tags=["Tracker"])
    async def get_status():
        """Tracker status and counters."""
        host, port = service.address
        return TrackerStatus(
            running=service.is_running,
            host=host,
            port=port,
            peers=len(service.registry),
            stats=service.get_stats(),
        )

    @app.get("/peers", response_model=List[PeerEntry], tags=["Peers"])
    async def list_peers():
        """List registered peers and their advertised files."""
        snapshot = service.registry.snapshot()
        return [
            PeerEntry(peer=peer, files=files)
            for peer, files in snapshot.items()
        ]

    @app.get("/files/{file_name}/holders", response_model=List[str], tags=["Files"])
    async def get_holders(file_name: str):
        """Peers currently advertising a file."""
        holders = service.registry.find_holders(file_name)
        if not holders:
            raise HTTPException(status_code=404, detail="No peer has this file")
        return [str(identity) for identity in holders]

    return app


async def run_api_server(service, host: str = "0.0.0.0", port: int = 8080):
    """
    Run the API server.

    Args:
        service: TrackerService instance
        host: Host to bind to
        port: Port to listen on
    """
    import uvicorn

    app = create_app(service)

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()

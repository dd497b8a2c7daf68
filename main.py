# ============================================================================
# SECURITY CHECK ORCHESTRATOR - MAIN APPLICATION
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - FastAPI application entry point
# PURPOSE: Serve the orchestrator's control surface over HTTP
# CREATED: 19 OCT 2026
# ============================================================================
"""
Security Check Orchestrator Main Application

FastAPI application that:
1. Builds the orchestrator from environment configuration
2. Exposes run control, progress and configuration endpoints
3. Stops any run in flight on shutdown and waits for it to settle

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from __version__ import __version__, BUILD_DATE, EPOCH
from fastapi.middleware.cors import CORSMiddleware

from core.config import SecurityCheckConfig
from security_check import SecurityCheckOrchestrator, get_default_registry
from security_check.router import (
    drain_background_runs,
    health_router,
    router,
    set_orchestrator,
)

# Configure logging using our structured logging system
from core.logging import configure_logging, get_logger

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__)

# Global instance
_orchestrator: SecurityCheckOrchestrator = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Builds the orchestrator on startup, stops any run on shutdown.
    """
    global _orchestrator

    logger.info(
        f"Starting Security Check Orchestrator v{__version__} "
        f"(Epoch {EPOCH}, Build {BUILD_DATE})"
    )

    config = SecurityCheckConfig.from_env()
    registry = get_default_registry()
    _orchestrator = SecurityCheckOrchestrator(config, registry=registry)
    set_orchestrator(_orchestrator)
    logger.info(
        f"Orchestrator initialized ({len(config.enabled_kinds())}/{len(registry)} checks enabled, "
        f"timeout {config.timeout_ms}ms)"
    )

    yield

    # Shutdown
    logger.info("Shutting down Security Check Orchestrator...")
    if _orchestrator.stop():
        logger.info("Stopped security check run in flight")
    drained = await drain_background_runs()
    if drained:
        logger.info(f"Awaited {drained} background run(s)")
    set_orchestrator(None)
    logger.info("Security Check Orchestrator stopped")


# Create FastAPI app
app = FastAPI(
    title="Security Check Orchestrator",
    description=f"Epoch {EPOCH} security probe orchestration",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ALLOW_ORIGINS", "*").split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include health check routes (no prefix - /livez)
app.include_router(health_router)

# Include API routes
app.include_router(router, prefix="/api/v1")


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Security Check Orchestrator",
        "version": __version__,
        "epoch": EPOCH,
        "build_date": BUILD_DATE,
        "status": "running",
        "docs": "/docs",
    }


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )

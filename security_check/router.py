# ============================================================================
# SECURITY CHECK ROUTER
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Infrastructure - FastAPI endpoints
# PURPOSE: HTTP control surface for the security check orchestrator
# CREATED: 19 OCT 2026
# ============================================================================
"""
Security Check Router

Endpoints:
    GET   /livez                          - Liveness probe
    POST  /security-check/start           - Launch a run (202), 409 if running
    GET   /security-check/state           - Current progress snapshot
    GET   /security-check/report          - Snapshot, verdict and summary
    POST  /security-check/stop            - Cancel the run in flight
    POST  /security-check/reset           - Back to IDLE, 409 if running
    GET   /security-check/config          - Current configuration
    PATCH /security-check/config          - Partial update, 422 if rejected

Runs are launched in the background; poll /state or /report for progress.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, Field

from __version__ import __version__, BUILD_DATE
from core.config import ConfigurationInvalid
from security_check.capabilities import EnvironmentFacts
from security_check.errors import InvalidStateTransition
from security_check.orchestrator import SecurityCheckOrchestrator

logger = logging.getLogger(__name__)

health_router = APIRouter(tags=["Health"])
router = APIRouter(prefix="/security-check", tags=["Security Check"])


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# Set by the main app at startup

_orchestrator: Optional[SecurityCheckOrchestrator] = None
_background_runs: Set[asyncio.Task] = set()


def set_orchestrator(orchestrator: Optional[SecurityCheckOrchestrator]) -> None:
    """Set the orchestrator instance served by this router."""
    global _orchestrator
    _orchestrator = orchestrator


def get_orchestrator() -> SecurityCheckOrchestrator:
    if _orchestrator is None:
        raise HTTPException(500, "Security check orchestrator not initialized")
    return _orchestrator


async def drain_background_runs() -> int:
    """
    Wait for every run launched over HTTP to settle.

    Called on shutdown after stop(), so no run outlives the app.

    Returns:
        Number of runs awaited
    """
    pending = [task for task in _background_runs if not task.done()]
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    return len(pending)


class StartRequest(BaseModel):
    """Body of POST /security-check/start."""
    quick: bool = False
    facts: EnvironmentFacts = Field(default_factory=EnvironmentFacts)


# ============================================================================
# LIVENESS PROBE
# ============================================================================

@health_router.get("/livez")
async def liveness_probe():
    """Returns 200 while the process is responsive."""
    return {"status": "alive", "version": __version__, "build_date": BUILD_DATE}


# ============================================================================
# RUN CONTROL
# ============================================================================

@router.post("/start", status_code=202)
async def start_security_check(
    request: Optional[StartRequest] = Body(default=None),
    orchestrator: SecurityCheckOrchestrator = Depends(get_orchestrator),
):
    """
    Launch a run in the background.

    Facts in the body replace the matching facts on the orchestrator's
    capability handle for this run only.
    """
    request = request or StartRequest()
    handle = orchestrator.handle.with_facts(request.facts)
    try:
        task = orchestrator.launch(quick=request.quick, handle=handle)
    except InvalidStateTransition as e:
        raise HTTPException(409, str(e))

    _background_runs.add(task)
    task.add_done_callback(_background_runs.discard)

    logger.info(f"Security check launched (quick={request.quick})")
    return orchestrator.get_state().to_dict()


@router.post("/stop")
async def stop_security_check(
    orchestrator: SecurityCheckOrchestrator = Depends(get_orchestrator),
):
    """Signal the run in flight to stop. A no-op when nothing is running."""
    stopped = orchestrator.stop()
    return {"stopped": stopped, "state": orchestrator.state.value}


@router.post("/reset")
async def reset_security_check(
    orchestrator: SecurityCheckOrchestrator = Depends(get_orchestrator),
):
    try:
        orchestrator.reset()
    except InvalidStateTransition as e:
        raise HTTPException(409, str(e))
    return orchestrator.get_state().to_dict()


# ============================================================================
# READS
# ============================================================================

@router.get("/state")
async def get_security_check_state(
    orchestrator: SecurityCheckOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.get_state().to_dict()


@router.get("/report")
async def get_security_check_report(
    orchestrator: SecurityCheckOrchestrator = Depends(get_orchestrator),
):
    """Snapshot plus overall status. overall_status is unknown until a run ends."""
    return orchestrator.get_report().to_message()


# ============================================================================
# CONFIGURATION
# ============================================================================

@router.get("/config")
async def get_security_check_config(
    orchestrator: SecurityCheckOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.get_config().model_dump()


@router.patch("/config")
async def update_security_check_config(
    changes: Dict[str, Any] = Body(...),
    orchestrator: SecurityCheckOrchestrator = Depends(get_orchestrator),
):
    """
    Apply a partial configuration update.

    Response Codes:
        200 - Updated configuration
        409 - A run is in flight
        422 - Values rejected (nothing changed)
    """
    try:
        config = orchestrator.update_config(**changes)
    except InvalidStateTransition as e:
        raise HTTPException(409, str(e))
    except ConfigurationInvalid as e:
        raise HTTPException(422, detail={"message": str(e), "errors": e.errors})
    return config.model_dump()


__all__ = [
    "router",
    "health_router",
    "set_orchestrator",
    "get_orchestrator",
    "drain_background_runs",
    "StartRequest",
]

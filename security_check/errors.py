# ============================================================================
# SECURITY CHECK EXCEPTIONS
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Exception hierarchy for the probe pipeline
# PURPOSE: Distinguish transient probe failures from orchestrator faults
# CREATED: 19 OCT 2026
# ============================================================================
"""
Security Check Exceptions

Error taxonomy:
- A probe's negative verdict is data (CheckResult.passed=False), never an
  exception.
- CheckTimeout / any other Exception raised by a probe: transient, retried
  by the retry policy, then demoted to a failed CheckResult.
- CheckContractViolation: a probe broke its contract; ends the run (FAILED).
- InvalidStateTransition: caller misuse, raised synchronously.
"""

from typing import Optional

from core.contracts import CheckKind, RunState


class SecurityCheckError(Exception):
    """Base exception for the security check pipeline."""
    pass


class CheckTimeout(SecurityCheckError):
    """A single probe attempt exceeded its per-check timeout."""

    def __init__(self, kind: CheckKind, timeout_ms: int):
        self.kind = kind
        self.timeout_ms = timeout_ms
        super().__init__(f"{kind.value} check timed out after {timeout_ms}ms")


class InvalidStateTransition(SecurityCheckError):
    """Raised when an operation is not legal in the current run state."""

    def __init__(self, operation: str, state: RunState, message: Optional[str] = None):
        self.operation = operation
        self.state = state
        super().__init__(message or f"Cannot {operation} while {state.value}")


class CheckContractViolation(SecurityCheckError):
    """A probe returned something other than a CheckResult of its own kind."""

    def __init__(self, kind: CheckKind, message: str):
        self.kind = kind
        super().__init__(f"{kind.value}: {message}")


__all__ = [
    "SecurityCheckError",
    "CheckTimeout",
    "InvalidStateTransition",
    "CheckContractViolation",
]

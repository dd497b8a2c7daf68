# ============================================================================
# SECURITY CHECK MODULE
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Security probe orchestration
# PURPOSE: Run heterogeneous security probes and aggregate one verdict
# CREATED: 19 OCT 2026
# ============================================================================
"""
Security Check Module

Plugin-based security probe system:
- SecurityCheckPlugin: Base class for probes (one per CheckKind)
- CheckRegistry: Ordered probe catalogue
- invoke_with_retry: Bounded retries around one probe
- SecurityCheckOrchestrator: Sequential run driver with global timeout,
  stop/reset and live progress
- aggregate: Collapse results into one OverallStatus

Usage:
    from security_check import SecurityCheckOrchestrator
    from core.config import SecurityCheckConfig

    orchestrator = SecurityCheckOrchestrator(SecurityCheckConfig(timeout_ms=5000))
    snapshot = await orchestrator.start()
    print(orchestrator.get_overall_status())
"""

from security_check.errors import (
    SecurityCheckError,
    CheckTimeout,
    InvalidStateTransition,
    CheckContractViolation,
)
from security_check.capabilities import (
    CapabilityUnavailable,
    CapabilityHandle,
    EnvironmentFacts,
    LocalCryptoProvider,
    MemoryStorageProvider,
)
from security_check.core import (
    CheckDetail,
    CheckResult,
    SecurityCheckPlugin,
)
from security_check.registry import (
    CHECK_ORDER,
    QUICK_CHECK_KINDS,
    CheckRegistry,
    get_registry,
    get_default_registry,
    register_check,
)
from security_check.retry import invoke_with_retry
from security_check.progress import ProgressSnapshot, ProgressTracker
from security_check.aggregator import SecuritySummary, aggregate, summarize
from security_check.orchestrator import (
    CancellationToken,
    SecurityReport,
    SecurityCheckOrchestrator,
)

__all__ = [
    # Errors
    "SecurityCheckError",
    "CheckTimeout",
    "InvalidStateTransition",
    "CheckContractViolation",
    # Capabilities
    "CapabilityUnavailable",
    "CapabilityHandle",
    "EnvironmentFacts",
    "LocalCryptoProvider",
    "MemoryStorageProvider",
    # Core types
    "CheckDetail",
    "CheckResult",
    "SecurityCheckPlugin",
    # Registry
    "CHECK_ORDER",
    "QUICK_CHECK_KINDS",
    "CheckRegistry",
    "get_registry",
    "get_default_registry",
    "register_check",
    # Execution
    "invoke_with_retry",
    "ProgressSnapshot",
    "ProgressTracker",
    "SecuritySummary",
    "aggregate",
    "summarize",
    "CancellationToken",
    "SecurityReport",
    "SecurityCheckOrchestrator",
]

# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core module initialization
# PURPOSE: Export shared enums, configuration and store contract
# LAST_REVIEWED: 19 OCT 2026
# ============================================================================

from core.contracts import (
    CheckKind,
    OverallStatus,
    RunState,
    CancelReason,
    ThreatLevel,
    BiometricPlatform,
)
from core.config import ConfigurationInvalid, SecurityCheckConfig
from core.storage import KeyValueStore, MemoryStore

__all__ = [
    # Enums
    "CheckKind",
    "OverallStatus",
    "RunState",
    "CancelReason",
    "ThreatLevel",
    "BiometricPlatform",
    # Configuration
    "ConfigurationInvalid",
    "SecurityCheckConfig",
    # Storage
    "KeyValueStore",
    "MemoryStore",
]

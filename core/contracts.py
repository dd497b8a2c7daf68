# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Foundation - Core enums shared across the orchestrator
# PURPOSE: Define check identities, run states and aggregate verdicts
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: CheckKind, OverallStatus, RunState, CancelReason, ThreatLevel,
#          BiometricPlatform
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the security check orchestrator.

These enums cross every boundary:
- Python (orchestrator, checks, aggregation)
- JSON (snapshots and reports delivered to the UI)
- Configuration (one enable flag per check kind)

New CheckKind members are appended, never removed, so that stored
status history stays readable.
"""

from enum import Enum


# ============================================================================
# CHECK IDENTITY
# ============================================================================

class CheckKind(str, Enum):
    """
    Identity of a security probe.

    Each kind maps to exactly one `enable_<kind>` configuration flag.
    """
    HSM = "hsm"
    BIOMETRIC = "biometric"
    DEVICE_FINGERPRINT = "device_fingerprint"
    ZKP = "zkp"
    CSP = "csp"
    TLS = "tls"
    HEADERS = "headers"
    CRYPTO = "crypto"
    STORAGE = "storage"
    DOM_PROTECTION = "dom_protection"
    CERTIFICATE_PINNING = "certificate_pinning"
    GDPR_COMPLIANCE = "gdpr_compliance"
    THREAT_DETECTION = "threat_detection"
    SOC2_COMPLIANCE = "soc2_compliance"

    @property
    def config_flag(self) -> str:
        """Name of the configuration field that enables this check."""
        if self is CheckKind.DEVICE_FINGERPRINT:
            return "enable_device_fingerprinting"
        return f"enable_{self.value}"

    @property
    def label(self) -> str:
        """Human-readable name for progress display."""
        return _LABELS[self]


_LABELS = {
    CheckKind.HSM: "HSM Check",
    CheckKind.BIOMETRIC: "Biometric Check",
    CheckKind.DEVICE_FINGERPRINT: "Device Fingerprint Check",
    CheckKind.ZKP: "ZKP Check",
    CheckKind.CSP: "CSP Check",
    CheckKind.TLS: "TLS Check",
    CheckKind.HEADERS: "Security Headers Check",
    CheckKind.CRYPTO: "Crypto Check",
    CheckKind.STORAGE: "Storage Security Check",
    CheckKind.DOM_PROTECTION: "DOM Skimming Protection Check",
    CheckKind.CERTIFICATE_PINNING: "Certificate Pinning Check",
    CheckKind.GDPR_COMPLIANCE: "GDPR Compliance Check",
    CheckKind.THREAT_DETECTION: "Threat Detection Check",
    CheckKind.SOC2_COMPLIANCE: "SOC 2 Compliance Check",
}


# ============================================================================
# STATUS ENUMS
# ============================================================================

class OverallStatus(str, Enum):
    """Aggregate trust verdict over a set of check results."""
    SECURE = "secure"                        # Every expected check passed
    PARTIALLY_SECURE = "partially_secure"    # Some passed, some did not
    INSECURE = "insecure"                    # Nothing passed
    UNKNOWN = "unknown"                      # No verdict available yet


class RunState(str, Enum):
    """
    Orchestrator lifecycle states.

    State transitions:
        IDLE -> RUNNING -> COMPLETE
                        -> TIMED_OUT
                        -> CANCELLED
                        -> FAILED
        (any non-running state) -> IDLE via reset()
    """
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (run finished, reset allowed)."""
        return self in (
            RunState.COMPLETE,
            RunState.TIMED_OUT,
            RunState.CANCELLED,
            RunState.FAILED,
        )


class CancelReason(str, Enum):
    """Why a run's cancellation token fired."""
    TIMEOUT = "timeout"
    STOPPED = "stopped"


class ThreatLevel(str, Enum):
    """Threat level reported by the threat detection probe."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BiometricPlatform(str, Enum):
    """Host platform as seen by the biometric probe."""
    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"
    UNSUPPORTED = "unsupported"

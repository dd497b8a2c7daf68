# ============================================================================
# SECURITY CHECK PLUGINS
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Checks - Built-in probe implementations
# PURPOSE: Concrete probes for every CheckKind
# CREATED: 19 OCT 2026
# ============================================================================
"""
Security Check Plugins

Document & transport (document.py):
- tls, certificate_pinning, headers, csp, dom_protection

Platform capabilities (platform.py):
- hsm, biometric, device_fingerprint, zkp, crypto

Storage (storage.py):
- storage

Threats & compliance (threat.py, compliance.py):
- threat_detection, gdpr_compliance, soc2_compliance

Import this module to register all checks:
    import security_check.checks
"""

# Import all check modules to trigger registration
from security_check.checks.document import (
    TLSCheck,
    CertificatePinningCheck,
    HeadersCheck,
    CSPCheck,
    DOMProtectionCheck,
)
from security_check.checks.platform import (
    HSMCheck,
    BiometricCheck,
    DeviceFingerprintCheck,
    ZKPCheck,
    CryptoCheck,
)
from security_check.checks.storage import StorageCheck
from security_check.checks.threat import ThreatDetectionCheck
from security_check.checks.compliance import GDPRComplianceCheck, SOC2ComplianceCheck

__all__ = [
    "TLSCheck",
    "CertificatePinningCheck",
    "HeadersCheck",
    "CSPCheck",
    "DOMProtectionCheck",
    "HSMCheck",
    "BiometricCheck",
    "DeviceFingerprintCheck",
    "ZKPCheck",
    "CryptoCheck",
    "StorageCheck",
    "ThreatDetectionCheck",
    "GDPRComplianceCheck",
    "SOC2ComplianceCheck",
]

# ============================================================================
# SECURITY CHECK CORE TYPES
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Base classes for security probes
# PURPOSE: Probe plugin interface, per-kind detail shapes and result type
# CREATED: 19 OCT 2026
# ============================================================================
"""
Security Check Core Types

Defines the plugin interface and result types for security probes.

Every probe kind has a fixed detail shape. The shapes form a discriminated
union on `kind`, so consumers can match on them exhaustively. Each shape
carries:
- available: the capability the probe needs was present
- error: sanitized diagnostic when something went wrong
- is_passing(): the kind's own pass rule

A default-constructed detail (all flags False, available=False) is the
"nothing known" shape used when a probe could not produce anything.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Annotated, ClassVar, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.contracts import BiometricPlatform, CheckKind, ThreatLevel
from security_check.capabilities import CapabilityHandle
from security_check.errors import CheckContractViolation, CheckTimeout


# ============================================================================
# DETAIL SHAPES
# ============================================================================

class CheckDetail(BaseModel):
    """Fields every probe detail carries."""
    model_config = ConfigDict(frozen=True)

    available: bool = False
    error: Optional[str] = None

    def is_passing(self) -> bool:
        raise NotImplementedError


class HSMDetail(CheckDetail):
    kind: Literal["hsm"] = "hsm"
    initialized: bool = False
    key_pair_generated: bool = False
    encryption_verified: bool = False

    def is_passing(self) -> bool:
        return self.available and self.initialized and self.key_pair_generated


class BiometricDetail(CheckDetail):
    kind: Literal["biometric"] = "biometric"
    is_supported: bool = False
    is_authenticated: bool = False
    platform: BiometricPlatform = BiometricPlatform.UNSUPPORTED

    def is_passing(self) -> bool:
        return self.is_supported


class DeviceFingerprintDetail(CheckDetail):
    kind: Literal["device_fingerprint"] = "device_fingerprint"
    fingerprint: Optional[str] = None
    language_valid: bool = False
    platform_valid: bool = False
    timezone_valid: bool = False
    hardware_concurrency_valid: bool = False

    def is_passing(self) -> bool:
        return self.fingerprint is not None


class ZKPDetail(CheckDetail):
    kind: Literal["zkp"] = "zkp"
    is_ready: bool = False
    challenge_received: bool = False
    proof_generated: bool = False
    is_authenticated: bool = False
    fallback_used: bool = False

    def is_passing(self) -> bool:
        return self.is_ready


class CSPDetail(CheckDetail):
    kind: Literal["csp"] = "csp"
    is_enabled: bool = False
    has_secure_policy: bool = False
    has_frame_ancestors: bool = False
    has_unsafe_inline: bool = False
    has_unsafe_eval: bool = False

    def is_passing(self) -> bool:
        return self.is_enabled and self.has_secure_policy


class TLSDetail(CheckDetail):
    kind: Literal["tls"] = "tls"
    is_secure: bool = False
    has_hsts: bool = False
    has_secure_cookies: bool = False
    has_valid_certificate: bool = False

    def is_passing(self) -> bool:
        return self.is_secure and self.has_valid_certificate


class HeadersDetail(CheckDetail):
    kind: Literal["headers"] = "headers"
    has_x_frame_options: bool = False
    has_x_content_type_options: bool = False
    has_referrer_policy: bool = False
    has_permissions_policy: bool = False

    def is_passing(self) -> bool:
        return self.has_x_frame_options and self.has_x_content_type_options


class CryptoDetail(CheckDetail):
    kind: Literal["crypto"] = "crypto"
    has_secure_random: bool = False
    has_digest: bool = False
    has_key_generation: bool = False
    has_encryption: bool = False

    def is_passing(self) -> bool:
        return (
            self.has_secure_random
            and self.has_digest
            and self.has_key_generation
            and self.has_encryption
        )


class StorageDetail(CheckDetail):
    kind: Literal["storage"] = "storage"
    has_secure_storage: bool = False
    has_encrypted_storage: bool = False
    has_session_storage: bool = False
    has_local_storage: bool = False

    def is_passing(self) -> bool:
        return self.has_secure_storage


class DOMProtectionDetail(CheckDetail):
    kind: Literal["dom_protection"] = "dom_protection"
    is_protected: bool = False
    has_sensitive_data_in_dom: bool = False
    has_secure_ui_elements: bool = False
    has_isolated_storage: bool = False

    def is_passing(self) -> bool:
        return self.is_protected


class CertificatePinningDetail(CheckDetail):
    kind: Literal["certificate_pinning"] = "certificate_pinning"
    is_pinned: bool = False
    has_valid_certificate: bool = False
    has_secure_connection: bool = False
    fingerprint_verified: bool = False

    def is_passing(self) -> bool:
        return self.fingerprint_verified


class GDPRComplianceDetail(CheckDetail):
    kind: Literal["gdpr_compliance"] = "gdpr_compliance"
    is_compliant: bool = False
    has_data_minimization: bool = False
    has_consent_management: bool = False
    has_data_portability: bool = False
    has_right_to_erasure: bool = False
    has_privacy_by_design: bool = False

    def is_passing(self) -> bool:
        return self.is_compliant


class ThreatDetectionDetail(CheckDetail):
    kind: Literal["threat_detection"] = "threat_detection"
    is_secure: bool = False
    has_anomaly_detection: bool = False
    has_behavioral_analysis: bool = False
    has_threat_intelligence: bool = False
    threat_level: ThreatLevel = ThreatLevel.LOW
    detected_threats: List[str] = Field(default_factory=list)

    def is_passing(self) -> bool:
        return self.is_secure


class SOC2ComplianceDetail(CheckDetail):
    kind: Literal["soc2_compliance"] = "soc2_compliance"
    is_compliant: bool = False
    has_security_controls: bool = False
    has_availability_controls: bool = False
    has_processing_integrity: bool = False
    has_confidentiality_controls: bool = False
    has_privacy_controls: bool = False
    audit_trail: List[str] = Field(default_factory=list)

    def is_passing(self) -> bool:
        return self.is_compliant


AnyCheckDetail = Annotated[
    Union[
        HSMDetail,
        BiometricDetail,
        DeviceFingerprintDetail,
        ZKPDetail,
        CSPDetail,
        TLSDetail,
        HeadersDetail,
        CryptoDetail,
        StorageDetail,
        DOMProtectionDetail,
        CertificatePinningDetail,
        GDPRComplianceDetail,
        ThreatDetectionDetail,
        SOC2ComplianceDetail,
    ],
    Field(discriminator="kind"),
]

DETAIL_MODELS: Dict[CheckKind, Type[CheckDetail]] = {
    CheckKind.HSM: HSMDetail,
    CheckKind.BIOMETRIC: BiometricDetail,
    CheckKind.DEVICE_FINGERPRINT: DeviceFingerprintDetail,
    CheckKind.ZKP: ZKPDetail,
    CheckKind.CSP: CSPDetail,
    CheckKind.TLS: TLSDetail,
    CheckKind.HEADERS: HeadersDetail,
    CheckKind.CRYPTO: CryptoDetail,
    CheckKind.STORAGE: StorageDetail,
    CheckKind.DOM_PROTECTION: DOMProtectionDetail,
    CheckKind.CERTIFICATE_PINNING: CertificatePinningDetail,
    CheckKind.GDPR_COMPLIANCE: GDPRComplianceDetail,
    CheckKind.THREAT_DETECTION: ThreatDetectionDetail,
    CheckKind.SOC2_COMPLIANCE: SOC2ComplianceDetail,
}


def failure_detail(kind: CheckKind, error: Optional[str] = None) -> CheckDetail:
    """Nothing-known detail for `kind`, optionally carrying a diagnostic."""
    return DETAIL_MODELS[kind](available=False, error=error)


# ============================================================================
# RESULT
# ============================================================================

class CheckResult(BaseModel):
    """Outcome of one probe after retries."""
    model_config = ConfigDict(frozen=True)

    kind: CheckKind
    passed: bool
    detail: AnyCheckDetail
    attempts: int = Field(default=1, ge=1)
    duration_ms: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _detail_matches_kind(self) -> "CheckResult":
        if self.detail.kind != self.kind.value:
            raise ValueError(
                f"detail kind {self.detail.kind!r} does not match result kind {self.kind.value!r}"
            )
        return self

    @classmethod
    def failed(
        cls,
        kind: CheckKind,
        error: Optional[str],
        attempts: int = 1,
        duration_ms: int = 0,
    ) -> "CheckResult":
        """Result for a probe that never produced a verdict."""
        return cls(
            kind=kind,
            passed=False,
            detail=failure_detail(kind, error),
            attempts=attempts,
            duration_ms=duration_ms,
        )

    def to_dict(self) -> Dict:
        """Plain JSON-safe dict."""
        return self.model_dump(mode="json")


# ============================================================================
# PLUGIN BASE
# ============================================================================

class SecurityCheckPlugin(ABC):
    """
    Base class for security probes.

    Subclass, set `kind`, and implement probe() to return this kind's
    detail shape. Register with @register_check.

    probe() must report an absent capability as a detail with
    available=False rather than raising. Exceptions it raises are treated
    as transient and retried.

    Attributes:
        kind: Probe identity
        timeout_ms: Default per-attempt timeout

    Example:
        @register_check()
        class TLSCheck(SecurityCheckPlugin):
            kind = CheckKind.TLS

            async def probe(self, handle: CapabilityHandle) -> TLSDetail:
                if handle.document is None:
                    return self.unavailable("Document metadata not available")
                ...
    """

    kind: ClassVar[CheckKind]
    timeout_ms: int = 5000

    @abstractmethod
    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        """
        Inspect the platform.

        Returns:
            This kind's detail model
        """
        pass

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def label(self) -> str:
        return self.kind.label

    def detail(self, **fields) -> CheckDetail:
        """Detail for this kind with the capability present."""
        fields.setdefault("available", True)
        return DETAIL_MODELS[self.kind](**fields)

    def unavailable(self, error: str, **fields) -> CheckDetail:
        """Detail for this kind with the capability absent."""
        return DETAIL_MODELS[self.kind](available=False, error=error, **fields)

    async def run(self, handle: CapabilityHandle, timeout_ms: int) -> CheckResult:
        """
        Run one attempt of this probe.

        Raises:
            CheckTimeout: If probe() does not settle within timeout_ms
            CheckContractViolation: If probe() returns the wrong shape
        """
        start_time = time.monotonic()
        try:
            detail = await asyncio.wait_for(self.probe(handle), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise CheckTimeout(self.kind, timeout_ms)

        detail_kind = getattr(detail, "kind", None)
        if not isinstance(detail, CheckDetail) or detail_kind != self.kind.value:
            raise CheckContractViolation(
                self.kind,
                f"probe returned {type(detail).__name__}, expected {DETAIL_MODELS[self.kind].__name__}",
            )

        return CheckResult(
            kind=self.kind,
            passed=detail.is_passing(),
            detail=detail,
            attempts=1,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )


__all__ = [
    "CheckDetail",
    "HSMDetail",
    "BiometricDetail",
    "DeviceFingerprintDetail",
    "ZKPDetail",
    "CSPDetail",
    "TLSDetail",
    "HeadersDetail",
    "CryptoDetail",
    "StorageDetail",
    "DOMProtectionDetail",
    "CertificatePinningDetail",
    "GDPRComplianceDetail",
    "ThreatDetectionDetail",
    "SOC2ComplianceDetail",
    "AnyCheckDetail",
    "DETAIL_MODELS",
    "failure_detail",
    "CheckResult",
    "SecurityCheckPlugin",
]

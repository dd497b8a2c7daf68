# ============================================================================
# COMPLIANCE CHECKS
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Checks - GDPR posture and SOC 2 control attestation
# PURPOSE: Evaluate privacy facts and attested control families
# CREATED: 19 OCT 2026
# ============================================================================
"""
Compliance Checks

GDPRComplianceCheck reads PrivacyInfo. SOC2ComplianceCheck reads the
attested controls in ComplianceControls and returns the audit trail of
that evaluation.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Tuple

from core.contracts import CheckKind
from security_check.capabilities import CapabilityHandle
from security_check.core import CheckDetail, SecurityCheckPlugin
from security_check.registry import register_check

logger = logging.getLogger(__name__)


@register_check(timeout_ms=2000)
class GDPRComplianceCheck(SecurityCheckPlugin):
    """
    GDPR posture.

    - data minimisation: nothing collected beyond NECESSARY_DATA
    - consent: recorded by the application (implicit in extension contexts)
    - portability: some data can be exported
    - erasure: some data can be deleted
    - privacy by design: every REQUIRED_PRIVACY_FEATURES entry present
    """

    kind = CheckKind.GDPR_COMPLIANCE

    NECESSARY_DATA = frozenset({"wallet_address", "security_preferences", "theme_preference"})
    REQUIRED_PRIVACY_FEATURES = (
        "data_encryption",
        "secure_storage",
        "minimal_data_collection",
        "user_control",
    )

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        privacy = handle.privacy
        if privacy is None:
            return self.unavailable("Privacy information not available")

        unnecessary = sorted(set(privacy.collected_data) - self.NECESSARY_DATA)
        has_data_minimization = not unnecessary
        in_extension = handle.document is not None and handle.document.is_extension
        has_consent_management = privacy.consent_recorded or in_extension
        has_data_portability = len(privacy.exportable_data) > 0
        has_right_to_erasure = len(privacy.deletable_data) > 0
        missing_features = [
            f for f in self.REQUIRED_PRIVACY_FEATURES if f not in privacy.privacy_features
        ]
        has_privacy_by_design = not missing_features

        is_compliant = all((
            has_data_minimization,
            has_consent_management,
            has_data_portability,
            has_right_to_erasure,
            has_privacy_by_design,
        ))

        problems = []
        if unnecessary:
            problems.append(f"unnecessary data collected: {', '.join(unnecessary)}")
        if missing_features:
            problems.append(f"missing privacy features: {', '.join(missing_features)}")

        return self.detail(
            is_compliant=is_compliant,
            has_data_minimization=has_data_minimization,
            has_consent_management=has_consent_management,
            has_data_portability=has_data_portability,
            has_right_to_erasure=has_right_to_erasure,
            has_privacy_by_design=has_privacy_by_design,
            error="; ".join(problems) if problems else (None if is_compliant else "Not GDPR compliant"),
        )


@register_check(timeout_ms=2000)
class SOC2ComplianceCheck(SecurityCheckPlugin):
    """
    SOC 2 Type II control families.

    A family passes when every one of its controls is attested as True.
    Every evaluation records its own audit trail in the detail; nothing
    carries over between runs.
    """

    kind = CheckKind.SOC2_COMPLIANCE

    CONTROL_FAMILIES: Dict[str, Tuple[str, Tuple[str, ...]]] = {
        "security": ("Security (CC6)", tuple(f"CC6.{i}" for i in range(1, 9))),
        "availability": ("Availability (CC7)", tuple(f"CC7.{i}" for i in range(1, 5))),
        "processing_integrity": ("Processing Integrity (CC8)", tuple(f"CC8.{i}" for i in range(1, 5))),
        "confidentiality": ("Confidentiality (CC9)", tuple(f"CC9.{i}" for i in range(1, 4))),
        "privacy": ("Privacy (CC10)", tuple(f"CC10.{i}" for i in range(1, 7))),
    }

    @staticmethod
    def _audit(trail: List[str], entry: str) -> None:
        stamp = datetime.now(timezone.utc).isoformat()
        trail.append(f"[{stamp}] {entry}")

    def _evaluate(self, family: str, controls: Dict[str, bool], trail: List[str]) -> bool:
        title, ids = self.CONTROL_FAMILIES[family]
        self._audit(trail, f"Checking {title} controls")
        missing = [c for c in ids if not controls.get(c, False)]
        passed = not missing
        self._audit(trail, f"{title} validation: {'PASS' if passed else 'FAIL'}")
        if missing:
            logger.debug(f"{title} controls not attested: {', '.join(missing)}")
        return passed

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        trail: List[str] = []
        compliance = handle.compliance
        if compliance is None:
            self._audit(trail, "Control attestations not available")
            return self.unavailable("Compliance controls not available", audit_trail=trail)

        families = {
            name: self._evaluate(name, compliance.controls, trail)
            for name in self.CONTROL_FAMILIES
        }
        is_compliant = all(families.values())
        failing = [self.CONTROL_FAMILIES[name][0] for name, ok in families.items() if not ok]

        return self.detail(
            is_compliant=is_compliant,
            has_security_controls=families["security"],
            has_availability_controls=families["availability"],
            has_processing_integrity=families["processing_integrity"],
            has_confidentiality_controls=families["confidentiality"],
            has_privacy_controls=families["privacy"],
            audit_trail=trail,
            error=f"Failing control families: {', '.join(failing)}" if failing else None,
        )


__all__ = [
    "GDPRComplianceCheck",
    "SOC2ComplianceCheck",
]

# ============================================================================
# THREAT DETECTION CHECK
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Checks - Behavioral and request-signal analysis
# PURPOSE: Grade current threat level from supplied ThreatSignals
# CREATED: 19 OCT 2026
# ============================================================================
"""
Threat Detection Check

Analyses ThreatSignals in four groups:

    anomalies      rapid requests, automated user agent, tight event timing,
                   3-sigma outliers in request frequencies
    input          XSS / SQL / traversal / command injection in user input
    intelligence   known indicators, blocked client IP, emerging patterns
    behaviour      mean behaviour score must exceed BEHAVIOR_THRESHOLD

Threat level is graded on the number of detected threats. The check
passes only at LOW with nothing detected.
"""

import logging
import math
import re
import time
from typing import Callable, Iterable, List, Optional

from core.contracts import CheckKind, ThreatLevel
from security_check.capabilities import CapabilityHandle, ThreatSignals
from security_check.core import CheckDetail, SecurityCheckPlugin
from security_check.registry import register_check

logger = logging.getLogger(__name__)

RAPID_REQUEST_THRESHOLD = 10
RAPID_REQUEST_WINDOW_MS = 60000
TIMING_THRESHOLD_MS = 1000
TIMING_SAMPLE = 10
OUTLIER_SIGMA = 3
BEHAVIOR_THRESHOLD = 0.8

SUSPICIOUS_USER_AGENT = re.compile(r"(bot|crawler|scanner|spider)", re.IGNORECASE)

INPUT_PATTERNS = {
    "xss": re.compile(r"<script|javascript:|on\w+\s*=", re.IGNORECASE),
    "sql_injection": re.compile(
        r"\b(union|select|insert|update|delete|drop|create|alter)\b", re.IGNORECASE
    ),
    "path_traversal": re.compile(r"\.\./|\.\.\\"),
    "command_injection": re.compile(r"[;&|`$()]"),
}


def threat_level_for(count: int) -> ThreatLevel:
    """Grade a threat count."""
    if count == 0:
        return ThreatLevel.LOW
    if count <= 2:
        return ThreatLevel.MEDIUM
    if count <= 5:
        return ThreatLevel.HIGH
    return ThreatLevel.CRITICAL


def statistical_outliers(values: List[float], sigma: float = OUTLIER_SIGMA) -> List[int]:
    """Indexes of values more than `sigma` population std devs from the mean."""
    if not values:
        return []
    mean = sum(values) / len(values)
    std_dev = math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))
    return [i for i, v in enumerate(values) if abs(v - mean) > sigma * std_dev]


@register_check(timeout_ms=3000)
class ThreatDetectionCheck(SecurityCheckPlugin):
    """Real-time threat grading over supplied signals."""

    kind = CheckKind.THREAT_DETECTION

    def __init__(
        self,
        blocked_ips: Optional[Iterable[str]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.blocked_ips = frozenset(blocked_ips or ())
        self._clock = clock or time.time

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def detect_anomalies(self, signals: ThreatSignals) -> List[str]:
        anomalies: List[str] = []

        now = self._now_ms()
        recent = [t for t in signals.event_timestamps_ms if now - t < RAPID_REQUEST_WINDOW_MS]
        if len(recent) > RAPID_REQUEST_THRESHOLD:
            anomalies.append("rapid_requests")

        if signals.user_agent and SUSPICIOUS_USER_AGENT.search(signals.user_agent):
            anomalies.append("suspicious_user_agent")

        sample = signals.event_timestamps_ms[-TIMING_SAMPLE:]
        if any(b - a < TIMING_THRESHOLD_MS for a, b in zip(sample, sample[1:])):
            anomalies.append("timing_anomaly")

        anomalies.extend(
            f"statistical_anomaly_{i}" for i in statistical_outliers(signals.request_frequencies)
        )
        return anomalies

    def detect_input_patterns(self, signals: ThreatSignals) -> List[str]:
        return [
            f"{name}_attempt"
            for name, pattern in INPUT_PATTERNS.items()
            if any(pattern.search(text) for text in signals.user_input)
        ]

    def check_indicators(self, signals: ThreatSignals) -> List[str]:
        indicators = list(signals.indicators)
        if signals.client_ip and signals.client_ip in self.blocked_ips:
            indicators.append("malicious_ip")
        return indicators

    def detect_emerging(self, signals: ThreatSignals) -> List[str]:
        return ["emerging_attack_patterns"] if signals.emerging_patterns else []

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        signals = handle.threat
        if signals is None:
            return self.unavailable("Threat signals not available")

        anomalies = self.detect_anomalies(signals)
        suspicious_input = self.detect_input_patterns(signals)
        indicators = self.check_indicators(signals)
        emerging = self.detect_emerging(signals)

        scores = signals.behavior_scores
        behavior_score = sum(scores) / len(scores) if scores else None

        detected = anomalies + suspicious_input + indicators + emerging
        threat_level = threat_level_for(len(detected))
        is_secure = threat_level is ThreatLevel.LOW and not detected

        if detected:
            logger.warning(
                f"Threats detected ({threat_level.value}): {', '.join(detected)}"
            )

        return self.detail(
            is_secure=is_secure,
            has_anomaly_detection=not anomalies,
            has_behavioral_analysis=(
                behavior_score is not None
                and behavior_score > BEHAVIOR_THRESHOLD
                and not suspicious_input
            ),
            has_threat_intelligence=signals.feed_validated and not indicators and not emerging,
            threat_level=threat_level,
            detected_threats=detected,
            error=None if is_secure else f"Threat level {threat_level.value}",
        )


__all__ = [
    "ThreatDetectionCheck",
    "threat_level_for",
    "statistical_outliers",
]

# ============================================================================
# STATUS AGGREGATION
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Pure verdict aggregation
# PURPOSE: Collapse per-check results into one trust verdict and summary
# CREATED: 19 OCT 2026
# ============================================================================
"""
Status Aggregation

Policy (equal weighting, every enabled check equally mandatory):

    total == 0            -> UNKNOWN
    every check passed    -> SECURE
    no check passed       -> INSECURE
    otherwise             -> PARTIALLY_SECURE

When a run ends early, pass expected_total: checks that never settled
count as not passed, so a partial run can never read as SECURE.
"""

from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from core.contracts import CheckKind, OverallStatus
from security_check.core import CheckResult


def aggregate(
    results: Sequence[CheckResult],
    expected_total: Optional[int] = None,
) -> OverallStatus:
    """
    Aggregate check results into one verdict.

    Args:
        results: Settled results
        expected_total: Number of checks the run intended to settle

    Returns:
        OverallStatus
    """
    total = len(results)
    if expected_total is not None:
        total = max(total, expected_total)
    passed = sum(1 for r in results if r.passed)

    if total == 0:
        return OverallStatus.UNKNOWN
    if passed == total:
        return OverallStatus.SECURE
    if passed == 0:
        return OverallStatus.INSECURE
    return OverallStatus.PARTIALLY_SECURE


class SecuritySummary(BaseModel):
    """Per-kind pass flags and counts for display."""
    model_config = ConfigDict(frozen=True)

    checks: Dict[CheckKind, bool]
    secure_count: int
    total: int
    failed_kinds: List[CheckKind]

    @property
    def score(self) -> int:
        """Whole-number percentage of passed checks."""
        if self.total == 0:
            return 0
        return round(100 * self.secure_count / self.total)


def summarize(results: Sequence[CheckResult]) -> SecuritySummary:
    """Build a SecuritySummary in result order."""
    return SecuritySummary(
        checks={r.kind: r.passed for r in results},
        secure_count=sum(1 for r in results if r.passed),
        total=len(results),
        failed_kinds=[r.kind for r in results if not r.passed],
    )


__all__ = [
    "aggregate",
    "SecuritySummary",
    "summarize",
]

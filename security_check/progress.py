# ============================================================================
# PROGRESS TRACKING
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Observable run state
# PURPOSE: Single-writer progress state with frozen snapshots for readers
# CREATED: 19 OCT 2026
# ============================================================================
"""
Progress Tracking

The orchestrator is the only writer of run progress. Readers never see the
live state: get a frozen ProgressSnapshot by polling snapshot(), or
subscribe() to receive one after every change.

Lifecycle:
    reset()  -> zeroed, IDLE
    begin()  -> RUNNING, current_step = first planned kind
    advance() per settled check
    finish() -> COMPLETE
    fail()   -> TIMED_OUT / CANCELLED / FAILED with error set
"""

import logging
import math
from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from core.contracts import CheckKind, RunState
from security_check.core import CheckResult

logger = logging.getLogger(__name__)


class ProgressSnapshot(BaseModel):
    """Point-in-time, immutable view of a run."""
    model_config = ConfigDict(frozen=True)

    is_checking: bool = False
    current_step: Optional[CheckKind] = None
    progress: int = Field(default=0, ge=0, le=100)
    error: Optional[str] = None
    results: Tuple[CheckResult, ...] = ()
    state: RunState = RunState.IDLE
    run_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Plain JSON-safe dict."""
        return self.model_dump(mode="json")


ProgressCallback = Callable[[ProgressSnapshot], None]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves rounding up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def percent_complete(completed: int, total: int) -> int:
    """Whole-number percentage, clamped to 0..100. Zero total counts as done."""
    if total <= 0:
        return 100
    return max(0, min(100, round_half_up(100 * completed / total)))


class ProgressTracker:
    """
    Owned, mutable progress state.

    Every mutation publishes a fresh snapshot to subscribers. A subscriber
    that raises is logged and skipped; it never affects the run.
    """

    def __init__(self):
        self._subscribers: List[ProgressCallback] = []
        self._planned: List[CheckKind] = []
        self._results: List[CheckResult] = []
        self._is_checking = False
        self._current_step: Optional[CheckKind] = None
        self._progress = 0
        self._error: Optional[str] = None
        self._state = RunState.IDLE
        self._run_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def results(self) -> Tuple[CheckResult, ...]:
        return tuple(self._results)

    @property
    def planned(self) -> Tuple[CheckKind, ...]:
        return tuple(self._planned)

    def snapshot(self) -> ProgressSnapshot:
        """Frozen copy of the current state."""
        return ProgressSnapshot(
            is_checking=self._is_checking,
            current_step=self._current_step,
            progress=self._progress,
            error=self._error,
            results=tuple(self._results),
            state=self._state,
            run_id=self._run_id,
        )

    # ------------------------------------------------------------------
    # Writes (orchestrator only)
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Return to the zeroed IDLE state."""
        self._planned = []
        self._results = []
        self._is_checking = False
        self._current_step = None
        self._progress = 0
        self._error = None
        self._state = RunState.IDLE
        self._run_id = None
        self._publish()

    def begin(self, planned: Sequence[CheckKind], run_id: Optional[str] = None) -> None:
        """Start a run over the planned kinds, in order."""
        self._planned = list(planned)
        self._results = []
        self._is_checking = True
        self._current_step = self._planned[0] if self._planned else None
        self._progress = 0
        self._error = None
        self._state = RunState.RUNNING
        self._run_id = run_id
        self._publish()

    def advance(self, result: CheckResult, total_enabled: int) -> None:
        """
        Record a settled check.

        Progress is capped at 99 here; only finish() reports 100. The last
        settle of a run therefore publishes 99, and subscribers see 100 on
        the COMPLETE snapshot that follows.

        Args:
            result: The check's final result
            total_enabled: Number of checks in this run
        """
        self._results.append(result)
        completed = len(self._results)
        self._current_step = (
            self._planned[completed] if completed < len(self._planned) else None
        )
        # 100 is reserved for finish()
        self._progress = min(percent_complete(completed, total_enabled), 99)
        self._publish()

    def finish(self) -> None:
        """Every planned check settled."""
        self._is_checking = False
        self._current_step = None
        self._progress = 100
        self._state = RunState.COMPLETE
        self._publish()

    def fail(self, message: str, state: RunState = RunState.FAILED) -> None:
        """
        End the run early with an orchestrator-level error.

        Accumulated results are kept.
        """
        self._error = message
        self._is_checking = False
        self._current_step = None
        self._state = state
        self._publish()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """
        Receive a snapshot after every change.

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self) -> None:
        if not self._subscribers:
            return
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.warning(f"Progress subscriber failed: {e}")


__all__ = [
    "ProgressSnapshot",
    "ProgressCallback",
    "ProgressTracker",
    "round_half_up",
    "percent_complete",
]

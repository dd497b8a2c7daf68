# ============================================================================
# SECURITY CHECK ORCHESTRATOR
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Run driver
# PURPOSE: Drive enabled probes sequentially under a global timeout
# CREATED: 19 OCT 2026
# ============================================================================
"""
Security Check Orchestrator

Owns the configuration and the progress state, and drives one run at a
time:

    IDLE -> RUNNING -> COMPLETE    every enabled check settled
                    -> TIMED_OUT   watchdog fired (error "timeout")
                    -> CANCELLED   stop() called (error "cancelled")
                    -> FAILED      a probe broke its contract

Checks run strictly one after another, in registry order. Each check is
raced against the run's CancellationToken: a check that settles before the
token fires is recorded, otherwise it is abandoned and its late result
discarded. Whatever settled before an early end is kept.

Usage:
    orchestrator = SecurityCheckOrchestrator(SecurityCheckConfig(timeout_ms=5000))
    snapshot = await orchestrator.start()
    status = orchestrator.get_overall_status()
"""

import asyncio
import uuid
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from __version__ import __version__
from core.config import SecurityCheckConfig
from core.contracts import CancelReason, CheckKind, OverallStatus, RunState
from core.logging import ComponentType, get_logger, log_checkpoint, log_context
from core.storage import KeyValueStore
from security_check.aggregator import SecuritySummary, aggregate, summarize
from security_check.capabilities import CapabilityHandle
from security_check.core import CheckResult, SecurityCheckPlugin
from security_check.errors import CheckContractViolation, InvalidStateTransition
from security_check.progress import ProgressCallback, ProgressSnapshot, ProgressTracker
from security_check.registry import QUICK_CHECK_KINDS, CheckRegistry, get_default_registry
from security_check.retry import invoke_with_retry
from security_check.sanitize import describe_exception, sanitize_error_message

logger = get_logger(__name__, ComponentType.ORCHESTRATOR)

# Snapshot error text per cancel reason
CANCEL_ERRORS = {
    CancelReason.TIMEOUT: "timeout",
    CancelReason.STOPPED: "cancelled",
}

_TERMINAL_STATES = {
    CancelReason.TIMEOUT: RunState.TIMED_OUT,
    CancelReason.STOPPED: RunState.CANCELLED,
}


class CancellationToken:
    """
    One-shot cancellation signal shared by a run's watchdog and stop().

    The first cancel() wins; later calls are ignored.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[CancelReason] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[CancelReason]:
        return self._reason

    def cancel(self, reason: CancelReason) -> bool:
        """
        Fire the token.

        Returns:
            True if this call fired it, False if it had already fired
        """
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    async def wait(self) -> CancelReason:
        await self._event.wait()
        return self._reason


class SecurityReport(BaseModel):
    """Terminal snapshot plus derived verdict, ready for message transport."""
    model_config = ConfigDict(frozen=True)

    snapshot: ProgressSnapshot
    overall_status: OverallStatus
    summary: SecuritySummary
    version: str = __version__

    def to_message(self) -> dict:
        """Plain structured message (JSON types only)."""
        return self.model_dump(mode="json")


class SecurityCheckOrchestrator:
    """
    Runs the enabled security probes and aggregates their verdicts.

    All public methods are meant to be called from the event loop thread.
    """

    def __init__(
        self,
        config: Union[SecurityCheckConfig, Mapping[str, Any], None] = None,
        handle: Optional[CapabilityHandle] = None,
        registry: Optional[CheckRegistry] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            config: Configuration or a mapping of configuration values
            handle: Capabilities passed to every probe (local providers if None)
            registry: Probe registry (built-in probes if None)

        Raises:
            ConfigurationInvalid: If config values are rejected
        """
        if config is None:
            config = SecurityCheckConfig()
        elif not isinstance(config, SecurityCheckConfig):
            config = SecurityCheckConfig.validated(config)

        self._config = config
        self._handle = handle or CapabilityHandle.local()
        self._registry = registry or get_default_registry()
        self._tracker = ProgressTracker()
        self._token: Optional[CancellationToken] = None
        self._runs = 0

    @classmethod
    def from_store(
        cls,
        store: KeyValueStore,
        handle: Optional[CapabilityHandle] = None,
        registry: Optional[CheckRegistry] = None,
    ) -> "SecurityCheckOrchestrator":
        """Construct with configuration read from a key-value store."""
        return cls(SecurityCheckConfig.from_store(store), handle=handle, registry=registry)

    # =========================================================================
    # READS
    # =========================================================================

    @property
    def state(self) -> RunState:
        return self._tracker.state

    @property
    def is_running(self) -> bool:
        return self._tracker.state is RunState.RUNNING

    @property
    def handle(self) -> CapabilityHandle:
        return self._handle

    def get_state(self) -> ProgressSnapshot:
        """Point-in-time snapshot of the current run."""
        return self._tracker.snapshot()

    def get_config(self) -> SecurityCheckConfig:
        return self._config

    def get_overall_status(self) -> OverallStatus:
        """
        Verdict over the last finished run.

        UNKNOWN while idle or running. Checks a run planned but never
        settled count as not passed.
        """
        if not self._tracker.state.is_terminal():
            return OverallStatus.UNKNOWN
        return aggregate(self._tracker.results, expected_total=len(self._tracker.planned))

    def get_report(self) -> SecurityReport:
        """Snapshot, verdict and summary in one serializable object."""
        snapshot = self._tracker.snapshot()
        return SecurityReport(
            snapshot=snapshot,
            overall_status=self.get_overall_status(),
            summary=summarize(snapshot.results),
        )

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Receive a snapshot after every progress change."""
        return self._tracker.subscribe(callback)

    # =========================================================================
    # CONTROL
    # =========================================================================

    def update_config(self, **partial: Any) -> SecurityCheckConfig:
        """
        Replace the configuration with `partial` applied.

        Raises:
            InvalidStateTransition: While a run is in flight
            ConfigurationInvalid: If the new values are rejected
        """
        if self.is_running:
            raise InvalidStateTransition("update configuration", self.state)
        self._config = self._config.merged(**partial)
        logger.info(f"Configuration updated: {sorted(partial)}")
        return self._config

    def set_handle(self, handle: CapabilityHandle) -> None:
        """Replace the capability handle used by later runs."""
        if self.is_running:
            raise InvalidStateTransition("replace capabilities", self.state)
        self._handle = handle

    def stop(self) -> bool:
        """
        Cancel the run in flight.

        Returns:
            True if a running run was signalled
        """
        if not self.is_running or self._token is None:
            return False
        fired = self._token.cancel(CancelReason.STOPPED)
        if fired:
            logger.info("Stop requested")
        return fired

    def reset(self) -> None:
        """
        Return to IDLE with a fresh snapshot.

        Raises:
            InvalidStateTransition: While a run is in flight
        """
        if self.is_running:
            raise InvalidStateTransition("reset", self.state, "Cannot reset while running; stop() first")
        self._token = None
        self._tracker.reset()

    async def start(self, handle: Optional[CapabilityHandle] = None) -> ProgressSnapshot:
        """
        Run every enabled check.

        Args:
            handle: Capabilities for this run (constructor handle if None)

        Returns:
            Terminal snapshot

        Raises:
            InvalidStateTransition: If a run is already in flight
        """
        run = self._prepare(None, handle)
        return await self._drive(*run)

    async def start_quick(self, handle: Optional[CapabilityHandle] = None) -> ProgressSnapshot:
        """Run only the essential checks that are enabled."""
        run = self._prepare(QUICK_CHECK_KINDS, handle)
        return await self._drive(*run)

    def launch(
        self,
        quick: bool = False,
        handle: Optional[CapabilityHandle] = None,
    ) -> "asyncio.Task[ProgressSnapshot]":
        """
        Start a run in the background.

        The run is RUNNING when this returns, so a second launch() or
        start() fails immediately.

        Raises:
            InvalidStateTransition: If a run is already in flight
            RuntimeError: Outside a running event loop (state is unchanged)
        """
        loop = asyncio.get_running_loop()
        run = self._prepare(QUICK_CHECK_KINDS if quick else None, handle)
        return loop.create_task(
            self._drive(*run),
            name=f"security-check-{run[3]}",
        )

    # =========================================================================
    # DRIVER
    # =========================================================================

    def _prepare(self, only: Optional[Iterable[CheckKind]], handle: Optional[CapabilityHandle]):
        if self.is_running:
            raise InvalidStateTransition("start", self.state, "A security check run is already in progress")

        config = self._config
        checks = self._registry.enabled(config, only)
        run_id = uuid.uuid4().hex[:12]
        self._runs += 1
        self._token = CancellationToken()
        self._tracker.begin([c.kind for c in checks], run_id=run_id)
        return config, handle or self._handle, checks, run_id, self._token

    async def _drive(
        self,
        config: SecurityCheckConfig,
        handle: CapabilityHandle,
        checks: List[SecurityCheckPlugin],
        run_id: str,
        token: CancellationToken,
    ) -> ProgressSnapshot:
        total = len(checks)
        watchdog = asyncio.create_task(self._watchdog(token, config.timeout_ms))

        with log_context(run_id=run_id):
            log_checkpoint("security_check_started", {
                "checks": [c.kind.value for c in checks],
                "timeout_ms": config.timeout_ms,
                "retry_attempts": config.retry_attempts,
            }, logger=logger)

            try:
                for check in checks:
                    if token.is_cancelled:
                        break
                    settled = await self._race(check, handle, config, token)
                    if settled is None:
                        break
                    self._tracker.advance(settled, total)

                if len(self._tracker.results) == total:
                    self._tracker.finish()
                else:
                    reason = token.reason or CancelReason.STOPPED
                    self._tracker.fail(CANCEL_ERRORS[reason], _TERMINAL_STATES[reason])

            except CheckContractViolation as e:
                logger.error(f"Check contract violated: {e}")
                self._tracker.fail(sanitize_error_message(str(e)), RunState.FAILED)
            except asyncio.CancelledError:
                self._tracker.fail(CANCEL_ERRORS[CancelReason.STOPPED], RunState.CANCELLED)
                raise
            except Exception as e:
                logger.exception(f"Security check run failed: {e}")
                self._tracker.fail(describe_exception(e), RunState.FAILED)
            finally:
                watchdog.cancel()

            snapshot = self._tracker.snapshot()
            checkpoint = (
                "security_check_completed"
                if snapshot.state is RunState.COMPLETE
                else "security_check_terminated"
            )
            log_checkpoint(checkpoint, {
                "state": snapshot.state.value,
                "settled": len(snapshot.results),
                "expected": total,
                "overall_status": self.get_overall_status().value,
            }, logger=logger)

        return snapshot

    async def _race(
        self,
        check: SecurityCheckPlugin,
        handle: CapabilityHandle,
        config: SecurityCheckConfig,
        token: CancellationToken,
    ) -> Optional[CheckResult]:
        """
        Run one check through the retry policy unless the token fires first.

        Returns:
            The settled CheckResult, or None if the check was abandoned
        """
        check_task = asyncio.create_task(invoke_with_retry(check, handle, config))
        cancel_wait = asyncio.create_task(token.wait())
        try:
            done, _ = await asyncio.wait(
                {check_task, cancel_wait},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            check_task.cancel()
            raise
        finally:
            cancel_wait.cancel()

        if check_task in done:
            return check_task.result()

        check_task.cancel()
        await asyncio.wait({check_task})
        if not check_task.cancelled() and check_task.exception() is not None:
            logger.warning(
                f"Discarded late failure from {check.kind.value}: {check_task.exception()}"
            )
        logger.info(f"Abandoned in-flight check {check.kind.value} ({token.reason.value})")
        return None

    async def _watchdog(self, token: CancellationToken, timeout_ms: int) -> None:
        await asyncio.sleep(timeout_ms / 1000)
        if token.cancel(CancelReason.TIMEOUT):
            logger.warning(f"Security check run exceeded {timeout_ms}ms")


__all__ = [
    "CANCEL_ERRORS",
    "CancellationToken",
    "SecurityReport",
    "SecurityCheckOrchestrator",
]

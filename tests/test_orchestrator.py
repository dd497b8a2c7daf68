# ============================================================================
# ORCHESTRATOR TESTS
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Tests - Run driver lifecycle
# PURPOSE: Verify sequencing, timeout, cancellation and state guards
# CREATED: 19 OCT 2026
# ============================================================================
"""
Orchestrator Tests

Covers:
1. End-to-end runs with scripted probes (retry, partial failure)
2. stop() mid-run and the global timeout
3. Illegal transitions (start/reset/update while running)
4. reset() and repeatability
5. Progress monotonicity and subscriptions
6. Contract violations end the run as FAILED
7. Quick runs and disabled checks
8. Serializable reports
9. stop() while a check or retry delay is in flight
10. Interleaved orchestrators keep their own log context

Run with:
    pytest tests/test_orchestrator.py -v
"""

import asyncio
import json

import pytest

from core.config import ConfigurationInvalid, SecurityCheckConfig
from core.contracts import CheckKind, OverallStatus, RunState
from core.logging import get_current_context
from security_check.capabilities import CapabilityHandle
from security_check.core import HSMDetail, SecurityCheckPlugin
from security_check.errors import InvalidStateTransition
from security_check.orchestrator import CancellationToken, SecurityCheckOrchestrator
from security_check.registry import CheckRegistry


def _orchestrator(checks, config):
    return SecurityCheckOrchestrator(
        config,
        handle=CapabilityHandle(),
        registry=CheckRegistry(checks),
    )


# ============================================================================
# END-TO-END SCENARIOS
# ============================================================================

class TestRunScenarios:
    """Full runs against scripted probes."""

    def test_flaky_check_recovers(self, make_check):
        """TLS passes, HSM throws twice then passes."""
        config = SecurityCheckConfig.only(
            CheckKind.TLS, CheckKind.HSM,
            timeout_ms=5000, retry_attempts=2, delay_ms=100,
        )
        orch = _orchestrator(
            [make_check(CheckKind.HSM, fail_times=2), make_check(CheckKind.TLS)],
            config,
        )

        snapshot = asyncio.run(orch.start())

        assert snapshot.is_checking is False
        assert snapshot.state == RunState.COMPLETE
        assert snapshot.error is None
        assert snapshot.progress == 100
        assert [r.kind for r in snapshot.results] == [CheckKind.TLS, CheckKind.HSM]
        assert snapshot.results[1].attempts == 3
        assert orch.get_overall_status() == OverallStatus.SECURE

    def test_always_failing_check(self, make_check):
        """HSM always throws: recorded as failed, run still completes."""
        config = SecurityCheckConfig.only(
            CheckKind.TLS, CheckKind.HSM,
            timeout_ms=5000, retry_attempts=2, delay_ms=100,
        )
        orch = _orchestrator(
            [make_check(CheckKind.TLS), make_check(CheckKind.HSM, fail_times=-1)],
            config,
        )

        snapshot = asyncio.run(orch.start())

        assert snapshot.state == RunState.COMPLETE
        assert len(snapshot.results) == 2
        assert snapshot.results[1].passed is False
        assert snapshot.results[1].attempts == 3
        assert orch.get_overall_status() == OverallStatus.PARTIALLY_SECURE

    def test_stop_after_first_check(self, make_check):
        config = SecurityCheckConfig.only(
            CheckKind.TLS, CheckKind.HEADERS, CheckKind.HSM, delay_ms=0,
        )
        orch = _orchestrator(
            [
                make_check(CheckKind.TLS),
                make_check(CheckKind.HEADERS),
                make_check(CheckKind.HSM),
            ],
            config,
        )

        def stop_after_first(snapshot):
            if snapshot.is_checking and len(snapshot.results) == 1:
                orch.stop()

        orch.subscribe(stop_after_first)
        snapshot = asyncio.run(orch.start())

        assert len(snapshot.results) == 1
        assert snapshot.error == "cancelled"
        assert snapshot.is_checking is False
        assert snapshot.state == RunState.CANCELLED

    def test_results_follow_registry_order(self, make_check):
        kinds = [CheckKind.HSM, CheckKind.CRYPTO, CheckKind.TLS, CheckKind.STORAGE, CheckKind.CSP]
        config = SecurityCheckConfig.only(*kinds, delay_ms=0)
        orch = _orchestrator([make_check(k) for k in kinds], config)

        snapshot = asyncio.run(orch.start())

        assert [r.kind for r in snapshot.results] == [
            CheckKind.TLS,
            CheckKind.CSP,
            CheckKind.CRYPTO,
            CheckKind.STORAGE,
            CheckKind.HSM,
        ]
        assert len({r.kind for r in snapshot.results}) == len(kinds)

    def test_all_failing_is_insecure(self, make_check):
        config = SecurityCheckConfig.only(CheckKind.TLS, CheckKind.HSM, delay_ms=0)
        orch = _orchestrator(
            [make_check(CheckKind.TLS, passed=False), make_check(CheckKind.HSM, passed=False)],
            config,
        )

        asyncio.run(orch.start())

        assert orch.get_overall_status() == OverallStatus.INSECURE


# ============================================================================
# TIMEOUT
# ============================================================================

class TestGlobalTimeout:
    """The watchdog ends a run that overruns timeout_ms."""

    def _hanging_run(self, make_check, first_passes=True):
        config = SecurityCheckConfig.only(
            CheckKind.TLS, CheckKind.HEADERS,
            timeout_ms=200, retry_attempts=2, delay_ms=100,
        )
        orch = _orchestrator(
            [
                make_check(CheckKind.TLS, passed=first_passes),
                make_check(CheckKind.HEADERS, delay=5.0, timeout_ms=10000),
            ],
            config,
        )
        return orch, asyncio.run(orch.start())

    def test_timeout_ends_run(self, make_check):
        orch, snapshot = self._hanging_run(make_check)

        assert snapshot.state == RunState.TIMED_OUT
        assert snapshot.error == "timeout"
        assert snapshot.is_checking is False
        assert [r.kind for r in snapshot.results] == [CheckKind.TLS]

    def test_partial_pass_is_never_secure(self, make_check):
        orch, snapshot = self._hanging_run(make_check)

        assert all(r.passed for r in snapshot.results)
        assert orch.get_overall_status() == OverallStatus.PARTIALLY_SECURE

    def test_partial_failure_is_insecure(self, make_check):
        orch, _ = self._hanging_run(make_check, first_passes=False)

        assert orch.get_overall_status() == OverallStatus.INSECURE

    def test_timeout_with_nothing_settled(self, make_check):
        config = SecurityCheckConfig.only(
            CheckKind.TLS, timeout_ms=100, retry_attempts=1, delay_ms=100,
        )
        orch = _orchestrator([make_check(CheckKind.TLS, delay=5.0)], config)

        snapshot = asyncio.run(orch.start())

        assert snapshot.results == ()
        assert snapshot.state == RunState.TIMED_OUT
        assert orch.get_overall_status() == OverallStatus.INSECURE


# ============================================================================
# STATE GUARDS
# ============================================================================

class TestStateTransitions:
    """Illegal operations while running, reset semantics."""

    def test_start_while_running_rejected(self, make_check):
        config = SecurityCheckConfig.only(CheckKind.TLS, delay_ms=0)
        orch = _orchestrator([make_check(CheckKind.TLS, delay=0.5)], config)

        async def scenario():
            task = orch.launch()
            assert orch.state == RunState.RUNNING
            with pytest.raises(InvalidStateTransition):
                await orch.start()
            assert orch.is_running
            orch.stop()
            return await task

        snapshot = asyncio.run(scenario())
        assert snapshot.state == RunState.CANCELLED

    def test_reset_while_running_rejected(self, make_check):
        config = SecurityCheckConfig.only(CheckKind.TLS, delay_ms=0)
        orch = _orchestrator([make_check(CheckKind.TLS, delay=0.5)], config)

        async def scenario():
            task = orch.launch()
            with pytest.raises(InvalidStateTransition):
                orch.reset()
            with pytest.raises(InvalidStateTransition):
                orch.update_config(timeout_ms=1000)
            orch.stop()
            await task

        asyncio.run(scenario())
        assert orch.state == RunState.CANCELLED

    def test_stop_when_idle_is_noop(self, make_check):
        orch = _orchestrator([make_check(CheckKind.TLS)], SecurityCheckConfig.only(CheckKind.TLS))

        assert orch.stop() is False
        assert orch.state == RunState.IDLE

    def test_reset_returns_to_idle(self, make_check):
        config = SecurityCheckConfig.only(CheckKind.TLS, delay_ms=0)
        orch = _orchestrator([make_check(CheckKind.TLS)], config)
        asyncio.run(orch.start())

        orch.reset()
        snapshot = orch.get_state()

        assert snapshot.state == RunState.IDLE
        assert snapshot.results == ()
        assert snapshot.progress == 0
        assert snapshot.error is None
        assert orch.get_overall_status() == OverallStatus.UNKNOWN

    def test_reset_then_start_is_repeatable(self, make_check):
        config = SecurityCheckConfig.only(CheckKind.TLS, CheckKind.HSM, delay_ms=0)
        orch = _orchestrator(
            [make_check(CheckKind.TLS), make_check(CheckKind.HSM, passed=False)],
            config,
        )

        asyncio.run(orch.start())
        first = orch.get_overall_status()
        orch.reset()
        asyncio.run(orch.start())

        assert orch.get_overall_status() == first == OverallStatus.PARTIALLY_SECURE

    def test_start_from_terminal_state(self, make_check):
        config = SecurityCheckConfig.only(CheckKind.TLS, delay_ms=0)
        orch = _orchestrator([make_check(CheckKind.TLS)], config)

        asyncio.run(orch.start())
        snapshot = asyncio.run(orch.start())

        assert snapshot.state == RunState.COMPLETE
        assert len(snapshot.results) == 1

    def test_status_unknown_before_any_run(self, make_check):
        orch = _orchestrator([make_check(CheckKind.TLS)], SecurityCheckConfig.only(CheckKind.TLS))

        assert orch.get_overall_status() == OverallStatus.UNKNOWN
        assert orch.get_state().is_checking is False

    def test_launch_without_event_loop_leaves_idle(self, make_check):
        check = make_check(CheckKind.TLS)
        orch = _orchestrator([check], SecurityCheckConfig.only(CheckKind.TLS, delay_ms=0))

        with pytest.raises(RuntimeError):
            orch.launch()

        assert orch.state == RunState.IDLE
        assert orch.is_running is False
        assert check.calls == 0

        snapshot = asyncio.run(orch.start())
        assert snapshot.state == RunState.COMPLETE


# ============================================================================
# CONFIGURATION
# ============================================================================

class TestOrchestratorConfig:
    """Configuration at construction and between runs."""

    def test_mapping_config_validated(self, make_check):
        with pytest.raises(ConfigurationInvalid):
            SecurityCheckOrchestrator(
                {"timeout_ms": -1},
                handle=CapabilityHandle(),
                registry=CheckRegistry([make_check(CheckKind.TLS)]),
            )

    def test_update_config_replaces_instance(self, make_check):
        config = SecurityCheckConfig.only(CheckKind.TLS)
        orch = _orchestrator([make_check(CheckKind.TLS)], config)

        updated = orch.update_config(timeout_ms=1234)

        assert updated is orch.get_config()
        assert updated.timeout_ms == 1234
        assert config.timeout_ms == 30000

    def test_rejected_update_keeps_old_config(self, make_check):
        config = SecurityCheckConfig.only(CheckKind.TLS)
        orch = _orchestrator([make_check(CheckKind.TLS)], config)

        with pytest.raises(ConfigurationInvalid):
            orch.update_config(retry_attempts=-1)

        assert orch.get_config() is config

    def test_disabled_checks_not_run(self, make_check):
        tls = make_check(CheckKind.TLS)
        hsm = make_check(CheckKind.HSM)
        orch = _orchestrator([tls, hsm], SecurityCheckConfig.only(CheckKind.TLS, delay_ms=0))

        snapshot = asyncio.run(orch.start())

        assert hsm.calls == 0
        assert [r.kind for r in snapshot.results] == [CheckKind.TLS]

    def test_no_enabled_checks(self, make_check):
        orch = _orchestrator([make_check(CheckKind.TLS)], SecurityCheckConfig.only())

        snapshot = asyncio.run(orch.start())

        assert snapshot.state == RunState.COMPLETE
        assert snapshot.progress == 100
        assert orch.get_overall_status() == OverallStatus.UNKNOWN


# ============================================================================
# PROGRESS & SUBSCRIPTIONS
# ============================================================================

class TestProgressReporting:
    """Snapshots published during a run."""

    def test_progress_monotonic_and_100_only_at_complete(self, make_check):
        kinds = [CheckKind.TLS, CheckKind.HEADERS, CheckKind.CSP]
        orch = _orchestrator([make_check(k) for k in kinds], SecurityCheckConfig.only(*kinds))
        seen = []
        orch.subscribe(seen.append)

        asyncio.run(orch.start())

        progress = [s.progress for s in seen]
        assert progress == sorted(progress)
        assert [s.state for s in seen if s.progress == 100] == [RunState.COMPLETE]
        assert seen[0].current_step == CheckKind.TLS
        assert seen[-1].current_step is None

    def test_unsubscribe(self, make_check):
        orch = _orchestrator([make_check(CheckKind.TLS)], SecurityCheckConfig.only(CheckKind.TLS))
        seen = []
        unsubscribe = orch.subscribe(seen.append)
        unsubscribe()

        asyncio.run(orch.start())

        assert seen == []

    def test_failing_subscriber_does_not_break_run(self, make_check):
        orch = _orchestrator([make_check(CheckKind.TLS)], SecurityCheckConfig.only(CheckKind.TLS))

        def broken(snapshot):
            raise ValueError("subscriber bug")

        orch.subscribe(broken)
        snapshot = asyncio.run(orch.start())

        assert snapshot.state == RunState.COMPLETE

    def test_snapshots_are_copies(self, make_check):
        orch = _orchestrator([make_check(CheckKind.TLS)], SecurityCheckConfig.only(CheckKind.TLS))
        before = orch.get_state()

        asyncio.run(orch.start())

        assert before.state == RunState.IDLE
        assert before.results == ()


# ============================================================================
# FAULTS
# ============================================================================

class TestRunFaults:
    """Contract violations end the run."""

    def test_contract_violation_fails_run(self, make_check):
        class WrongShapeCheck(SecurityCheckPlugin):
            kind = CheckKind.HEADERS

            async def probe(self, handle):
                return HSMDetail(available=True)

        orch = _orchestrator(
            [make_check(CheckKind.TLS), WrongShapeCheck()],
            SecurityCheckConfig.only(CheckKind.TLS, CheckKind.HEADERS),
        )

        snapshot = asyncio.run(orch.start())

        assert snapshot.state == RunState.FAILED
        assert snapshot.error is not None
        assert len(snapshot.results) == 1
        assert orch.get_overall_status() == OverallStatus.PARTIALLY_SECURE


# ============================================================================
# QUICK RUNS & REPORTS
# ============================================================================

class TestQuickRunAndReport:

    def test_quick_run_only_essential_checks(self, make_check):
        kinds = [CheckKind.TLS, CheckKind.CRYPTO, CheckKind.STORAGE, CheckKind.HSM]
        orch = _orchestrator([make_check(k) for k in kinds], SecurityCheckConfig.only(*kinds))

        snapshot = asyncio.run(orch.start_quick())

        assert [r.kind for r in snapshot.results] == [CheckKind.CRYPTO, CheckKind.STORAGE]
        assert orch.get_overall_status() == OverallStatus.SECURE

    def test_report_is_plain_json(self, make_check):
        config = SecurityCheckConfig.only(CheckKind.TLS, CheckKind.HSM, delay_ms=0)
        orch = _orchestrator(
            [make_check(CheckKind.TLS), make_check(CheckKind.HSM, passed=False)],
            config,
        )
        asyncio.run(orch.start())

        message = orch.get_report().to_message()
        decoded = json.loads(json.dumps(message))

        assert decoded["overall_status"] == "partially_secure"
        assert decoded["snapshot"]["state"] == "complete"
        assert decoded["summary"]["secure_count"] == 1
        assert decoded["snapshot"]["results"][0]["detail"]["kind"] == "tls"

    def test_default_providers_pass_crypto_and_hsm(self):
        orch = SecurityCheckOrchestrator(
            SecurityCheckConfig.only(CheckKind.CRYPTO, CheckKind.HSM, delay_ms=0)
        )

        snapshot = asyncio.run(orch.start())

        assert snapshot.state == RunState.COMPLETE
        assert [r.kind for r in snapshot.results] == [CheckKind.CRYPTO, CheckKind.HSM]
        crypto, hsm = snapshot.results
        assert crypto.detail.has_encryption is True
        assert hsm.detail.key_pair_generated is True
        assert hsm.detail.encryption_verified is True
        assert orch.get_overall_status() == OverallStatus.SECURE


# ============================================================================
# IN-FLIGHT CANCELLATION
# ============================================================================

class TestInFlightCancellation:
    """stop() while a check is still working abandons it."""

    def test_stop_during_check_discards_late_result(self, make_check):
        check = make_check(CheckKind.TLS, delay=0.3)
        config = SecurityCheckConfig.only(CheckKind.TLS, CheckKind.HSM, delay_ms=0)
        orch = _orchestrator([check, make_check(CheckKind.HSM)], config)

        async def scenario():
            task = orch.launch()
            await asyncio.sleep(0.05)
            assert check.calls == 1
            assert orch.stop() is True
            snapshot = await task
            # Past the point where the abandoned check would have answered
            await asyncio.sleep(0.4)
            return snapshot

        snapshot = asyncio.run(scenario())

        assert snapshot.results == ()
        assert snapshot.state == RunState.CANCELLED
        assert snapshot.error == "cancelled"
        assert orch.get_state().results == ()
        assert orch.get_state().state == RunState.CANCELLED
        assert check.calls == 1

    def test_stop_during_retry_delay(self, make_check):
        check = make_check(CheckKind.HSM, fail_times=1)
        config = SecurityCheckConfig.only(CheckKind.HSM, retry_attempts=2, delay_ms=300)
        orch = _orchestrator([check], config)

        async def scenario():
            task = orch.launch()
            await asyncio.sleep(0.05)
            assert orch.stop() is True
            snapshot = await task
            await asyncio.sleep(0.4)
            return snapshot

        snapshot = asyncio.run(scenario())

        assert snapshot.results == ()
        assert snapshot.state == RunState.CANCELLED
        assert orch.get_state().results == ()
        # No second attempt after the stop
        assert check.calls == 1


# ============================================================================
# CONCURRENT ORCHESTRATORS
# ============================================================================

class TestConcurrentRuns:
    """Two orchestrators interleaved on one event loop."""

    def test_log_context_follows_each_run(self, make_check):
        config = SecurityCheckConfig.only(CheckKind.TLS, CheckKind.HSM, delay_ms=0)
        first = _orchestrator(
            [make_check(CheckKind.TLS, delay=0.03), make_check(CheckKind.HSM, delay=0.03)],
            config,
        )
        second = _orchestrator(
            [make_check(CheckKind.TLS, delay=0.02), make_check(CheckKind.HSM, delay=0.02)],
            config,
        )
        observed = {"first": [], "second": []}

        def watch(name):
            def callback(snapshot):
                if snapshot.results:
                    observed[name].append((snapshot.run_id, get_current_context().run_id))
            return callback

        first.subscribe(watch("first"))
        second.subscribe(watch("second"))

        async def scenario():
            return await asyncio.gather(first.start(), second.start())

        a, b = asyncio.run(scenario())

        assert a.run_id != b.run_id
        assert observed["first"] == [(a.run_id, a.run_id)] * 3
        assert observed["second"] == [(b.run_id, b.run_id)] * 3
        assert get_current_context().run_id is None


class TestCancellationToken:

    def test_first_cancel_wins(self):
        from core.contracts import CancelReason

        async def scenario():
            token = CancellationToken()
            assert token.cancel(CancelReason.TIMEOUT) is True
            assert token.cancel(CancelReason.STOPPED) is False
            return token.reason, await token.wait()

        reason, waited = asyncio.run(scenario())
        assert reason == CancelReason.TIMEOUT
        assert waited == CancelReason.TIMEOUT

# ============================================================================
# RETRY POLICY
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Bounded retry around one probe
# PURPOSE: Absorb transient probe failures without masking real verdicts
# CREATED: 19 OCT 2026
# ============================================================================
"""
Retry Policy

invoke_with_retry() runs one probe up to retry_attempts + 1 times:

- A returned CheckResult is final, passed or not. A negative verdict is
  never retried.
- CheckTimeout or any other exception is transient: wait delay_ms and try
  again while attempts remain.
- When attempts run out the failure is demoted to a CheckResult with
  passed=False and the last error in detail.error.
- CheckContractViolation is not transient and propagates to the caller.
"""

import asyncio
import time

from core.config import SecurityCheckConfig
from core.logging import ComponentType, get_logger, log_context
from security_check.capabilities import CapabilityHandle
from security_check.core import CheckResult, SecurityCheckPlugin
from security_check.errors import CheckContractViolation, CheckTimeout
from security_check.sanitize import describe_exception, sanitize_error_message

logger = get_logger(__name__, ComponentType.CHECK)


def _ensure_result(check: SecurityCheckPlugin, result: object) -> CheckResult:
    if not isinstance(result, CheckResult):
        raise CheckContractViolation(
            check.kind, f"run() returned {type(result).__name__}, expected CheckResult"
        )
    if result.kind != check.kind:
        raise CheckContractViolation(
            check.kind, f"run() returned a result for {result.kind.value}"
        )
    return result


async def invoke_with_retry(
    check: SecurityCheckPlugin,
    handle: CapabilityHandle,
    config: SecurityCheckConfig,
) -> CheckResult:
    """
    Run a probe with bounded retries.

    Args:
        check: Probe to run
        handle: Capabilities passed to every attempt
        config: Supplies retry_attempts, delay_ms and the per-attempt timeout

    Returns:
        CheckResult with attempts set to the number of attempts made

    Raises:
        CheckContractViolation: If the probe breaks its contract
    """
    max_attempts = config.retry_attempts + 1
    timeout_ms = config.per_check_timeout_ms(check.timeout_ms)
    start_time = time.monotonic()
    last_error = None

    for attempt in range(1, max_attempts + 1):
        with log_context(check=check.kind.value, attempt=attempt):
            try:
                result = await check.run(handle, timeout_ms)
            except CheckContractViolation:
                raise
            except CheckTimeout as e:
                last_error = str(e)
                logger.warning(f"Attempt {attempt}/{max_attempts} timed out")
            except Exception as e:
                last_error = describe_exception(e)
                logger.warning(f"Attempt {attempt}/{max_attempts} raised: {last_error}")
            else:
                result = _ensure_result(check, result)
                logger.debug(
                    f"Check settled: passed={result.passed}",
                    extra={"duration_ms": result.duration_ms},
                )
                return result.model_copy(update={
                    "attempts": attempt,
                    "duration_ms": int((time.monotonic() - start_time) * 1000),
                })

        if attempt < max_attempts and config.delay_ms:
            await asyncio.sleep(config.delay_ms / 1000)

    logger.error(
        f"Check {check.kind.value} failed after {max_attempts} attempts: {last_error}"
    )
    return CheckResult.failed(
        check.kind,
        sanitize_error_message(f"Failed after {max_attempts} attempts: {last_error}"),
        attempts=max_attempts,
        duration_ms=int((time.monotonic() - start_time) * 1000),
    )


__all__ = ["invoke_with_retry"]

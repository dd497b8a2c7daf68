# ============================================================================
# SECURITY CHECK REGISTRY
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Probe plugin registration
# PURPOSE: Ordered catalogue of probes and their enable flags
# CREATED: 19 OCT 2026
# ============================================================================
"""
Security Check Registry

Holds one probe per CheckKind. Execution order is fixed by CHECK_ORDER,
never by registration order, so results always come back in the same
sequence.

Usage:
    # Decorator registration (global registry)
    @register_check()
    class TLSCheck(SecurityCheckPlugin):
        kind = CheckKind.TLS
        ...

    # Private registry (tests, custom deployments)
    registry = CheckRegistry()
    registry.register(TLSCheck())

    # Probes to run for a configuration
    checks = registry.enabled(config)
"""

import logging
from typing import Dict, Iterable, List, Optional, Type

from core.config import SecurityCheckConfig
from core.contracts import CheckKind
from security_check.core import SecurityCheckPlugin

logger = logging.getLogger(__name__)


# Transport and page posture first, then device capabilities, then
# compliance attestations.
CHECK_ORDER: List[CheckKind] = [
    CheckKind.TLS,
    CheckKind.CERTIFICATE_PINNING,
    CheckKind.HEADERS,
    CheckKind.CSP,
    CheckKind.DOM_PROTECTION,
    CheckKind.DEVICE_FINGERPRINT,
    CheckKind.CRYPTO,
    CheckKind.STORAGE,
    CheckKind.HSM,
    CheckKind.BIOMETRIC,
    CheckKind.ZKP,
    CheckKind.THREAT_DETECTION,
    CheckKind.GDPR_COMPLIANCE,
    CheckKind.SOC2_COMPLIANCE,
]

# Essential subset for start_quick()
QUICK_CHECK_KINDS = frozenset({
    CheckKind.DEVICE_FINGERPRINT,
    CheckKind.CRYPTO,
    CheckKind.STORAGE,
})

_POSITION = {kind: index for index, kind in enumerate(CHECK_ORDER)}


class CheckRegistry:
    """
    Registry for security probe plugins.

    One plugin per kind. Lookups and listings follow CHECK_ORDER.
    """

    def __init__(self, checks: Optional[Iterable[SecurityCheckPlugin]] = None):
        self._checks: Dict[CheckKind, SecurityCheckPlugin] = {}
        for check in checks or ():
            self.register(check)

    def register(self, check: SecurityCheckPlugin) -> None:
        """
        Register a probe plugin instance.

        A second plugin for the same kind replaces the first.
        """
        if check.kind in self._checks:
            logger.warning(f"Overwriting security check: {check.kind.value}")

        self._checks[check.kind] = check
        logger.debug(
            f"Registered security check: {check.kind.value} "
            f"(timeout_ms={check.timeout_ms})"
        )

    def register_class(
        self,
        check_class: Type[SecurityCheckPlugin],
        **kwargs
    ) -> SecurityCheckPlugin:
        """Instantiate and register a probe class."""
        instance = check_class(**kwargs)
        self.register(instance)
        return instance

    def unregister(self, kind: CheckKind) -> bool:
        """
        Remove a probe by kind.

        Returns:
            True if a probe was removed
        """
        return self._checks.pop(kind, None) is not None

    def get(self, kind: CheckKind) -> Optional[SecurityCheckPlugin]:
        """Get probe by kind."""
        return self._checks.get(kind)

    def get_all(self) -> List[SecurityCheckPlugin]:
        """All registered probes in execution order."""
        return sorted(self._checks.values(), key=lambda c: _POSITION[c.kind])

    def enabled(
        self,
        config: SecurityCheckConfig,
        only: Optional[Iterable[CheckKind]] = None,
    ) -> List[SecurityCheckPlugin]:
        """
        Probes switched on by `config`, in execution order.

        Args:
            config: Configuration holding the enable flags
            only: Optional further restriction (e.g. QUICK_CHECK_KINDS)
        """
        allowed = set(only) if only is not None else None
        return [
            check for check in self.get_all()
            if config.is_enabled(check.kind)
            and (allowed is None or check.kind in allowed)
        ]

    def clear(self) -> None:
        """Remove all registered probes."""
        self._checks.clear()

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, kind: CheckKind) -> bool:
        return kind in self._checks


# ============================================================================
# GLOBAL REGISTRY & DECORATOR
# ============================================================================

_registry: Optional[CheckRegistry] = None


def get_registry() -> CheckRegistry:
    """Get the global security check registry."""
    global _registry
    if _registry is None:
        _registry = CheckRegistry()
    return _registry


def get_default_registry() -> CheckRegistry:
    """Global registry with the built-in probes loaded."""
    import security_check.checks  # noqa: F401  (registers built-in probes)
    return get_registry()


def register_check(timeout_ms: int = None):
    """
    Decorator to register a probe class in the global registry.

    Args:
        timeout_ms: Override the per-attempt timeout default

    Example:
        @register_check(timeout_ms=2000)
        class HSMCheck(SecurityCheckPlugin):
            kind = CheckKind.HSM

            async def probe(self, handle):
                ...
    """
    def decorator(cls: Type[SecurityCheckPlugin]) -> Type[SecurityCheckPlugin]:
        if timeout_ms is not None:
            cls.timeout_ms = timeout_ms

        get_registry().register_class(cls)
        return cls

    return decorator


__all__ = [
    "CHECK_ORDER",
    "QUICK_CHECK_KINDS",
    "CheckRegistry",
    "get_registry",
    "get_default_registry",
    "register_check",
]

# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Orchestrator configuration
# PURPOSE: Immutable, validated configuration with env and store loaders
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Defaults

One immutable configuration object per orchestrator run.

Design:
- Frozen pydantic model, unknown keys rejected
- Strict types: booleans must be booleans, integers must be integers
- Environment variable overrides (from_env)
- Optional load from a durable key-value store (from_store)
- Updates produce a new instance (merged), never mutate in place
"""

import json
import os
from typing import Any, Dict, FrozenSet, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.contracts import CheckKind
from core.storage import KeyValueStore


# Store key the extension settings page writes to
CONFIG_STORE_KEY = "security_check_config"

MAX_TIMEOUT_MS = 60000
MAX_RETRY_ATTEMPTS = 10
MAX_DELAY_MS = 10000


class ConfigurationInvalid(ValueError):
    """Raised when configuration values are rejected, before any run starts."""

    def __init__(self, message: str, errors: Optional[list] = None):
        self.errors = errors or []
        super().__init__(message)


class SecurityCheckConfig(BaseModel):
    """
    Orchestrator configuration.

    Timing fields are milliseconds. Every CheckKind has exactly one
    enable flag (see CheckKind.config_flag).
    """
    model_config = ConfigDict(frozen=True, extra="forbid", strict=True)

    # Timing
    timeout_ms: int = Field(default=30000, gt=0, le=MAX_TIMEOUT_MS)
    retry_attempts: int = Field(default=3, ge=0, le=MAX_RETRY_ATTEMPTS)
    delay_ms: int = Field(default=100, ge=0, le=MAX_DELAY_MS)
    # Per-attempt cap; falls back to the check's own default when unset
    check_timeout_ms: Optional[int] = Field(default=None, gt=0, le=MAX_TIMEOUT_MS)

    # Check toggles
    enable_hsm: bool = True
    enable_biometric: bool = True
    enable_device_fingerprinting: bool = True
    enable_zkp: bool = True
    enable_csp: bool = True
    enable_tls: bool = True
    enable_headers: bool = True
    enable_crypto: bool = True
    enable_storage: bool = True
    enable_dom_protection: bool = True
    enable_certificate_pinning: bool = True
    enable_gdpr_compliance: bool = True
    enable_threat_detection: bool = True
    enable_soc2_compliance: bool = True

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def validated(cls, values: Mapping[str, Any]) -> "SecurityCheckConfig":
        """
        Build a config from a mapping.

        Raises:
            ConfigurationInvalid: If any value is out of bounds, mistyped,
                or the key is unknown.
        """
        try:
            return cls(**dict(values))
        except ValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            ]
            raise ConfigurationInvalid(
                "Invalid security check configuration: " + "; ".join(problems),
                errors=problems,
            ) from e

    @classmethod
    def only(cls, *kinds: CheckKind, **overrides: Any) -> "SecurityCheckConfig":
        """Config with every check disabled except the given kinds."""
        values: Dict[str, Any] = {kind.config_flag: False for kind in CheckKind}
        for kind in kinds:
            values[kind.config_flag] = True
        values.update(overrides)
        return cls.validated(values)

    @classmethod
    def from_env(cls) -> "SecurityCheckConfig":
        """
        Create from environment variables.

        SECURITY_CHECK_TIMEOUT_MS: Global run timeout
        SECURITY_CHECK_RETRY_ATTEMPTS: Retries per check after the first attempt
        SECURITY_CHECK_DELAY_MS: Delay between retries
        SECURITY_CHECK_CHECK_TIMEOUT_MS: Per-attempt timeout cap
        SECURITY_CHECK_DISABLED: Comma-separated check kinds to disable
        """
        values: Dict[str, Any] = {}
        int_vars = {
            "SECURITY_CHECK_TIMEOUT_MS": "timeout_ms",
            "SECURITY_CHECK_RETRY_ATTEMPTS": "retry_attempts",
            "SECURITY_CHECK_DELAY_MS": "delay_ms",
            "SECURITY_CHECK_CHECK_TIMEOUT_MS": "check_timeout_ms",
        }
        for var, field_name in int_vars.items():
            raw = os.environ.get(var)
            if raw is None or raw.strip() == "":
                continue
            try:
                values[field_name] = int(raw)
            except ValueError:
                raise ConfigurationInvalid(f"{var} must be an integer, got {raw!r}")

        disabled = os.environ.get("SECURITY_CHECK_DISABLED", "")
        for name in filter(None, (part.strip().lower() for part in disabled.split(","))):
            try:
                kind = CheckKind(name)
            except ValueError:
                raise ConfigurationInvalid(f"Unknown check kind in SECURITY_CHECK_DISABLED: {name}")
            values[kind.config_flag] = False

        return cls.validated(values)

    @classmethod
    def from_store(
        cls,
        store: KeyValueStore,
        key: str = CONFIG_STORE_KEY,
    ) -> "SecurityCheckConfig":
        """
        Load from a key-value store holding a JSON object.

        A missing key yields the defaults.
        """
        raw = store.get_item(key)
        if raw is None:
            return cls()
        try:
            values = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationInvalid(f"Stored configuration is not valid JSON: {e}") from e
        if not isinstance(values, dict):
            raise ConfigurationInvalid("Stored configuration must be a JSON object")
        return cls.validated(values)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def merged(self, **partial: Any) -> "SecurityCheckConfig":
        """Return a new validated config with `partial` applied."""
        return self.validated({**self.model_dump(), **partial})

    def is_enabled(self, kind: CheckKind) -> bool:
        """Check whether a probe kind is switched on."""
        return bool(getattr(self, kind.config_flag))

    def enabled_kinds(self) -> FrozenSet[CheckKind]:
        """All kinds switched on."""
        return frozenset(kind for kind in CheckKind if self.is_enabled(kind))

    def per_check_timeout_ms(self, default_ms: int) -> int:
        """Per-attempt timeout for a check, never longer than the run timeout."""
        limit = self.check_timeout_ms if self.check_timeout_ms is not None else default_ms
        return min(limit, self.timeout_ms)

    def to_store(self, store: KeyValueStore, key: str = CONFIG_STORE_KEY) -> None:
        """Write this config to a key-value store as JSON."""
        store.set_item(key, self.model_dump_json())


def get_defaults() -> SecurityCheckConfig:
    """Default configuration with environment overrides applied."""
    return SecurityCheckConfig.from_env()


__all__ = [
    "CONFIG_STORE_KEY",
    "ConfigurationInvalid",
    "SecurityCheckConfig",
    "get_defaults",
]

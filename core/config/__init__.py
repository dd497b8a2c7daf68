# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Module

Provides the validated, immutable orchestrator configuration.
"""

from core.config.defaults import (
    CONFIG_STORE_KEY,
    ConfigurationInvalid,
    SecurityCheckConfig,
    get_defaults,
)

__all__ = [
    "CONFIG_STORE_KEY",
    "ConfigurationInvalid",
    "SecurityCheckConfig",
    "get_defaults",
]

# ============================================================================
# VERSION - SECURITY CHECK ORCHESTRATOR
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# ============================================================================
"""
Version information for the Security Check Orchestrator.

This is the single source of truth for the application version.
Updated manually for each release.
"""
# Version format: major.minor.patch
__version__ = "0.4.1"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Build metadata
BUILD_DATE = "2026-10-19"

EPOCH = 2
CODENAME = "Security Check Orchestrator"

# ============================================================================
# ERROR MESSAGE SANITIZATION
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Information disclosure guard
# PURPOSE: Clean exception text before it reaches snapshots and reports
# CREATED: 19 OCT 2026
# ============================================================================
"""
Error message sanitization.

Everything a caller can read (CheckResult.detail.error, ProgressSnapshot.error)
passes through sanitize_error_message first.
"""

import re
from typing import Optional

MAX_ERROR_LENGTH = 200

REDACTED = "[REDACTED]"

_SENSITIVE_PATTERNS = [
    re.compile(r"private.*?key", re.IGNORECASE),
    re.compile(r"password", re.IGNORECASE),
    re.compile(r"secret", re.IGNORECASE),
    re.compile(r"token", re.IGNORECASE),
    re.compile(r"api.*?key", re.IGNORECASE),
    re.compile(r"file.*?path", re.IGNORECASE),
    re.compile(r"system.*?path", re.IGNORECASE),
]

_MARKUP_CHARS = re.compile(r"[<>\"'&]")


def sanitize_error_message(message: Optional[str]) -> str:
    """
    Redact sensitive words, strip markup characters and cap the length.

    >>> sanitize_error_message("bad <b>password</b>")
    'bad b[REDACTED]/b'
    """
    if not message:
        return "Unknown error"

    sanitized = _MARKUP_CHARS.sub("", str(message))
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(REDACTED, sanitized)

    if len(sanitized) > MAX_ERROR_LENGTH:
        sanitized = sanitized[:MAX_ERROR_LENGTH] + "..."
    return sanitized


def describe_exception(exc: BaseException) -> str:
    """Sanitized 'Type: message' string for an exception."""
    text = str(exc)
    if text:
        return sanitize_error_message(f"{type(exc).__name__}: {text}")
    return type(exc).__name__


__all__ = [
    "MAX_ERROR_LENGTH",
    "sanitize_error_message",
    "describe_exception",
]

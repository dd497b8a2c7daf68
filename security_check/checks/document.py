# ============================================================================
# DOCUMENT & TRANSPORT CHECKS
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Checks - Page and connection posture probes
# PURPOSE: Inspect transport security, headers, CSP and DOM exposure
# CREATED: 19 OCT 2026
# ============================================================================
"""
Document & Transport Checks

These probes only read the DocumentInfo / TransportInfo facts on the
capability handle:

- TLSCheck: secure scheme, secure context, HSTS, cookies, certificate
- CertificatePinningCheck: leaf fingerprint against a pin set per host
- HeadersCheck: framing, sniffing, referrer and permissions headers
- CSPCheck: Content-Security-Policy strength
- DOMProtectionCheck: sensitive text exposed to page scripts
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from core.contracts import CheckKind
from security_check.capabilities import CapabilityHandle, DocumentInfo
from security_check.core import CheckDetail, SecurityCheckPlugin
from security_check.registry import register_check

logger = logging.getLogger(__name__)

SECURE_SCHEMES = frozenset({"https", "wss", "chrome-extension", "moz-extension"})

HSTS_MIN_MAX_AGE = 31536000  # one year

_MAX_AGE = re.compile(r"max-age=(\d+)", re.IGNORECASE)


def _has_strong_hsts(document: DocumentInfo) -> bool:
    header = document.header("Strict-Transport-Security")
    if header:
        match = _MAX_AGE.search(header)
        if match and int(match.group(1)) >= HSTS_MIN_MAX_AGE:
            return True
    # upgrade-insecure-requests in a CSP counts as an HSTS equivalent
    return any("upgrade-insecure-requests" in policy for policy in _csp_sources(document))


def _csp_sources(document: DocumentInfo) -> List[str]:
    policies = list(document.csp_policies)
    header = document.header("Content-Security-Policy")
    if header:
        policies.append(header)
    return policies


@register_check(timeout_ms=2000)
class TLSCheck(SecurityCheckPlugin):
    """Transport security of the current context."""

    kind = CheckKind.TLS

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        document = handle.document
        if document is None:
            return self.unavailable("Document metadata not available")

        secure_protocol = document.scheme.lower() in SECURE_SCHEMES
        if document.is_extension:
            has_valid_certificate = True
        else:
            has_valid_certificate = bool(handle.transport and handle.transport.certificate_valid)

        is_secure = secure_protocol and document.is_secure_context and has_valid_certificate

        error = None
        if not secure_protocol:
            error = f"Insecure protocol: {document.scheme}"
        elif not has_valid_certificate:
            error = "Certificate could not be validated"

        return self.detail(
            is_secure=is_secure,
            has_hsts=document.is_extension or _has_strong_hsts(document),
            has_secure_cookies=document.cookies_enabled and document.is_secure_context,
            has_valid_certificate=has_valid_certificate,
            error=error,
        )


@register_check(timeout_ms=2000)
class CertificatePinningCheck(SecurityCheckPlugin):
    """
    Certificate pinning for known wallet hosts.

    Hosts without a pin entry are allowed. Extension contexts have no
    server certificate and are treated as pinned.
    """

    kind = CheckKind.CERTIFICATE_PINNING

    TRUSTED_FINGERPRINTS: Dict[str, List[str]] = {
        "metamask.io": [
            "sha256/AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA=",
            "sha256/BBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBB=",
        ],
        "trustwallet.com": [
            "sha256/CCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCC=",
            "sha256/DDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDD=",
        ],
        "ledger.com": [
            "sha256/EEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEE=",
            "sha256/FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF=",
        ],
    }

    def __init__(self, pins: Optional[Dict[str, List[str]]] = None):
        self.pins = pins if pins is not None else dict(self.TRUSTED_FINGERPRINTS)

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        document = handle.document
        if document is None:
            return self.unavailable("Document metadata not available")

        transport = handle.transport
        has_secure_connection = document.is_extension or document.scheme.lower() == "https"
        has_valid_certificate = has_secure_connection and (
            document.is_extension or bool(transport and transport.certificate_valid)
        )

        hostname = (transport.hostname if transport and transport.hostname else document.hostname)
        expected = self.pins.get(hostname.lower())
        if document.is_extension or not expected:
            is_pinned = True
        else:
            presented = set(transport.certificate_fingerprints) if transport else set()
            is_pinned = bool(presented & set(expected))

        fingerprint_verified = is_pinned and has_valid_certificate
        error = None
        if not is_pinned:
            error = f"Certificate fingerprint does not match pins for {hostname}"
        elif not has_valid_certificate:
            error = "Certificate could not be validated"

        return self.detail(
            is_pinned=is_pinned,
            has_valid_certificate=has_valid_certificate,
            has_secure_connection=has_secure_connection,
            fingerprint_verified=fingerprint_verified,
            error=error,
        )


@register_check(timeout_ms=2000)
class HeadersCheck(SecurityCheckPlugin):
    """Security header hygiene."""

    kind = CheckKind.HEADERS

    VALID_FRAME_OPTIONS = ("deny", "sameorigin")
    VALID_REFERRER_POLICIES = (
        "no-referrer",
        "no-referrer-when-downgrade",
        "origin",
        "origin-when-cross-origin",
        "same-origin",
        "strict-origin",
        "strict-origin-when-cross-origin",
        "unsafe-url",
    )
    RESTRICTIVE_PERMISSIONS = (
        "geolocation=()",
        "microphone=()",
        "camera=()",
        "payment=()",
        "usb=()",
    )

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        document = handle.document
        if document is None:
            return self.unavailable("Document metadata not available")

        frame = (document.header("X-Frame-Options") or "").strip().lower()
        sniff = (document.header("X-Content-Type-Options") or "").strip().lower()
        referrer = (document.header("Referrer-Policy") or "").strip().lower()
        permissions = (document.header("Permissions-Policy") or "").replace(" ", "").lower()

        has_x_frame_options = frame in self.VALID_FRAME_OPTIONS
        has_x_content_type_options = sniff == "nosniff"

        missing = [
            name for name, present in (
                ("X-Frame-Options", has_x_frame_options),
                ("X-Content-Type-Options", has_x_content_type_options),
            )
            if not present
        ]
        return self.detail(
            has_x_frame_options=has_x_frame_options,
            has_x_content_type_options=has_x_content_type_options,
            has_referrer_policy=referrer in self.VALID_REFERRER_POLICIES,
            has_permissions_policy=any(p in permissions for p in self.RESTRICTIVE_PERMISSIONS),
            error=f"Missing or invalid: {', '.join(missing)}" if missing else None,
        )


Directive = Tuple[str, List[str]]


def parse_csp(policy: str) -> List[Directive]:
    """
    Split a policy string into (directive, values) pairs.

    >>> parse_csp("default-src 'self'; frame-ancestors 'none'")
    [('default-src', ["'self'"]), ('frame-ancestors', ["'none'"])]
    """
    directives: List[Directive] = []
    for part in policy.split(";"):
        tokens = part.strip().split()
        if tokens:
            directives.append((tokens[0].lower(), tokens[1:]))
    return directives


def _has_source(policy: List[Directive], source: str) -> bool:
    return any(
        f"'{source}'" in values or source in values
        for _, values in policy
    )


@register_check(timeout_ms=2000)
class CSPCheck(SecurityCheckPlugin):
    """
    Content-Security-Policy posture.

    A policy is secure when it sets default-src and script-src and allows
    neither unsafe-inline nor unsafe-eval.
    """

    kind = CheckKind.CSP

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        document = handle.document
        if document is None:
            return self.unavailable("Document metadata not available")

        policies = [parse_csp(p) for p in _csp_sources(document)]
        policies = [p for p in policies if p]
        if not policies:
            return self.detail(is_enabled=False, error="No Content-Security-Policy found")

        has_unsafe_inline = any(_has_source(p, "unsafe-inline") for p in policies)
        has_unsafe_eval = any(_has_source(p, "unsafe-eval") for p in policies)

        has_secure_policy = False
        for policy in policies:
            names = {name for name, _ in policy}
            if (
                "default-src" in names
                and "script-src" in names
                and not _has_source(policy, "unsafe-inline")
                and not _has_source(policy, "unsafe-eval")
            ):
                has_secure_policy = True
                break

        has_frame_ancestors = False
        for policy in policies:
            values = next((v for name, v in policy if name == "frame-ancestors"), None)
            if values is not None:
                has_frame_ancestors = any(
                    v == "'none'" or v.startswith("https://") for v in values
                )
                break

        return self.detail(
            is_enabled=True,
            has_secure_policy=has_secure_policy,
            has_frame_ancestors=has_frame_ancestors,
            has_unsafe_inline=has_unsafe_inline,
            has_unsafe_eval=has_unsafe_eval,
            error=None if has_secure_policy else "Content-Security-Policy is not restrictive",
        )


@register_check(timeout_ms=2000)
class DOMProtectionCheck(SecurityCheckPlugin):
    """
    DOM skimming protection.

    Sensitive values must not be readable by page scripts, wallet UI must
    live on extension surfaces, and storage must be isolated.
    """

    kind = CheckKind.DOM_PROTECTION

    SENSITIVE_PATTERNS = [
        re.compile(r"password", re.IGNORECASE),
        re.compile(r"credit.?card", re.IGNORECASE),
        re.compile(r"ssn|social.?security", re.IGNORECASE),
        re.compile(r"private.?key", re.IGNORECASE),
        re.compile(r"secret", re.IGNORECASE),
        re.compile(r"token", re.IGNORECASE),
        re.compile(r"api.?key", re.IGNORECASE),
        re.compile(r"wallet.?address", re.IGNORECASE),
        re.compile(r"private", re.IGNORECASE),
    ]

    SECURE_SURFACES = frozenset({"popup", "options", "side_panel"})

    def find_sensitive(self, fragments: List[str]) -> Optional[str]:
        """First pattern that matches any fragment, or None."""
        for fragment in fragments:
            for pattern in self.SENSITIVE_PATTERNS:
                if pattern.search(fragment):
                    return pattern.pattern
        return None

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        document = handle.document
        if document is None:
            return self.unavailable("Document metadata not available")

        # Extension pages are not reachable from page scripts
        match = None if document.is_extension else self.find_sensitive(document.text_fragments)
        if match:
            logger.warning(f"Sensitive data pattern visible to page scripts: {match}")

        has_sensitive = match is not None
        has_secure_ui = bool(self.SECURE_SURFACES & {s.lower() for s in document.ui_surfaces})
        has_isolated_storage = document.isolated_storage and document.is_extension
        is_protected = not has_sensitive and has_secure_ui and has_isolated_storage

        problems = []
        if has_sensitive:
            problems.append("sensitive data exposed in page")
        if not has_secure_ui:
            problems.append("no secure UI surface")
        if not has_isolated_storage:
            problems.append("storage not isolated")

        return self.detail(
            is_protected=is_protected,
            has_sensitive_data_in_dom=has_sensitive,
            has_secure_ui_elements=has_secure_ui,
            has_isolated_storage=has_isolated_storage,
            error="; ".join(problems) if problems else None,
        )


__all__ = [
    "TLSCheck",
    "CertificatePinningCheck",
    "HeadersCheck",
    "CSPCheck",
    "DOMProtectionCheck",
    "parse_csp",
]

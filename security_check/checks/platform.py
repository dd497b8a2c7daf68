# ============================================================================
# PLATFORM CAPABILITY CHECKS
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Checks - Device and cryptographic capability probes
# PURPOSE: Probe key handling, biometrics, fingerprinting and ZKP readiness
# CREATED: 19 OCT 2026
# ============================================================================
"""
Platform Capability Checks

- HSMCheck: sign/verify round trip on a freshly generated key
- BiometricCheck: platform authenticator presence
- DeviceFingerprintCheck: validated, hashed device attributes
- ZKPCheck: Schnorr identification proof over the P-256 field prime
- CryptoCheck: random, digest, key generation and encryption
"""

import hashlib
import json
import logging
import re
from typing import List, Optional

from core.contracts import BiometricPlatform, CheckKind
from security_check.capabilities import (
    CapabilityHandle,
    CryptoProvider,
    try_capability,
)
from security_check.core import CheckDetail, SecurityCheckPlugin
from security_check.registry import register_check

logger = logging.getLogger(__name__)


async def _encryption_round_trip(crypto: CryptoProvider, plaintext: bytes) -> bool:
    """Encrypt then decrypt `plaintext`. False if any step is unavailable."""
    ok, key = await try_capability(crypto.generate_encryption_key)
    if not ok:
        return False
    ok, sealed = await try_capability(crypto.encrypt, key, plaintext)
    if not ok:
        return False
    nonce, ciphertext = sealed
    ok, opened = await try_capability(crypto.decrypt, key, nonce, ciphertext)
    return ok and opened == plaintext and ciphertext != plaintext


@register_check(timeout_ms=3000)
class HSMCheck(SecurityCheckPlugin):
    """
    Hardware-backed key check.

    Generates a signing key pair, exports its public half, signs a test
    payload with the private handle and verifies it from the public bytes
    alone, then tries an encryption round trip. A provider that cannot
    export a public key has no key pair and does not pass. Nothing is
    persisted.
    """

    kind = CheckKind.HSM

    TEST_PAYLOAD = b"HSM_TEST_SIGNATURE"

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        crypto = handle.crypto
        if crypto is None:
            return self.unavailable("Crypto provider not available")

        ok, key = await try_capability(crypto.generate_signing_key)
        if not ok or key is None:
            return self.unavailable("Key pair generation not supported")

        ok, public_key = await try_capability(crypto.public_key_bytes, key)
        key_pair_generated = ok and bool(public_key)

        initialized = False
        if key_pair_generated:
            ok, signature = await try_capability(crypto.sign, key, self.TEST_PAYLOAD)
            if ok:
                ok, valid = await try_capability(
                    crypto.verify, public_key, self.TEST_PAYLOAD, signature
                )
                initialized = ok and valid is True

        encryption_verified = await _encryption_round_trip(crypto, self.TEST_PAYLOAD)

        if not key_pair_generated:
            error = "Signing key has no exportable public key"
        elif not initialized:
            error = "Signature verification failed"
        else:
            error = None

        return self.detail(
            initialized=initialized,
            key_pair_generated=key_pair_generated,
            encryption_verified=encryption_verified,
            error=error,
        )


@register_check(timeout_ms=3000)
class BiometricCheck(SecurityCheckPlugin):
    """
    Biometric capability check.

    Never prompts the user; only asks the platform whether a
    user-verifying authenticator exists.
    """

    kind = CheckKind.BIOMETRIC

    @staticmethod
    def detect_platform(user_agent: str) -> BiometricPlatform:
        ua = user_agent.lower()
        if "windows" in ua:
            return BiometricPlatform.WINDOWS
        if "mac" in ua:
            return BiometricPlatform.MACOS
        if "linux" in ua:
            return BiometricPlatform.LINUX
        return BiometricPlatform.UNSUPPORTED

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        platform = self.detect_platform(handle.device.user_agent if handle.device else "")

        provider = handle.biometric
        if provider is None:
            return self.unavailable("Platform authenticator API not available", platform=platform)

        ok, present = await try_capability(provider.platform_authenticator_available)
        present = ok and bool(present)
        is_supported = present and platform is not BiometricPlatform.UNSUPPORTED

        is_authenticated = False
        if is_supported:
            ok, tested = await try_capability(provider.test_capabilities)
            is_authenticated = ok and bool(tested)

        return self.detail(
            available=present,
            is_supported=is_supported,
            is_authenticated=is_authenticated,
            platform=platform,
            error=None if is_supported else "No user-verifying platform authenticator",
        )


@register_check(timeout_ms=2000)
class DeviceFingerprintCheck(SecurityCheckPlugin):
    """
    Privacy-minimal device fingerprint.

    Attributes are validated first so a tampered environment produces no
    fingerprint at all.
    """

    kind = CheckKind.DEVICE_FINGERPRINT

    MAX_HARDWARE_CONCURRENCY = 64
    VALID_LANGUAGE = re.compile(r"^[a-z]{2}(-[A-Z]{2})?$")
    VALID_PLATFORM = re.compile(r"^(Win32|MacIntel|Linux x86_64|Linux armv7l|Linux aarch64)$")
    VALID_TIMEZONE = re.compile(r"^[A-Za-z_]+(/[A-Za-z_]+)*$")

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        device = handle.device
        if device is None:
            return self.unavailable("Device metadata not available")

        language_valid = bool(self.VALID_LANGUAGE.match(device.language))
        platform_valid = bool(self.VALID_PLATFORM.match(device.platform))
        timezone_valid = bool(self.VALID_TIMEZONE.match(device.timezone))
        concurrency_valid = 1 <= device.hardware_concurrency <= self.MAX_HARDWARE_CONCURRENCY

        invalid: List[str] = [
            name for name, valid in (
                ("language", language_valid),
                ("platform", platform_valid),
                ("timezone", timezone_valid),
                ("hardware_concurrency", concurrency_valid),
            )
            if not valid
        ]

        fingerprint = None
        if not invalid:
            canonical = json.dumps(
                {
                    "language": device.language,
                    "platform": device.platform,
                    "timezone": device.timezone,
                    "hardware_concurrency": device.hardware_concurrency,
                    "features": device.features,
                },
                sort_keys=True,
                separators=(",", ":"),
            )
            fingerprint = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        else:
            logger.info(f"Device data validation failed: {', '.join(invalid)}")

        return self.detail(
            fingerprint=fingerprint,
            language_valid=language_valid,
            platform_valid=platform_valid,
            timezone_valid=timezone_valid,
            hardware_concurrency_valid=concurrency_valid,
            error=f"Invalid device data: {', '.join(invalid)}" if invalid else None,
        )


# P-256 field prime and base point x-coordinate, used as a multiplicative
# group modulus and generator. Exponents live modulo P - 1.
ZKP_P = 0xFFFFFFFF00000001000000000000000000000000FFFFFFFFFFFFFFFFFFFFFFFF
ZKP_G = 0x6B17D1F2E12C4247F8BCE6E563A440F277037D812DEB33A0F4A13945D898C296
ZKP_ORDER = ZKP_P - 1


def _to_bytes(value: int) -> bytes:
    return value.to_bytes(32, "big")


@register_check(timeout_ms=5000)
class ZKPCheck(SecurityCheckPlugin):
    """
    Zero-knowledge proof readiness.

    Runs one non-interactive Schnorr identification (Fiat-Shamir): prove
    knowledge of x with y = g^x mod p without revealing x. If the proof
    cannot be produced or verified, a basic random/digest test decides
    readiness and fallback_used is set.
    """

    kind = CheckKind.ZKP

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        crypto = handle.crypto
        if crypto is None:
            return self.unavailable("Crypto provider not available")

        verified = await self._prove_and_verify(crypto)
        if verified:
            return self.detail(
                is_ready=True,
                challenge_received=True,
                proof_generated=True,
                is_authenticated=True,
            )

        logger.warning("ZKP proof unavailable or invalid, using fallback test")
        basic = await self._basic_crypto_test(crypto)
        return self.detail(
            available=basic,
            is_ready=basic,
            challenge_received=verified is not None,
            proof_generated=verified is not None,
            is_authenticated=False,
            fallback_used=True,
            error=(
                "Zero-knowledge proof verification failed"
                if verified is not None
                else "Zero-knowledge proof primitives unavailable"
            ),
        )

    async def _random_exponent(self, crypto: CryptoProvider) -> Optional[int]:
        ok, raw = await try_capability(crypto.random_bytes, 32)
        if not ok:
            return None
        return int.from_bytes(raw, "big") % ZKP_ORDER or 1

    async def _prove_and_verify(self, crypto: CryptoProvider) -> Optional[bool]:
        """
        Returns:
            True/False for a verified/rejected proof, None if the provider
            lacks randomness or hashing
        """
        secret = await self._random_exponent(crypto)
        nonce = await self._random_exponent(crypto)
        if secret is None or nonce is None:
            return None
        public = pow(ZKP_G, secret, ZKP_P)

        ok, session = await try_capability(crypto.random_bytes, 16)
        if not ok:
            return None

        # Prover commitment and Fiat-Shamir challenge
        commitment = pow(ZKP_G, nonce, ZKP_P)
        ok, digest = await try_capability(
            crypto.digest, _to_bytes(commitment) + _to_bytes(public) + session, "sha256"
        )
        if not ok:
            return None
        challenge = int.from_bytes(digest, "big") % ZKP_ORDER
        response = (nonce + challenge * secret) % ZKP_ORDER

        # Verifier
        lhs = pow(ZKP_G, response, ZKP_P)
        rhs = (commitment * pow(public, challenge, ZKP_P)) % ZKP_P
        return lhs == rhs

    async def _basic_crypto_test(self, crypto: CryptoProvider) -> bool:
        ok_random, raw = await try_capability(crypto.random_bytes, 32)
        ok_digest, digest = await try_capability(crypto.digest, b"zkp-fallback", "sha256")
        return (
            ok_random and ok_digest
            and raw is not None and len(raw) == 32
            and digest is not None and len(digest) == 32
        )


@register_check(timeout_ms=3000)
class CryptoCheck(SecurityCheckPlugin):
    """Cryptographic capability check. Every capability is required."""

    kind = CheckKind.CRYPTO

    TEST_PLAINTEXT = b"crypto-capability-probe"

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        crypto = handle.crypto
        if crypto is None:
            return self.unavailable("Crypto provider not available")

        ok, raw = await try_capability(crypto.random_bytes, 32)
        has_secure_random = ok and raw is not None and len(raw) == 32 and raw != bytes(32)

        ok, digest = await try_capability(crypto.digest, self.TEST_PLAINTEXT, "sha256")
        has_digest = ok and digest is not None and len(digest) == 32

        ok, key = await try_capability(crypto.generate_signing_key)
        has_key_generation = ok and key is not None

        has_encryption = await _encryption_round_trip(crypto, self.TEST_PLAINTEXT)

        missing = [
            name for name, present in (
                ("secure random", has_secure_random),
                ("digest", has_digest),
                ("key generation", has_key_generation),
                ("encryption", has_encryption),
            )
            if not present
        ]
        return self.detail(
            has_secure_random=has_secure_random,
            has_digest=has_digest,
            has_key_generation=has_key_generation,
            has_encryption=has_encryption,
            error=f"Missing: {', '.join(missing)}" if missing else None,
        )


__all__ = [
    "HSMCheck",
    "BiometricCheck",
    "DeviceFingerprintCheck",
    "ZKPCheck",
    "CryptoCheck",
]

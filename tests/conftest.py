# ============================================================================
# SHARED TEST FIXTURES
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Tests - Stub probes and fake providers
# PURPOSE: Deterministic probes for orchestrator, retry and router tests
# CREATED: 19 OCT 2026
# ============================================================================

import asyncio
import hashlib
import hmac
import secrets

import pytest

from core.contracts import CheckKind
from security_check.capabilities import CapabilityUnavailable, LocalCryptoProvider
from security_check.core import SecurityCheckPlugin


# Fields that make each kind's detail pass
PASSING_FIELDS = {
    CheckKind.TLS: {"is_secure": True, "has_valid_certificate": True},
    CheckKind.HSM: {"initialized": True, "key_pair_generated": True},
    CheckKind.HEADERS: {"has_x_frame_options": True, "has_x_content_type_options": True},
    CheckKind.CSP: {"is_enabled": True, "has_secure_policy": True},
    CheckKind.CRYPTO: {
        "has_secure_random": True,
        "has_digest": True,
        "has_key_generation": True,
        "has_encryption": True,
    },
    CheckKind.STORAGE: {"has_secure_storage": True},
    CheckKind.DEVICE_FINGERPRINT: {"fingerprint": "0" * 64},
}


class StubCheck(SecurityCheckPlugin):
    """
    Scripted probe.

    fail_times: raise on the first N calls (-1 = always raise)
    delay: seconds to sleep before answering
    """

    def __init__(self, kind, passed=True, fail_times=0, delay=0.0, timeout_ms=1000):
        self.kind = kind
        self.passed = passed
        self.fail_times = fail_times
        self.delay = delay
        self.timeout_ms = timeout_ms
        self.calls = 0

    async def probe(self, handle):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_times < 0 or self.calls <= self.fail_times:
            raise RuntimeError(f"transient failure {self.calls}")
        if self.passed:
            return self.detail(**PASSING_FIELDS[self.kind])
        return self.detail(error="property absent")


class NoCipherCryptoProvider(LocalCryptoProvider):
    """Signing and hashing only; every encryption operation is unavailable."""

    def generate_encryption_key(self):
        raise CapabilityUnavailable("Symmetric encryption not provided")

    def encrypt(self, key, plaintext):
        raise CapabilityUnavailable("Symmetric encryption not provided")

    def decrypt(self, key, nonce, ciphertext):
        raise CapabilityUnavailable("Symmetric encryption not provided")


class SharedSecretCryptoProvider(LocalCryptoProvider):
    """Signs with an HMAC secret: a signing key, but no key pair."""

    def generate_signing_key(self) -> bytes:
        return secrets.token_bytes(32)

    def public_key_bytes(self, key):
        raise CapabilityUnavailable("Shared-secret keys have no public half")

    def sign(self, key: bytes, data: bytes) -> bytes:
        return hmac.new(key, data, hashlib.sha256).digest()


@pytest.fixture
def make_check():
    """Factory for StubCheck instances."""
    return StubCheck


@pytest.fixture
def no_cipher_crypto():
    return NoCipherCryptoProvider()


@pytest.fixture
def shared_secret_crypto():
    return SharedSecretCryptoProvider()

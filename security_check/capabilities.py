# ============================================================================
# CAPABILITY PROVIDERS
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Narrow interfaces to platform capabilities
# PURPOSE: Everything a probe may consult, each piece optional
# CREATED: 19 OCT 2026
# ============================================================================
"""
Capability Providers

The orchestrator never implements cryptography, biometrics or storage. It
consults them through the narrow interfaces below, bundled in a
CapabilityHandle. Any provider or fact set may be absent; a probe that
finds its capability missing reports passed=False with available=False.

Providers:
- CryptoProvider: random bytes, digest, key-pair sign/verify, encrypt/decrypt
- BiometricProvider: platform authenticator availability
- StorageProvider: local and session key-value areas

Facts (pydantic models, usually supplied by the UI/background process):
- DeviceInfo, DocumentInfo, TransportInfo, PrivacyInfo, ThreatSignals,
  ComplianceControls

Provider methods may be plain functions or coroutines. Probes resolve
them with `resolve()`.

A provider signals that a specific operation does not exist on this
platform by raising CapabilityUnavailable. Any other exception is a
transient failure and is retried by the orchestrator.
"""

import asyncio
import hashlib
import secrets
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import BaseModel, ConfigDict, Field

from core.storage import KeyValueStore, MemoryStore


class CapabilityUnavailable(Exception):
    """The requested operation is not provided on this platform."""
    pass


async def resolve(value: Any) -> Any:
    """Await coroutine results from async providers, pass others through."""
    if asyncio.iscoroutine(value):
        return await value
    return value


async def try_capability(func: Callable[..., Any], *args: Any) -> Tuple[bool, Any]:
    """
    Call a provider operation.

    Returns:
        (True, value) on success, (False, None) if the operation raised
        CapabilityUnavailable. Other exceptions propagate.
    """
    try:
        return True, await resolve(func(*args))
    except CapabilityUnavailable:
        return False, None


# ============================================================================
# PROVIDER INTERFACES
# ============================================================================

class CryptoProvider(Protocol):
    """
    Cryptographic subsystem (Web Crypto style).

    generate_signing_key() returns an opaque private key handle; only its
    public half leaves the provider, via public_key_bytes(). verify() works
    from those public bytes alone.
    """

    def random_bytes(self, length: int) -> bytes: ...

    def digest(self, data: bytes, algorithm: str = "sha256") -> bytes: ...

    def generate_signing_key(self) -> Any: ...

    def public_key_bytes(self, key: Any) -> bytes: ...

    def sign(self, key: Any, data: bytes) -> bytes: ...

    def verify(self, public_key: bytes, data: bytes, signature: bytes) -> bool: ...

    def generate_encryption_key(self) -> Any: ...

    def encrypt(self, key: Any, plaintext: bytes) -> Tuple[bytes, bytes]: ...

    def decrypt(self, key: Any, nonce: bytes, ciphertext: bytes) -> bytes: ...


class BiometricProvider(Protocol):
    """Platform authenticator (WebAuthn style)."""

    def platform_authenticator_available(self) -> bool: ...

    def test_capabilities(self) -> bool: ...


class StorageProvider(Protocol):
    """Key-value storage areas."""

    @property
    def local(self) -> Optional[KeyValueStore]: ...

    @property
    def session(self) -> Optional[KeyValueStore]: ...


# ============================================================================
# LOCAL PROVIDERS
# ============================================================================

class LocalCryptoProvider:
    """
    In-process crypto provider on the `cryptography` package.

    Signing keys are ECDSA P-256 key pairs (SHA-256 signatures, public half
    exported as an uncompressed point). Encryption is AES-256-GCM with a
    fresh 96-bit nonce per message. Digests and randomness come from
    hashlib and secrets.
    """

    ENCRYPTION_KEY_BITS = 256
    NONCE_BYTES = 12

    def random_bytes(self, length: int) -> bytes:
        return secrets.token_bytes(length)

    def digest(self, data: bytes, algorithm: str = "sha256") -> bytes:
        try:
            return hashlib.new(algorithm.replace("-", "").lower(), data).digest()
        except ValueError as e:
            raise CapabilityUnavailable(f"Digest algorithm not supported: {algorithm}") from e

    def generate_signing_key(self) -> ec.EllipticCurvePrivateKey:
        return ec.generate_private_key(ec.SECP256R1())

    def public_key_bytes(self, key: ec.EllipticCurvePrivateKey) -> bytes:
        return key.public_key().public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.UncompressedPoint,
        )

    def sign(self, key: ec.EllipticCurvePrivateKey, data: bytes) -> bytes:
        return key.sign(data, ec.ECDSA(hashes.SHA256()))

    def verify(self, public_key: bytes, data: bytes, signature: bytes) -> bool:
        verifier = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), public_key)
        try:
            verifier.verify(signature, data, ec.ECDSA(hashes.SHA256()))
        except InvalidSignature:
            return False
        return True

    def generate_encryption_key(self) -> bytes:
        return AESGCM.generate_key(bit_length=self.ENCRYPTION_KEY_BITS)

    def encrypt(self, key: bytes, plaintext: bytes) -> Tuple[bytes, bytes]:
        nonce = secrets.token_bytes(self.NONCE_BYTES)
        return nonce, AESGCM(key).encrypt(nonce, plaintext, None)

    def decrypt(self, key: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
        return AESGCM(key).decrypt(nonce, ciphertext, None)


@dataclass
class MemoryStorageProvider:
    """Storage provider with in-memory local and session areas."""
    local: Optional[KeyValueStore] = None
    session: Optional[KeyValueStore] = None

    @classmethod
    def create(cls) -> "MemoryStorageProvider":
        return cls(local=MemoryStore(), session=MemoryStore())


# ============================================================================
# ENVIRONMENT FACTS
# ============================================================================

class _Facts(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class DeviceInfo(_Facts):
    """Device/platform metadata (navigator and screen)."""
    user_agent: str = ""
    language: str = ""
    platform: str = ""
    timezone: str = ""
    hardware_concurrency: int = 0
    screen: Dict[str, int] = Field(default_factory=dict)
    features: Dict[str, bool] = Field(default_factory=dict)


class DocumentInfo(_Facts):
    """Document and response metadata observed by the page."""
    scheme: str = "https"
    hostname: str = ""
    is_secure_context: bool = False
    cookies_enabled: bool = False
    # Header names are matched case-insensitively
    headers: Dict[str, str] = Field(default_factory=dict)
    csp_policies: List[str] = Field(default_factory=list)
    text_fragments: List[str] = Field(default_factory=list)
    ui_surfaces: List[str] = Field(default_factory=list)
    isolated_storage: bool = False

    @property
    def is_extension(self) -> bool:
        return self.scheme in ("chrome-extension", "moz-extension")

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


class TransportInfo(_Facts):
    """Network/transport metadata."""
    protocol: str = ""
    hostname: str = ""
    certificate_valid: Optional[bool] = None
    certificate_fingerprints: List[str] = Field(default_factory=list)


class PrivacyInfo(_Facts):
    """What the application collects and what the user can do about it."""
    collected_data: List[str] = Field(default_factory=list)
    exportable_data: List[str] = Field(default_factory=list)
    deletable_data: List[str] = Field(default_factory=list)
    privacy_features: List[str] = Field(default_factory=list)
    consent_recorded: bool = False


class ThreatSignals(_Facts):
    """Behavioral and request signals for threat detection."""
    user_agent: str = ""
    event_timestamps_ms: List[int] = Field(default_factory=list)
    user_input: List[str] = Field(default_factory=list)
    client_ip: Optional[str] = None
    indicators: List[str] = Field(default_factory=list)
    emerging_patterns: List[str] = Field(default_factory=list)
    request_frequencies: List[float] = Field(default_factory=list)
    behavior_scores: List[float] = Field(default_factory=list)
    feed_validated: bool = True


class ComplianceControls(_Facts):
    """Attested control identifiers (e.g. "CC6.1") mapped to their status."""
    controls: Dict[str, bool] = Field(default_factory=dict)


class EnvironmentFacts(_Facts):
    """Wire shape for facts sent alongside a start request."""
    device: Optional[DeviceInfo] = None
    document: Optional[DocumentInfo] = None
    transport: Optional[TransportInfo] = None
    privacy: Optional[PrivacyInfo] = None
    threat: Optional[ThreatSignals] = None
    compliance: Optional[ComplianceControls] = None


# ============================================================================
# HANDLE
# ============================================================================

@dataclass
class CapabilityHandle:
    """Everything the probes may consult during one run."""
    crypto: Optional[CryptoProvider] = None
    biometric: Optional[BiometricProvider] = None
    storage: Optional[StorageProvider] = None
    device: Optional[DeviceInfo] = None
    document: Optional[DocumentInfo] = None
    transport: Optional[TransportInfo] = None
    privacy: Optional[PrivacyInfo] = None
    threat: Optional[ThreatSignals] = None
    compliance: Optional[ComplianceControls] = None

    @classmethod
    def local(cls, facts: Optional[EnvironmentFacts] = None, **providers) -> "CapabilityHandle":
        """
        Handle with in-process crypto and storage providers.

        Args:
            facts: Optional environment facts
            **providers: Overrides for crypto/biometric/storage
        """
        facts = facts or EnvironmentFacts()
        return cls(
            crypto=providers.get("crypto", LocalCryptoProvider()),
            biometric=providers.get("biometric"),
            storage=providers.get("storage", MemoryStorageProvider.create()),
            device=facts.device,
            document=facts.document,
            transport=facts.transport,
            privacy=facts.privacy,
            threat=facts.threat,
            compliance=facts.compliance,
        )

    def with_facts(self, facts: EnvironmentFacts) -> "CapabilityHandle":
        """Copy of this handle with any supplied facts replaced."""
        return CapabilityHandle(
            crypto=self.crypto,
            biometric=self.biometric,
            storage=self.storage,
            device=facts.device or self.device,
            document=facts.document or self.document,
            transport=facts.transport or self.transport,
            privacy=facts.privacy or self.privacy,
            threat=facts.threat or self.threat,
            compliance=facts.compliance or self.compliance,
        )


__all__ = [
    "CapabilityUnavailable",
    "resolve",
    "try_capability",
    "CryptoProvider",
    "BiometricProvider",
    "StorageProvider",
    "LocalCryptoProvider",
    "MemoryStorageProvider",
    "DeviceInfo",
    "DocumentInfo",
    "TransportInfo",
    "PrivacyInfo",
    "ThreatSignals",
    "ComplianceControls",
    "EnvironmentFacts",
    "CapabilityHandle",
]

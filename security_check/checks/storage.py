# ============================================================================
# STORAGE CHECK
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Checks - Key-value storage probe
# PURPOSE: Verify storage areas work and can hold encrypted values
# CREATED: 19 OCT 2026
# ============================================================================
"""
Storage Check

Round-trips a probe value through the session and local areas, then
stores an encrypted value in local storage and reads it back. Probe keys
are always removed, even when a step fails.
"""

import base64
import logging
from typing import Optional

from core.contracts import CheckKind
from core.storage import KeyValueStore
from security_check.capabilities import CapabilityHandle, CryptoProvider, try_capability
from security_check.checks.platform import _encryption_round_trip
from security_check.core import CheckDetail, SecurityCheckPlugin
from security_check.registry import register_check

logger = logging.getLogger(__name__)


def _round_trip(store: Optional[KeyValueStore], key: str, value: str) -> bool:
    if store is None:
        return False
    try:
        store.set_item(key, value)
        return store.get_item(key) == value
    finally:
        store.remove_item(key)


@register_check(timeout_ms=3000)
class StorageCheck(SecurityCheckPlugin):
    """Storage availability and encrypted persistence."""

    kind = CheckKind.STORAGE

    SESSION_PROBE_KEY = "__security_check_session_probe__"
    LOCAL_PROBE_KEY = "__security_check_local_probe__"
    SECURE_PROBE_KEY = "__security_check_secure_probe__"
    PROBE_VALUE = "probe_value"
    SECURE_PLAINTEXT = b"secure-storage-probe"

    async def probe(self, handle: CapabilityHandle) -> CheckDetail:
        storage = handle.storage
        if storage is None:
            return self.unavailable("Storage provider not available")

        has_session_storage = _round_trip(storage.session, self.SESSION_PROBE_KEY, self.PROBE_VALUE)
        has_local_storage = _round_trip(storage.local, self.LOCAL_PROBE_KEY, self.PROBE_VALUE)

        has_encrypted_storage = False
        has_secure_storage = False
        if handle.crypto is not None:
            has_encrypted_storage = await _encryption_round_trip(handle.crypto, self.SECURE_PLAINTEXT)
            if has_encrypted_storage and has_local_storage:
                has_secure_storage = await self._sealed_round_trip(handle.crypto, storage.local)

        if not has_secure_storage:
            logger.info("Encrypted persistence unavailable")

        return self.detail(
            has_secure_storage=has_secure_storage,
            has_encrypted_storage=has_encrypted_storage,
            has_session_storage=has_session_storage,
            has_local_storage=has_local_storage,
            error=None if has_secure_storage else "Encrypted storage not available",
        )

    async def _sealed_round_trip(self, crypto: CryptoProvider, store: KeyValueStore) -> bool:
        """Encrypt, persist, read back and decrypt one value."""
        ok, key = await try_capability(crypto.generate_encryption_key)
        if not ok:
            return False
        ok, sealed = await try_capability(crypto.encrypt, key, self.SECURE_PLAINTEXT)
        if not ok:
            return False
        nonce, ciphertext = sealed
        encoded = base64.b64encode(nonce + ciphertext).decode("ascii")

        try:
            store.set_item(self.SECURE_PROBE_KEY, encoded)
            stored = store.get_item(self.SECURE_PROBE_KEY)
        finally:
            store.remove_item(self.SECURE_PROBE_KEY)

        if stored != encoded:
            return False
        raw = base64.b64decode(stored)
        ok, opened = await try_capability(
            crypto.decrypt, key, raw[:len(nonce)], raw[len(nonce):]
        )
        return ok and opened == self.SECURE_PLAINTEXT


__all__ = ["StorageCheck"]

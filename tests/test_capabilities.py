# ============================================================================
# CAPABILITY & STORAGE TESTS
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Tests - Capability handle, local providers, key-value store
# PURPOSE: Verify capability probing semantics and fact handling
# CREATED: 19 OCT 2026
# ============================================================================
"""
Capability & Storage Tests

Run with:
    pytest tests/test_capabilities.py -v
"""

import asyncio
import json
import logging

import pytest
from cryptography.exceptions import InvalidTag

from core.logging import (
    ComponentType,
    StructuredFormatter,
    get_current_context,
    get_logger,
    log_checkpoint,
    log_context,
)
from core.storage import MemoryStore
from security_check.capabilities import (
    CapabilityHandle,
    CapabilityUnavailable,
    DocumentInfo,
    EnvironmentFacts,
    LocalCryptoProvider,
    TransportInfo,
    try_capability,
)


class TestTryCapability:

    def test_sync_value(self):
        ok, value = asyncio.run(try_capability(lambda n: n * 2, 21))
        assert (ok, value) == (True, 42)

    def test_async_value(self):
        async def fetch():
            return "ready"

        assert asyncio.run(try_capability(fetch)) == (True, "ready")

    def test_unavailable_is_reported(self):
        def missing():
            raise CapabilityUnavailable("no cipher")

        assert asyncio.run(try_capability(missing)) == (False, None)

    def test_other_errors_propagate(self):
        def broken():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            asyncio.run(try_capability(broken))


class TestLocalCryptoProvider:

    def test_verify_from_public_key_only(self):
        crypto = LocalCryptoProvider()
        key = crypto.generate_signing_key()
        public_key = crypto.public_key_bytes(key)
        signature = crypto.sign(key, b"payload")

        # Uncompressed P-256 point
        assert len(public_key) == 65
        assert public_key[0] == 0x04
        assert crypto.verify(public_key, b"payload", signature) is True
        assert crypto.verify(public_key, b"tampered", signature) is False

    def test_other_key_rejected(self):
        crypto = LocalCryptoProvider()
        signature = crypto.sign(crypto.generate_signing_key(), b"payload")
        other = crypto.public_key_bytes(crypto.generate_signing_key())

        assert crypto.verify(other, b"payload", signature) is False

    def test_digest(self):
        crypto = LocalCryptoProvider()
        assert len(crypto.digest(b"x", "SHA-256")) == 32

        with pytest.raises(CapabilityUnavailable):
            crypto.digest(b"x", "not-a-hash")

    def test_encryption_round_trip(self):
        crypto = LocalCryptoProvider()
        key = crypto.generate_encryption_key()

        nonce, ciphertext = crypto.encrypt(key, b"secret payload")
        _, again = crypto.encrypt(key, b"secret payload")

        assert len(key) == 32
        assert len(nonce) == 12
        assert ciphertext != again
        assert crypto.decrypt(key, nonce, ciphertext) == b"secret payload"

    def test_tampered_ciphertext_rejected(self):
        crypto = LocalCryptoProvider()
        key = crypto.generate_encryption_key()
        nonce, ciphertext = crypto.encrypt(key, b"secret payload")
        tampered = bytes([ciphertext[0] ^ 1]) + ciphertext[1:]

        with pytest.raises(InvalidTag):
            crypto.decrypt(key, nonce, tampered)


class TestCapabilityHandle:

    def test_local_defaults(self):
        handle = CapabilityHandle.local()

        assert isinstance(handle.crypto, LocalCryptoProvider)
        assert handle.storage.local is not None
        assert handle.biometric is None
        assert handle.document is None

    def test_with_facts_replaces_only_supplied(self):
        base = CapabilityHandle.local(EnvironmentFacts(
            document=DocumentInfo(hostname="example.org"),
            transport=TransportInfo(protocol="h2"),
        ))

        updated = base.with_facts(EnvironmentFacts(document=DocumentInfo(hostname="other.org")))

        assert updated.document.hostname == "other.org"
        assert updated.transport.protocol == "h2"
        assert updated.crypto is base.crypto
        assert base.document.hostname == "example.org"

    def test_facts_from_wire(self):
        facts = EnvironmentFacts.model_validate({
            "document": {"headers": {"X-Frame-Options": "DENY"}, "unknown": 1},
        })

        assert facts.document.header("x-frame-options") == "DENY"
        assert facts.document.header("Referrer-Policy") is None

    def test_extension_scheme(self):
        assert DocumentInfo(scheme="chrome-extension").is_extension is True
        assert DocumentInfo(scheme="https").is_extension is False


class TestMemoryStore:

    def test_items(self):
        store = MemoryStore({"a": "1"})
        store.set_item("b", "2")
        store.remove_item("a")
        store.remove_item("missing")

        assert store.get_item("a") is None
        assert store.get_item("b") == "2"
        assert "b" in store
        assert len(store) == 1


class TestLogContext:

    def test_nested_context_merges(self):
        with log_context(run_id="run-1"):
            with log_context(check="tls", attempt=2):
                ctx = get_current_context()
                assert ctx.to_dict() == {"run_id": "run-1", "check": "tls", "attempt": 2}
            assert get_current_context().check is None

        assert get_current_context().run_id is None

    def test_concurrent_tasks_keep_their_own_context(self):
        seen = {}

        async def run(run_id, pause):
            with log_context(run_id=run_id):
                await asyncio.sleep(pause)
                with log_context(check="tls"):
                    await asyncio.sleep(pause)
                    seen[run_id] = get_current_context().run_id
                await asyncio.sleep(pause)
                return get_current_context().run_id

        async def scenario():
            return await asyncio.gather(run("run-a", 0.01), run("run-b", 0.005))

        after = asyncio.run(scenario())

        assert seen == {"run-a": "run-a", "run-b": "run-b"}
        assert after == ["run-a", "run-b"]

    def test_record_carries_context_at_log_time(self, caplog):
        logger = get_logger("tests.logging", ComponentType.CHECK)
        caplog.set_level(logging.INFO, logger="tests.logging")

        with log_context(run_id="run-7", check="hsm", attempt=2):
            logger.info("Probe raised, retrying", extra={"duration_ms": 12})

        record = caplog.records[-1]
        assert record.log_context.run_id == "run-7"
        assert record.log_context.component == "check"
        assert record.data == {"duration_ms": 12}

        payload = json.loads(StructuredFormatter(include_source=False).format(record))
        assert payload["run_id"] == "run-7"
        assert payload["check"] == "hsm"
        assert payload["attempt"] == 2
        assert payload["data"] == {"duration_ms": 12}

    def test_checkpoint_through_context_logger(self, caplog):
        logger = get_logger("tests.checkpoint")
        caplog.set_level(logging.INFO, logger="tests.checkpoint")

        with log_context(run_id="run-9"):
            log_checkpoint("security_check_started", {"checks": ["tls"]}, logger=logger)

        record = caplog.records[-1]
        assert record.getMessage() == "CHECKPOINT: security_check_started"
        assert record.log_context.run_id == "run-9"
        assert record.data == {"checkpoint": "security_check_started", "checks": ["tls"]}

# ============================================================================
# KEY-VALUE STORE CONTRACT
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Narrow key-value interface
# PURPOSE: Shared contract for settings persistence and storage probes
# CREATED: 19 OCT 2026
# ============================================================================
"""
Key-Value Store Contract

Both the configuration loader and the storage probe talk to key-value
areas (extension local/session storage, a settings store) through the
same three-method interface. The orchestrator never owns a storage
format of its own.
"""

from typing import Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """String key-value area (localStorage-style)."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class MemoryStore:
    """In-process KeyValueStore backed by a dict."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: str) -> bool:
        return key in self._items


__all__ = [
    "KeyValueStore",
    "MemoryStore",
]

"""
compose_py.runtime.storage — the key/value collaborator handlers persist into.

Generated entry points never touch storage themselves; they hand the host's
Storage to handlers through the Context. The only contract required of a
host backend is `save(namespace, key, value)` and
`load(namespace, key) -> Optional[bytes]` over byte strings.

MemoryStorage is the in-process backend for local runs and tests.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterator, Optional, Protocol, Tuple, runtime_checkable

MAX_KEY_BYTES = 256
MAX_VALUE_BYTES = 128 * 1024


class StorageError(ValueError):
    """Invalid key/value handed to a storage backend."""


@runtime_checkable
class Storage(Protocol):
    def save(self, namespace: bytes, key: bytes, value: bytes) -> None: ...
    def load(self, namespace: bytes, key: bytes) -> Optional[bytes]: ...


def _check_key(namespace: bytes, key: bytes) -> None:
    if not isinstance(namespace, (bytes, bytearray)) or not isinstance(key, (bytes, bytearray)):
        raise StorageError("storage namespace and key must be bytes")
    if len(key) == 0:
        raise StorageError("storage key must be non-empty")
    if len(namespace) + len(key) > MAX_KEY_BYTES:
        raise StorageError(f"storage key too long (>{MAX_KEY_BYTES} bytes with namespace)")


def _check_value(value: bytes) -> None:
    if not isinstance(value, (bytes, bytearray)):
        raise StorageError("storage value must be bytes")
    if len(value) > MAX_VALUE_BYTES:
        raise StorageError(f"storage value too large (>{MAX_VALUE_BYTES} bytes)")


class MemoryStorage:
    """Thread-safe in-memory backend keyed by (namespace, key)."""

    def __init__(self) -> None:
        self._store: Dict[Tuple[bytes, bytes], bytes] = {}
        self._lock = threading.RLock()

    def save(self, namespace: bytes, key: bytes, value: bytes) -> None:
        _check_key(namespace, key)
        _check_value(value)
        with self._lock:
            self._store[(bytes(namespace), bytes(key))] = bytes(value)

    def load(self, namespace: bytes, key: bytes) -> Optional[bytes]:
        _check_key(namespace, key)
        with self._lock:
            return self._store.get((bytes(namespace), bytes(key)))

    def items(self, namespace: Optional[bytes] = None) -> Iterator[Tuple[bytes, bytes, bytes]]:
        """(namespace, key, value) triples in sorted order, optionally for one namespace."""
        with self._lock:
            snapshot = sorted(self._store.items())
        for (ns, key), value in snapshot:
            if namespace is None or ns == namespace:
                yield ns, key, value

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


__all__ = ["Storage", "StorageError", "MemoryStorage", "MAX_KEY_BYTES", "MAX_VALUE_BYTES"]

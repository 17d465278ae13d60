from __future__ import annotations

import pytest

from compose_py.runtime import MemoryStorage, Storage, StorageError, make_context


def test_namespaces_keep_components_apart() -> None:
    ctx = make_context("alice")
    vault, admin = ctx.scoped("vault"), ctx.scoped("admin")
    vault.save(b"owner", "alice")
    admin.save(b"owner", b"root")

    assert vault.load(b"owner") == b"alice"
    assert admin.load(b"owner") == b"root"
    assert ctx.load(b"owner") is None

    store = ctx.storage
    assert isinstance(store, Storage)
    assert len(store) == 2
    assert list(store.items()) == [(b"admin", b"owner", b"root"), (b"vault", b"owner", b"alice")]
    assert list(store.items(b"vault")) == [(b"vault", b"owner", b"alice")]


def test_overwrite_keeps_one_entry() -> None:
    store = MemoryStorage()
    store.save(b"ns", b"k", b"1")
    store.save(b"ns", b"k", b"2")
    assert len(store) == 1
    assert store.load(b"ns", b"k") == b"2"


@pytest.mark.parametrize(
    "namespace,key,value",
    [
        ("ns", b"k", b"v"),
        (b"ns", b"", b"v"),
        (b"ns", b"k" * 300, b"v"),
        (b"ns", b"k", "v"),
        (b"ns", b"k", b"v" * (128 * 1024 + 1)),
    ],
)
def test_bad_keys_and_values(namespace, key, value) -> None:
    with pytest.raises(StorageError):
        MemoryStorage().save(namespace, key, value)

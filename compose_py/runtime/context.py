"""
compose_py.runtime.context — what a handler sees of the outside world.

Env and MessageInfo are pure data supplied by the host; Context bundles them
with the Storage backend and the namespace of the component currently being
dispatched to. Dispatch re-scopes the Context per component, so a handler's
`ctx.save` / `ctx.load` land under its own namespace without the handler
spelling it out.

Queries receive a Context whose `info` is None (there is no sender).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .storage import MemoryStorage, Storage


class ContextError(ValueError):
    """Invalid Env/MessageInfo field."""


def _require_non_negative_int(name: str, v: Any) -> int:
    if not isinstance(v, int) or isinstance(v, bool):
        raise ContextError(f"{name} must be int, got {type(v).__name__}")
    if v < 0:
        raise ContextError(f"{name} must be non-negative, got {v}")
    return v


def as_bytes(value: Union[str, bytes, bytearray, memoryview]) -> bytes:
    """str → utf-8 bytes; bytes-like → immutable bytes."""
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise ContextError(f"cannot convert type {type(value).__name__} to bytes")


@dataclass(frozen=True)
class Env:
    """
    Per-block environment.

    Fields
    ------
    height:    Block height.
    time:      Consensus timestamp (seconds).
    chain_id:  Chain identifier string.
    contract:  Address of the contract being executed.
    """

    height: int = 0
    time: int = 0
    chain_id: str = "local"
    contract: str = "contract"

    def __post_init__(self) -> None:
        _require_non_negative_int("height", self.height)
        _require_non_negative_int("time", self.time)

    def to_dict(self) -> Dict[str, Any]:
        return {"height": self.height, "time": self.time, "chain_id": self.chain_id, "contract": self.contract}


@dataclass(frozen=True)
class MessageInfo:
    """Sender of the current init/execute and the funds attached to it."""

    sender: str
    funds: Tuple[Tuple[str, int], ...] = ()

    def __post_init__(self) -> None:
        funds = tuple((str(d), _require_non_negative_int("funds", a)) for d, a in self.funds)
        object.__setattr__(self, "funds", funds)

    def amount(self, denom: str) -> int:
        return sum(a for d, a in self.funds if d == denom)

    def to_dict(self) -> Dict[str, Any]:
        return {"sender": self.sender, "funds": [list(f) for f in self.funds]}


@dataclass(frozen=True)
class Context:
    env: Env = field(default_factory=Env)
    info: Optional[MessageInfo] = None
    storage: Storage = field(default_factory=MemoryStorage)
    namespace: bytes = b""

    # ---- scoping ----

    def scoped(self, namespace: Union[str, bytes]) -> "Context":
        return replace(self, namespace=as_bytes(namespace))

    def read_only(self) -> "Context":
        return replace(self, info=None)

    # ---- storage shortcuts (namespaced) ----

    def save(self, key: Union[str, bytes], value: Union[str, bytes]) -> None:
        self.storage.save(self.namespace, as_bytes(key), as_bytes(value))

    def load(self, key: Union[str, bytes]) -> Optional[bytes]:
        return self.storage.load(self.namespace, as_bytes(key))

    @property
    def sender(self) -> Optional[str]:
        return self.info.sender if self.info is not None else None


def make_context(
    sender: Optional[str] = None,
    *,
    storage: Optional[Storage] = None,
    env: Optional[Union[Env, Mapping[str, Any]]] = None,
    funds: Optional[List[Tuple[str, int]]] = None,
) -> Context:
    """Convenience constructor for hosts and tests."""
    if isinstance(env, Mapping):
        env = Env(**dict(env))
    info = MessageInfo(sender=sender, funds=tuple(funds or ())) if sender is not None else None
    return Context(env=env or Env(), info=info, storage=storage if storage is not None else MemoryStorage())


__all__ = ["ContextError", "Env", "MessageInfo", "Context", "as_bytes", "make_context"]

"""
compose_py.runtime — what composed contracts run against.

Convenience re-exports live here so handler code can do:

    from compose_py.runtime import Response, Event, Context

Entry points and dispatch (compose_py.runtime.entry / .dispatch) are imported
explicitly by generated modules and hosts; they pull in jsonschema and the
artifact codec, which handler modules never need.
"""

from __future__ import annotations

from ..version import __version__
from .context import Context, ContextError, Env, MessageInfo, as_bytes, make_context
from .error import BindingError, ContractError, DeserializeError, HandlerError, SerializeError
from .response import BLOCK_SIZE, Event, Response, pad_response, space_pad
from .storage import MemoryStorage, Storage, StorageError

__all__ = [
    "__version__",
    "Context",
    "ContextError",
    "Env",
    "MessageInfo",
    "as_bytes",
    "make_context",
    "ContractError",
    "DeserializeError",
    "SerializeError",
    "BindingError",
    "HandlerError",
    "BLOCK_SIZE",
    "Event",
    "Response",
    "space_pad",
    "pad_response",
    "Storage",
    "StorageError",
    "MemoryStorage",
]

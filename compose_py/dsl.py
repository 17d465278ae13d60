"""
compose_py.dsl — the decorators contract authors write.

The compiler reads these markers statically from source and never imports
the author's module, so at runtime every decorator here is a no-op apart from
recording its arguments on `__compose__` (handy for hosts and debugging).
Both bare and called forms work:

    @component
    class Vault: ...

    @component(path="vault", skip=["query"])
    class Vault: ...

Handlers are plain functions taking `ctx` first; they are looked up on the
component class and called without an instance.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, TypeVar

T = TypeVar("T")

ATTR = "__compose__"


def _own(obj: Any) -> List[Dict[str, Any]]:
    # a subclass must not pick up its base class markers
    return list(getattr(obj, "__dict__", {}).get(ATTR, ()))


def _record(target: T, marker: str, args: Dict[str, Any]) -> T:
    markers = _own(target)
    markers.append({"marker": marker, **args})
    setattr(target, ATTR, markers)
    return target


def _marker(name: str) -> Callable[..., Any]:
    def decorator(target: Optional[Any] = None, **kwargs: Any) -> Any:
        if target is not None and callable(target) and not kwargs:
            return _record(target, name, {})

        def wrap(obj: T) -> T:
            return _record(obj, name, kwargs)

        return wrap

    decorator.__name__ = name
    decorator.__qualname__ = name
    decorator.__doc__ = f"Mark a declaration with '@{name}'."
    return decorator


# ---- declarations ----

interface = _marker("interface")
component = _marker("component")
contract = _marker("contract")
entry = _marker("entry")

# ---- handlers ----

init = _marker("init")
execute = _marker("execute")
handle = _marker("handle")
query = _marker("query")
execute_guard = _marker("execute_guard")


def markers_of(obj: Any) -> List[Dict[str, Any]]:
    """Markers recorded on `obj` itself, innermost decorator first."""
    return _own(obj)


# Annotation helper for 128-bit unsigned amounts carried as decimal strings.
Uint128 = str

__all__ = [
    "interface",
    "component",
    "contract",
    "entry",
    "init",
    "execute",
    "handle",
    "query",
    "execute_guard",
    "markers_of",
    "Uint128",
]

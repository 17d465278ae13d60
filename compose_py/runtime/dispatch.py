"""
compose_py.runtime.dispatch — the dispatch table, bound to real handlers.

A Dispatcher pairs an Artifact's routes with the objects that implement
them. Default routes resolve against `components[name]`; custom routes
resolve against `overrides[name]` and nowhere else, so an author-supplied
implementation is never silently replaced by a component default. Every
handler is resolved up front: a missing implementation fails at bind time,
not on the first message that needs it.

Handlers are called as `fn(ctx, *fields)` in declaration order, with `ctx`
scoped to the owning component's namespace. Anything a handler raises comes
back as HandlerError tagged with its error source.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..attrs import Role
from ..compiler.synth import TARGET_CUSTOM, Artifact, Route
from ..compiler.typemap import BytesShape, bytes_shape
from .context import Context
from .error import BindingError, DeserializeError, HandlerError

log = logging.getLogger(__name__)

Handler = Callable[..., Any]


@dataclass(frozen=True)
class Message:
    """A decoded, schema-checked tagged message."""

    kind: Role
    key: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {self.key: dict(self.fields)}


def _decode(value: Any, shape: BytesShape, name: str) -> Any:
    step, rest = shape[0], shape[1:]
    if step == "optional":
        return None if value is None else _decode(value, rest, name)
    if step == "items":
        return [_decode(v, rest, name) for v in value] if isinstance(value, list) else value
    if not isinstance(value, str):
        return value
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DeserializeError(f"field '{name}' is not valid base64", context={"field": name}) from exc


def _coerce(value: Any, annotation: str, name: str) -> Any:
    shape = bytes_shape(annotation)
    return value if shape is None else _decode(value, shape, name)


class Dispatcher:
    def __init__(
        self,
        artifact: Artifact,
        components: Mapping[str, Any],
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.artifact = artifact
        self._components = dict(components)
        self._overrides = dict(overrides or {})
        self._table: Dict[Tuple[Role, str], Tuple[Route, Handler]] = {}
        for route in artifact.routes:
            self._table[(route.kind, route.key)] = (route, self._resolve(route.component, route.method, route.target))
        self._guards = [
            (g, self._resolve(g.component, g.method, g.target)) for g in artifact.guards
        ]
        log.debug("bound %s: %d routes, %d guards", artifact.name, len(self._table), len(self._guards))

    # ---- binding ----

    def _resolve(self, component: str, method: str, target: str) -> Handler:
        custom = target == TARGET_CUSTOM
        what = "custom implementation" if custom else "implementation"
        source = self._overrides if custom else self._components
        impl = source.get(component)
        ctx = {"component": component, "method": method, "target": target}
        if impl is None:
            raise BindingError(f"no {what} bound for component '{component}'", context=ctx)
        fn = getattr(impl, method, None)
        if not callable(fn):
            raise BindingError(f"{what} for '{component}' has no callable '{method}'", context=ctx)
        return fn

    # ---- views ----

    def keys(self, kind: Role) -> List[str]:
        return [key for (k, key) in self._table if k is kind]

    def route_of(self, kind: Role, key: str) -> Optional[Route]:
        entry = self._table.get((kind, key))
        return entry[0] if entry else None

    # ---- calling ----

    def _call(self, fn: Handler, ctx: Context, args: Sequence[Any], *, source: str, what: str) -> Any:
        try:
            return fn(ctx, *args)
        except HandlerError:
            raise
        except Exception as exc:
            raise HandlerError(
                f"{what} failed: {exc}",
                source=source,
                error_type=self.artifact.error,
                cause=exc,
                context={"handler": what},
            ) from exc

    @staticmethod
    def _args(route: Route, fields: Mapping[str, Any]) -> List[Any]:
        out: List[Any] = []
        for name, annotation in route.fields:
            if name not in fields:
                raise DeserializeError(f"missing field '{name}' for '{route.key}'", context={"key": route.key, "field": name})
            out.append(_coerce(fields[name], annotation, name))
        return out

    def dispatch(self, ctx: Context, message: Message) -> Any:
        """Route one execute/query message to its handler; return the handler's result."""
        entry = self._table.get((message.kind, message.key))
        if entry is None or message.kind is Role.INIT:
            raise DeserializeError(
                f"unknown {message.kind.value} variant '{message.key}'",
                context={"key": message.key, "expected": sorted(self.keys(message.kind))},
            )
        route, fn = entry
        log.debug("dispatch %s '%s' → %s.%s (%s)", route.kind.value, route.key, route.component, route.method, route.target)
        return self._call(
            fn, ctx.scoped(route.namespace), self._args(route, message.fields),
            source=route.error_source, what=f"{route.component}.{route.method}",
        )

    def guard(self, ctx: Context, message: Message) -> None:
        """Run every execute guard, in composition order, before an execute dispatch."""
        for g, fn in self._guards:
            self._call(fn, ctx.scoped(g.namespace), [message], source=g.error_source, what=f"{g.component}.{g.method}")

    def initialize(self, ctx: Context, payload: Mapping[str, Any]) -> List[Tuple[Route, Any]]:
        """Call each component's init in composition order with its own block of `payload`."""
        results: List[Tuple[Route, Any]] = []
        for route in self.artifact.routes_for(Role.INIT):
            _, fn = self._table[(Role.INIT, route.key)]
            body = payload.get(route.key) or {}
            results.append(
                (
                    route,
                    self._call(
                        fn, ctx.scoped(route.namespace), self._args(route, body),
                        source=route.error_source, what=f"{route.component}.{route.method}",
                    ),
                )
            )
        return results


__all__ = ["Handler", "Message", "Dispatcher"]

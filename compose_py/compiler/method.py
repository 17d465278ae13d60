"""
compose_py.compiler.method — classify handler functions into Methods.

`classify` turns one function definition found inside an interface or
component body into a uniform `Method` view, whatever its origin. It owns no
state: findings go into the caller's sink and classification carries on with
whatever could be recovered, so one malformed handler never hides the next.

Signature rules
---------------
- synchronous `def` only
- first positional parameter is the execution context (never `self`)
- no *args / **kwargs / keyword-only / positional-only / defaults
- every message parameter is annotated; wire fields drop leading underscores
- Init and Execute return `Response`, ExecuteGuard returns `None`,
  Query returns any annotated value
- an ExecuteGuard takes exactly (ctx, message)
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .. import diagnostics as D
from ..attrs import RESPONSE_TYPE, Marker, Placement, Role, RULES, lookup
from ..diagnostics import DiagnosticSink, Location
from .model import Interface, Method, Origin, Param, ReturnType
from .names import field_name
from .parse import decorator_name

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]

_ROLE_MARKERS = ", ".join(f"@{m.value}" for m in (Marker.INIT, Marker.EXECUTE, Marker.QUERY, Marker.EXECUTE_GUARD))


@dataclass(frozen=True)
class Context:
    """Where a function sits: an interface body, or a component body plus the interfaces it implements."""

    owner: str
    in_interface: bool = False
    error: Optional[str] = None
    interfaces: Tuple[Interface, ...] = field(default=())

    @classmethod
    def interface(cls, name: str, error: Optional[str] = None) -> "Context":
        return cls(owner=name, in_interface=True, error=error)

    @classmethod
    def component(cls, name: str, error: Optional[str] = None, interfaces: Sequence[Interface] = ()) -> "Context":
        return cls(owner=name, in_interface=False, error=error, interfaces=tuple(interfaces))


def _annotation(node: Optional[ast.expr]) -> Optional[str]:
    return None if node is None else ast.unparse(node)


def _is_response(annotation: Optional[str]) -> bool:
    return annotation is not None and annotation.strip("'\"").rsplit(".", 1)[-1] == RESPONSE_TYPE


def _roles(fn: FunctionNode, sink: DiagnosticSink) -> List[Tuple[Role, ast.expr]]:
    roles: List[Tuple[Role, ast.expr]] = []
    for deco in fn.decorator_list:
        name = decorator_name(deco) or "<expr>"
        marker = lookup(name)
        if marker is None:
            sink.push_for(deco, f"Unrecognized attribute '@{name}' on '{fn.name}'", D.UNKNOWN_ATTRIBUTE)
            continue
        rule = RULES[marker]
        if rule.placement is not Placement.METHOD:
            sink.push_for(deco, f"'@{marker.value}' cannot be applied to method '{fn.name}'", D.MISPLACED_ATTRIBUTE)
            continue
        if isinstance(deco, ast.Call) and (deco.args or deco.keywords):
            sink.push_for(deco, f"'@{marker.value}' takes no arguments", D.BAD_ARGUMENT)
        roles.append((rule.role, deco))  # type: ignore[arg-type]
    return roles


def _params(fn: FunctionNode, role: Role, sink: DiagnosticSink) -> Tuple[Param, ...]:
    args = fn.args
    if args.posonlyargs or args.vararg or args.kwonlyargs or args.kwarg:
        sink.push_for(fn, f"'{fn.name}' may only take plain positional parameters", D.BAD_SIGNATURE)
    if args.defaults:
        sink.push_for(fn, f"'{fn.name}': parameter defaults are not supported", D.BAD_SIGNATURE)
    positional = list(args.args)
    if not positional:
        sink.push_for(fn, f"'{fn.name}' must take the execution context as its first parameter", D.BAD_SIGNATURE)
        return ()
    first, rest = positional[0], positional[1:]
    if first.arg in ("self", "cls"):
        sink.push_for(first, f"Method definition cannot contain `{first.arg}` ('{fn.name}')", D.BAD_SIGNATURE)

    if role is Role.EXECUTE_GUARD:
        if len(rest) != 1:
            sink.push_for(fn, f"execute_guard '{fn.name}' must take exactly (ctx, message)", D.BAD_SIGNATURE)
        return ()

    out: List[Param] = []
    seen: Dict[str, str] = {}
    for a in rest:
        wire = field_name(a.arg)
        ann = _annotation(a.annotation)
        if not wire:
            sink.push_for(a, f"'{fn.name}': parameter '{a.arg}' has no usable field name", D.BAD_SIGNATURE)
            continue
        if ann is None:
            sink.push_for(a, f"'{fn.name}': parameter '{a.arg}' needs a type annotation", D.BAD_SIGNATURE)
            ann = "Any"
        if wire in seen:
            sink.push_for(a, f"'{fn.name}': parameters '{seen[wire]}' and '{a.arg}' map to the same field '{wire}'", D.BAD_SIGNATURE)
            continue
        seen[wire] = a.arg
        out.append(Param(name=a.arg, field=wire, type=ann))
    return tuple(out)


def _check_return(fn: FunctionNode, role: Role, returns: Optional[str], sink: DiagnosticSink) -> None:
    if role in (Role.INIT, Role.EXECUTE) and not _is_response(returns):
        sink.push_for(fn, f"@{role.value} '{fn.name}' must be annotated '-> {RESPONSE_TYPE}', found {returns!r}", D.BAD_RETURN)
    elif role is Role.EXECUTE_GUARD and returns != "None":
        sink.push_for(fn, f"@execute_guard '{fn.name}' must be annotated '-> None', found {returns!r}", D.BAD_RETURN)
    elif role is Role.QUERY and returns is None:
        sink.push_for(fn, f"@query '{fn.name}' needs a return annotation describing its response", D.BAD_RETURN)


def _origin(fn: FunctionNode, context: Context, sink: DiagnosticSink) -> Tuple[Origin, Optional[str]]:
    if context.in_interface:
        return Origin.of_interface(context.owner), context.error
    matches = [i for i in context.interfaces if i.method(fn.name) is not None]
    if len(matches) > 1:
        names = ", ".join(i.name for i in matches)
        sink.push_for(fn, f"'{fn.name}' is declared by more than one implemented interface ({names})", D.AMBIGUOUS_INTERFACE)
    if matches:
        return Origin.of_interface(matches[0].name), matches[0].error
    return Origin.contract(), context.error


def classify(fn: FunctionNode, context: Context, sink: DiagnosticSink) -> Optional[Method]:
    """
    Build the Method view of `fn`, or return None when it carries no role
    marker (a plain helper; the caller decides whether that is allowed).
    """
    roles = _roles(fn, sink)
    if not roles:
        return None
    role, _ = roles[0]
    for extra, deco in roles[1:]:
        sink.push_for(deco, f"'{fn.name}' already marked @{role.value}; conflicting @{extra.value}", D.DUPLICATE_ATTRIBUTE)

    if isinstance(fn, ast.AsyncFunctionDef):
        sink.push_for(fn, f"'{fn.name}' must be a plain 'def'; handlers cannot suspend", D.BAD_SIGNATURE)

    params = _params(fn, role, sink)
    returns = _annotation(fn.returns)
    _check_return(fn, role, returns, sink)
    origin, error = _origin(fn, context, sink)

    return Method(
        name=fn.name,
        role=role,
        params=params,
        returns=ReturnType(value=returns, error=error),
        origin=origin,
        location=Location.of(fn, sink.filename),
    )


def role_markers_hint() -> str:
    return _ROLE_MARKERS


__all__ = ["Context", "FunctionNode", "classify", "role_markers_hint"]

"""
compose_py.compiler.parse — read contract source into raw declarations.

The author's module is parsed with `ast` and never imported. Every
module-level class carrying at least one compose marker becomes a
Declaration. Marker-decorated module-level functions are kept as strays so
the validator can report them. Everything else (error types, helpers,
constants) only feeds the ModuleScope used to resolve names.

Public API
----------
- parse_source(source, filename="<source>") -> Unit
- parse_file(path) -> Unit
- decorator_name(node) -> Optional[str]
- MarkerUse, Declaration, ModuleScope, Unit
"""

from __future__ import annotations

import ast
import builtins
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Set, Tuple, Union

from .. import diagnostics as D
from ..attrs import Marker, lookup
from ..config import load_config
from ..diagnostics import DiagnosticSink, Location
from ..errors import CompileErrors

log = logging.getLogger(__name__)

_BUILTIN_EXCEPTIONS: FrozenSet[str] = frozenset(
    name
    for name in dir(builtins)
    if isinstance(getattr(builtins, name), type) and issubclass(getattr(builtins, name), BaseException)
)


# ----------------------------- helpers ------------------------------------- #


def decorator_name(node: ast.AST) -> Optional[str]:
    """Dotted name of a decorator target: `compose.execute(...)` → 'compose.execute'."""
    if isinstance(node, ast.Call):
        return decorator_name(node.func)
    if isinstance(node, ast.Attribute):
        base = decorator_name(node.value)
        return node.attr if base is None else base + "." + node.attr
    if isinstance(node, ast.Name):
        return node.id
    return None


def _bound_names(stmt: ast.stmt) -> List[str]:
    if isinstance(stmt, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
        return [stmt.name]
    if isinstance(stmt, ast.Import):
        return [(a.asname or a.name).split(".")[0] for a in stmt.names]
    if isinstance(stmt, ast.ImportFrom):
        return [a.asname or a.name for a in stmt.names if a.name != "*"]
    if isinstance(stmt, ast.Assign):
        return [t.id for t in stmt.targets if isinstance(t, ast.Name)]
    if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
        return [stmt.target.id]
    return []


# ----------------------------- records ------------------------------------- #


@dataclass(frozen=True)
class MarkerUse:
    """One decorator occurrence that names a vocabulary marker."""

    marker: Marker
    node: ast.expr
    location: Location

    @property
    def is_call(self) -> bool:
        return isinstance(self.node, ast.Call)

    @property
    def keywords(self) -> Tuple[ast.keyword, ...]:
        return tuple(self.node.keywords) if isinstance(self.node, ast.Call) else ()

    @property
    def positional(self) -> Tuple[ast.expr, ...]:
        return tuple(self.node.args) if isinstance(self.node, ast.Call) else ()


@dataclass(frozen=True)
class Declaration:
    """A module-level class annotated with compose markers."""

    name: str
    node: ast.ClassDef
    markers: Tuple[MarkerUse, ...]
    unknown: Tuple[Tuple[str, ast.expr], ...]
    location: Location


@dataclass(frozen=True)
class ModuleScope:
    names: FrozenSet[str]
    bases: Dict[str, Tuple[str, ...]]

    def resolves(self, name: str) -> bool:
        return name in self.names or name in _BUILTIN_EXCEPTIONS

    def family(self, root: str) -> FrozenSet[str]:
        """`root` plus every module class that (transitively) derives from it."""
        members: Set[str] = {root}
        changed = True
        while changed:
            changed = False
            for cls, bases in self.bases.items():
                if cls not in members and any(b in members for b in bases):
                    members.add(cls)
                    changed = True
        return frozenset(members)


@dataclass(frozen=True)
class Unit:
    filename: str
    source: str
    declarations: Tuple[Declaration, ...]
    strays: Tuple[Tuple[str, MarkerUse], ...]
    scope: ModuleScope


# ----------------------------- parsing ------------------------------------- #


def _marker_uses(
    decorators: List[ast.expr], filename: str
) -> Tuple[List[MarkerUse], List[Tuple[str, ast.expr]]]:
    known: List[MarkerUse] = []
    unknown: List[Tuple[str, ast.expr]] = []
    for deco in decorators:
        name = decorator_name(deco) or "<expr>"
        marker = lookup(name)
        if marker is None:
            unknown.append((name, deco))
        else:
            known.append(MarkerUse(marker, deco, Location.of(deco, filename)))
    return known, unknown


def parse_source(source: str, filename: str = "<source>") -> Unit:
    """
    Parse `source` into a Unit. Unreadable source raises CompileErrors with a
    single CP100 diagnostic; everything else is left to the validator.
    """
    sink = DiagnosticSink(filename, source)
    limit = load_config().max_source_bytes
    if len(source.encode("utf-8")) > limit:
        sink.push(Location(filename, 1, 0), f"source exceeds {limit} bytes", D.SYNTAX)
        raise CompileErrors(sink.diagnostics)
    try:
        tree = ast.parse(source, filename=filename)
    except SyntaxError as exc:
        where = Location(filename, exc.lineno or 0, max((exc.offset or 1) - 1, 0))
        sink.push(where, f"invalid syntax: {exc.msg}", D.SYNTAX)
        raise CompileErrors(sink.diagnostics) from exc

    names: Set[str] = set()
    bases: Dict[str, Tuple[str, ...]] = {}
    declarations: List[Declaration] = []
    strays: List[Tuple[str, MarkerUse]] = []

    for stmt in tree.body:
        names.update(_bound_names(stmt))
        if isinstance(stmt, ast.ClassDef):
            bases[stmt.name] = tuple(
                n.rsplit(".", 1)[-1] for n in (decorator_name(b) for b in stmt.bases) if n
            )
            known, unknown = _marker_uses(stmt.decorator_list, filename)
            if known:
                declarations.append(
                    Declaration(
                        name=stmt.name,
                        node=stmt,
                        markers=tuple(known),
                        unknown=tuple(unknown),
                        location=Location.of(stmt, filename),
                    )
                )
        elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            known, _ = _marker_uses(stmt.decorator_list, filename)
            strays.extend((stmt.name, use) for use in known)

    log.debug("parsed %s: %d declarations, %d stray markers", filename, len(declarations), len(strays))
    return Unit(
        filename=filename,
        source=source,
        declarations=tuple(declarations),
        strays=tuple(strays),
        scope=ModuleScope(names=frozenset(names), bases=bases),
    )


def parse_file(path: Union[str, Path]) -> Unit:
    p = Path(path)
    return parse_source(p.read_text(encoding="utf-8"), filename=str(p))


__all__ = [
    "decorator_name",
    "MarkerUse",
    "Declaration",
    "ModuleScope",
    "Unit",
    "parse_source",
    "parse_file",
]

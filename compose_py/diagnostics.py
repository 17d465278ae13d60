"""
compose_py.diagnostics — located compile-time problem reports and the sink
that accumulates them.

Validation never stops at the first problem. Every rule pushes into a
DiagnosticSink and keeps going; the pipeline drains the sink exactly once with
`finish()`, which either returns (nothing collected) or raises CompileErrors
with the whole ordered batch.

Codes
-----
CP100  syntax / unreadable source
CP101  unrecognized attribute
CP102  invalid attribute argument
CP103  attribute used where it does not apply
CP104  duplicate or conflicting attribute
CP105  duplicate declaration name
CP110  malformed handler signature
CP111  wrong return annotation for role
CP120  duplicate init
CP121  duplicate execute_guard
CP122  duplicate method name
CP130  interface method has a default implementation
CP131  interface lacks an Error declaration
CP132  invalid interface member
CP140  missing required implementation
CP141  implementation does not match interface signature
CP142  unknown interface
CP143  method matches more than one interface
CP144  custom_impl names an unknown method
CP150  init error type outside the contract error family
CP151  unresolved type name
CP160  more than one contract declared
CP161  unknown component
CP162  component listed twice
CP163  missing error type
CP301  message name collision between components
CP302  ambiguous default implementation
CP303  component namespace collision
"""

from __future__ import annotations

import ast
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import CompileErrors

SYNTAX = "CP100"
UNKNOWN_ATTRIBUTE = "CP101"
BAD_ARGUMENT = "CP102"
MISPLACED_ATTRIBUTE = "CP103"
DUPLICATE_ATTRIBUTE = "CP104"
DUPLICATE_DECLARATION = "CP105"
BAD_SIGNATURE = "CP110"
BAD_RETURN = "CP111"
DUPLICATE_INIT = "CP120"
DUPLICATE_GUARD = "CP121"
DUPLICATE_METHOD = "CP122"
INTERFACE_DEFAULT = "CP130"
INTERFACE_ERROR = "CP131"
INTERFACE_MEMBER = "CP132"
MISSING_IMPL = "CP140"
SIGNATURE_MISMATCH = "CP141"
UNKNOWN_INTERFACE = "CP142"
AMBIGUOUS_INTERFACE = "CP143"
UNKNOWN_CUSTOM_IMPL = "CP144"
ERROR_FAMILY = "CP150"
UNRESOLVED_NAME = "CP151"
DUPLICATE_CONTRACT = "CP160"
UNKNOWN_COMPONENT = "CP161"
DUPLICATE_COMPONENT = "CP162"
MISSING_ERROR = "CP163"
COLLISION = "CP301"
AMBIGUOUS_DEFAULT = "CP302"
NAMESPACE_COLLISION = "CP303"


@dataclass(frozen=True)
class Location:
    file: str = "<source>"
    line: int = 0
    col: int = 0

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.col}"

    @classmethod
    def of(cls, node: ast.AST, file: str) -> "Location":
        return cls(file=file, line=getattr(node, "lineno", 0), col=getattr(node, "col_offset", 0))


@dataclass(frozen=True)
class Diagnostic:
    location: Location
    message: str
    code: str = BAD_ARGUMENT
    snippet: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.location}: {self.code} {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["location"] = asdict(self.location)
        return d


class DiagnosticSink:
    """
    Append-only, ordered collection of diagnostics for one compilation.

    `push_for` accepts either an `ast` node (line/col read from it) or any
    model object exposing a `.location` attribute.
    """

    def __init__(self, filename: str = "<source>", source_text: Optional[str] = None) -> None:
        self.filename = filename
        self._lines: List[str] = source_text.splitlines() if source_text else []
        self._items: List[Diagnostic] = []
        self._drained = False

    # ---- pushing -------------------------------------------------------------

    def push(self, location: Location, message: str, code: str = BAD_ARGUMENT) -> Diagnostic:
        diag = Diagnostic(location=location, message=message, code=code, snippet=self._snippet(location.line))
        return self.push_existing(diag)

    def push_for(self, node: Any, message: str, code: str = BAD_ARGUMENT) -> Diagnostic:
        if isinstance(node, ast.AST):
            location = Location.of(node, self.filename)
        else:
            location = getattr(node, "location", None) or Location(self.filename)
        return self.push(location, message, code)

    def push_existing(self, diagnostic: Diagnostic) -> Diagnostic:
        if self._drained:
            raise RuntimeError("diagnostic sink already drained")
        self._items.append(diagnostic)
        return diagnostic

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        for d in diagnostics:
            self.push_existing(d)

    # ---- views ---------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(tuple(self._items))

    @property
    def diagnostics(self) -> Tuple[Diagnostic, ...]:
        return tuple(self._items)

    @property
    def has_errors(self) -> bool:
        return bool(self._items)

    # ---- draining ------------------------------------------------------------

    def finish(self) -> None:
        """Drain the sink: return on success, raise CompileErrors with every item otherwise."""
        self._drained = True
        if self._items:
            raise CompileErrors(self._items)

    def _snippet(self, line: int) -> Optional[str]:
        if 1 <= line <= len(self._lines):
            return self._lines[line - 1].rstrip()
        return None


__all__ = ["Location", "Diagnostic", "DiagnosticSink"]

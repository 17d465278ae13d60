"""
compose_py.errors — compile-time error types.

Run-time (generated entry point) errors live in compose_py.runtime.error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from .diagnostics import Diagnostic


class ComposeError(Exception):
    """Base class for compose_py toolchain failures."""


class CompileErrors(ComposeError):
    """
    A failed compilation. Carries every diagnostic collected during the pass,
    in the order they were reported.
    """

    def __init__(self, diagnostics: Iterable["Diagnostic"]) -> None:
        self.diagnostics: Tuple["Diagnostic", ...] = tuple(diagnostics)
        super().__init__(self._render())

    def _render(self) -> str:
        n = len(self.diagnostics)
        head = f"{n} diagnostic{'s' if n != 1 else ''}"
        return "\n".join([head] + [f"  {d}" for d in self.diagnostics])

    def __len__(self) -> int:
        return len(self.diagnostics)

    def __iter__(self) -> Iterator["Diagnostic"]:
        return iter(self.diagnostics)

    @property
    def codes(self) -> List[str]:
        return [d.code for d in self.diagnostics]

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "diagnostics": [d.to_dict() for d in self.diagnostics]}


class ArtifactError(ComposeError, ValueError):
    """Malformed, tampered or unsupported artifact payload."""


__all__ = ["ComposeError", "CompileErrors", "ArtifactError"]

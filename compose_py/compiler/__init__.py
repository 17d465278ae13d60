"""
compose_py.compiler — front door for the composition toolchain.

This package groups the compiler pipeline:
  • parse     — Python source → Unit (marked declarations, module scope)
  • method    — handler signature → Method
  • validate  — Unit → Program (interfaces, components, one contract)
  • model     — the frozen IR (Interface, Component, Contract, Program)
  • typemap   — annotation text → JSON Schema
  • synth     — Contract → Artifact (schemas, routes, guards, digest)
  • encode    — stable CBOR/msgpack artifact (de)serialization
  • emit      — Artifact → importable Python module

Importing `compose_py.compiler` is cheap; submodules load on first access.
"""
from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Union

if TYPE_CHECKING:  # pragma: no cover
    from .model import Program
    from .synth import Artifact

log = logging.getLogger(__name__)

_SUBMODULES = ("parse", "method", "validate", "model", "names", "typemap", "synth", "encode", "emit")

__all__ = [
    *_SUBMODULES,
    "compile_source",
    "compile_file",
    "build",
    "build_source",
]


def __getattr__(name: str) -> Any:  # pragma: no cover - thin dispatch
    if name in _SUBMODULES:
        return importlib.import_module(f"{__name__}.{name}")
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> List[str]:  # pragma: no cover
    return sorted(list(globals().keys()) + list(_SUBMODULES))


# ----- Convenience helpers ----------------------------------------------------


def compile_source(source: str, filename: str = "<source>") -> "Program":
    """Parse and validate `source`. Raises CompileErrors with every diagnostic found."""
    from .parse import parse_source
    from .validate import validate

    return validate(parse_source(source, filename))


def compile_file(path: Union[str, Path]) -> "Program":
    from .parse import parse_file
    from .validate import validate

    return validate(parse_file(path))


def build(program: "Program") -> List["Artifact"]:
    """
    Artifacts for everything in `program` that gets entry points or a dispatch
    table: the module's contract (entry or not) first, then each component
    marked as an entry on its own.
    """
    from .synth import synthesize, synthesize_component

    out: List["Artifact"] = []
    if program.contract is not None:
        out.append(synthesize(program.contract))
    out.extend(synthesize_component(c) for c in program.components if c.entry)
    log.info("%s: %d artifact(s)", program.filename, len(out))
    return out


def build_source(source: str, filename: str = "<source>") -> List["Artifact"]:
    return build(compile_source(source, filename))

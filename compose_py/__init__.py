"""
compose-py — build one deployable contract out of independently written
components.

This module exposes a small, stable façade over the compiler/runtime:

- __version__: semantic version (optionally with a git describe suffix)
- compile_source(source, filename="<source>") -> Program
    Parse and validate a contract module; raises CompileErrors listing every
    diagnostic found in one pass.
- build_source(source, filename="<source>") -> list[Artifact]
    compile_source + synthesis of every contract / entry component.
- load(path, *, contract=None, overrides=None, block_size=None)
    Compile, import and bind a contract module, ready for
    initialize/execute/query.

Heavy imports are lazy so `import compose_py` stays cheap for the DSL.
"""

from __future__ import annotations

import importlib
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .version import __version__


def version() -> str:
    """Return the compose-py version string."""
    return __version__


def compile_source(source: str, filename: str = "<source>") -> Any:
    compiler = importlib.import_module(".compiler", __name__)
    return compiler.compile_source(source, filename)


def build_source(source: str, filename: str = "<source>") -> Any:
    compiler = importlib.import_module(".compiler", __name__)
    return compiler.build_source(source, filename)


def load(
    path: Union[str, Path],
    *,
    contract: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    block_size: Optional[int] = None,
) -> Any:
    loader = importlib.import_module(".runtime.loader", __name__)
    return loader.load(path, contract=contract, overrides=overrides, block_size=block_size)


__all__ = ["__version__", "version", "compile_source", "build_source", "load"]

"""
compose_py.runtime.loader — compile a contract module and bind it in one step.

The compiler only ever reads source text. The loader is the one place that
also imports the author's module, so it can hand the real component classes
to the Dispatcher. Compilation always happens first: a module that fails
validation is never imported.

    entry = load("examples/bank/contract.py", overrides={"Admin": queries})
    entry.execute(ctx, b'{"deposit": {"amount": "5"}}')
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Mapping, Optional, Union

from ..canonical import sha3_256_hex
from ..compiler import compile_file
from ..compiler.model import Contract, Program
from ..compiler.synth import Artifact, synthesize
from .dispatch import Dispatcher
from .entry import EntryPoints
from .error import BindingError

log = logging.getLogger(__name__)


def import_source(path: Union[str, Path], module_name: Optional[str] = None) -> ModuleType:
    """Import a contract module by file path (registered in sys.modules under `module_name`)."""
    p = Path(path).resolve()
    name = module_name or f"compose_py_user_{p.stem}_{sha3_256_hex(str(p))[2:10]}"
    spec = importlib.util.spec_from_file_location(name, p)
    if spec is None or spec.loader is None:
        raise BindingError(f"cannot import contract module from {p}", context={"path": str(p)})
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(name, None)
        raise
    log.debug("imported %s as %s", p, name)
    return module


def select_contract(program: Program, name: Optional[str] = None) -> Contract:
    """The module's contract, or the named entry component wrapped as one."""
    if program.contract is not None and name in (None, program.contract.name):
        return program.contract
    for comp in program.components:
        if comp.entry and name in (None, comp.name):
            return comp.standalone()
    wanted = f"'{name}'" if name else "any contract or entry component"
    raise BindingError(f"{program.filename}: no {wanted} to load", context={"contract": name})


def components_of(module: ModuleType, artifact: Artifact) -> Dict[str, Any]:
    """Map each composed component name to the class the module defines for it."""
    found: Dict[str, Any] = {}
    for comp_name, _ in artifact.components:
        impl = getattr(module, comp_name, None)
        if impl is None:
            raise BindingError(
                f"module {module.__name__} does not define component '{comp_name}'",
                context={"component": comp_name},
            )
        found[comp_name] = impl
    return found


def load(
    path: Union[str, Path],
    *,
    contract: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    block_size: Optional[int] = None,
) -> Union[EntryPoints, Dispatcher]:
    """
    Compile `path`, import it, and bind the selected contract.

    Entry contracts come back as EntryPoints; a library (non-entry) contract
    comes back as its Dispatcher.
    """
    program = compile_file(path)
    artifact = synthesize(select_contract(program, contract))
    module = import_source(path)
    dispatcher = Dispatcher(artifact, components_of(module, artifact), overrides)
    log.info("loaded %s from %s (digest %s)", artifact.name, path, artifact.digest)
    if not artifact.entry:
        return dispatcher
    return EntryPoints(artifact, dispatcher, block_size=block_size)


__all__ = ["import_source", "select_contract", "components_of", "load"]

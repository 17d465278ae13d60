"""
Render an Artifact as an importable Python module.

The module embeds the canonical artifact JSON, exposes one constant per
message variant, one message-builder function per variant, a nested ROUTES
table keyed by component namespace, and `bind()` (entry contracts) or
`dispatcher()` (library contracts) wired to compose_py.runtime.
"""

from __future__ import annotations

import json
from typing import Dict, List

from ..attrs import Role
from ..version import BASE_VERSION
from .names import py_ident
from .synth import Artifact, artifact_to_json

# Annotations copied into generated builders; anything else is typed Any.
_PLAIN_TYPES = {"int", "str", "bool", "float"}

_KIND_PREFIX = {Role.INIT: "INIT", Role.EXECUTE: "EXECUTE", Role.QUERY: "QUERY"}


def _py_type(annotation: str) -> str:
    return annotation if annotation in _PLAIN_TYPES else "Any"


def _routes_table(artifact: Artifact) -> Dict[str, Dict[str, List[str]]]:
    table: Dict[str, Dict[str, List[str]]] = {ns: {} for _, ns in artifact.components}
    for r in artifact.routes:
        table.setdefault(r.namespace, {}).setdefault(r.kind.value, []).append(r.key)
    return table


def render_module(artifact: Artifact) -> str:
    """Generated module source for `artifact` (deterministic)."""
    lines: List[str] = []
    lines.append(f"# This file was generated by compose-py {BASE_VERSION}. Do not edit by hand.\n")
    lines.append(f"# contract: {artifact.name}  digest: {artifact.digest}\n")
    lines.append("from __future__ import annotations\n")
    lines.append("\n")
    lines.append("from typing import Any, Dict, Mapping, Optional\n")
    lines.append("\n")
    lines.append("from compose_py.runtime import entry as _entry\n")
    lines.append("\n")
    lines.append(f"CONTRACT: str = {json.dumps(artifact.name)}\n")
    lines.append(f"ERROR_TYPE: str = {json.dumps(artifact.error)}\n")
    lines.append(f"ARTIFACT_JSON: str = {json.dumps(artifact_to_json(artifact), ensure_ascii=False)}\n")
    lines.append("ARTIFACT = _entry.load_artifact(ARTIFACT_JSON)\n")
    lines.append("\n")
    lines.append(f"ROUTES: Dict[str, Dict[str, Any]] = {json.dumps(_routes_table(artifact), sort_keys=True)}\n")
    lines.append("\n")

    for r in artifact.routes:
        const = py_ident(f"{_KIND_PREFIX[r.kind]}_{r.namespace}_{r.method}".upper())
        lines.append(f"{const}: str = {json.dumps(r.key)}\n")
    lines.append("\n")

    for r in artifact.routes:
        if r.kind is Role.INIT:
            continue
        fn = py_ident(f"{r.kind.value}_{r.key}")
        params = ", ".join(f"{py_ident(f)}: {_py_type(t)}" for f, t in r.fields)
        body = ", ".join(f"{json.dumps(f)}: {py_ident(f)}" for f, _ in r.fields)
        lines.append("\n")
        lines.append(f"def {fn}({params}) -> Dict[str, Any]:\n")
        lines.append(f'    """{r.variant}: {r.component}.{r.method}"""\n')
        lines.append(f"    return {{{json.dumps(r.key)}: {{{body}}}}}\n")
    lines.append("\n")

    lines.append("\n")
    if artifact.entry:
        lines.append(
            "def bind(components: Mapping[str, Any], overrides: Optional[Mapping[str, Any]] = None, "
            "*, block_size: Optional[int] = None) -> _entry.EntryPoints:\n"
        )
        lines.append(f'    """initialize/execute/query for {artifact.name}."""\n')
        lines.append("    return _entry.bind(ARTIFACT, components, overrides=overrides, block_size=block_size)\n")
    else:
        lines.append(
            "def dispatcher(components: Mapping[str, Any], overrides: Optional[Mapping[str, Any]] = None) "
            "-> _entry.Dispatcher:\n"
        )
        lines.append(f'    """Dispatch table for {artifact.name} (no entry points)."""\n')
        lines.append("    return _entry.Dispatcher(ARTIFACT, components, overrides)\n")
    return "".join(lines)


__all__ = ["render_module"]

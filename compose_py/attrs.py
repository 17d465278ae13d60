"""
compose_py.attrs — the closed marker vocabulary for contract composition.

Markers are lookup keys, nothing more. The validator never asks a marker what
it means; it consults RULES, which says where the marker may appear and which
keyword arguments it accepts. Anything outside this table is rejected with an
"unrecognized attribute" diagnostic.

Public API
----------
- Marker, ArgKey, Role, Placement : enumerations
- Rule, RULES                    : marker → placement/argument rule table
- lookup(name)                   : resolve a decorator name to a Marker (or None)
- SKIPPABLE                      : accepted `skip=[...]` values → Role
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional


class Marker(str, enum.Enum):
    INTERFACE = "interface"
    COMPONENT = "component"
    CONTRACT = "contract"
    INIT = "init"
    EXECUTE = "execute"
    HANDLE = "handle"
    QUERY = "query"
    EXECUTE_GUARD = "execute_guard"
    ENTRY = "entry"
    PATH = "path"
    SKIP = "skip"
    CUSTOM_IMPL = "custom_impl"


class ArgKey(str, enum.Enum):
    PATH = "path"
    ENTRY = "entry"
    SKIP = "skip"
    CUSTOM_IMPL = "custom_impl"
    IMPLEMENTS = "implements"
    COMPONENTS = "components"
    ERROR = "error"


class Role(str, enum.Enum):
    INIT = "init"
    EXECUTE = "execute"
    QUERY = "query"
    EXECUTE_GUARD = "execute_guard"


class Placement(str, enum.Enum):
    DECLARATION = "declaration"  # primary class marker
    MODIFIER = "modifier"        # stacked on a marked class
    METHOD = "method"
    ARGUMENT = "argument"        # only inside component(...)


@dataclass(frozen=True)
class Rule:
    placement: Placement
    args: FrozenSet[ArgKey] = frozenset()
    role: Optional[Role] = None


RULES: Dict[Marker, Rule] = {
    Marker.INTERFACE: Rule(Placement.DECLARATION),
    Marker.COMPONENT: Rule(
        Placement.DECLARATION,
        frozenset({ArgKey.PATH, ArgKey.ENTRY, ArgKey.SKIP, ArgKey.CUSTOM_IMPL, ArgKey.IMPLEMENTS}),
    ),
    Marker.CONTRACT: Rule(
        Placement.DECLARATION,
        frozenset({ArgKey.COMPONENTS, ArgKey.ERROR, ArgKey.ENTRY}),
    ),
    Marker.ENTRY: Rule(Placement.MODIFIER),
    Marker.INIT: Rule(Placement.METHOD, role=Role.INIT),
    Marker.EXECUTE: Rule(Placement.METHOD, role=Role.EXECUTE),
    Marker.HANDLE: Rule(Placement.METHOD, role=Role.EXECUTE),
    Marker.QUERY: Rule(Placement.METHOD, role=Role.QUERY),
    Marker.EXECUTE_GUARD: Rule(Placement.METHOD, role=Role.EXECUTE_GUARD),
    Marker.PATH: Rule(Placement.ARGUMENT),
    Marker.SKIP: Rule(Placement.ARGUMENT),
    Marker.CUSTOM_IMPL: Rule(Placement.ARGUMENT),
}

# Argument keys that only make sense inside component(...).
COMPONENT_ONLY_ARGS: FrozenSet[ArgKey] = frozenset({ArgKey.PATH, ArgKey.SKIP, ArgKey.CUSTOM_IMPL})

SKIPPABLE: Dict[str, Role] = {
    "execute": Role.EXECUTE,
    "handle": Role.EXECUTE,
    "query": Role.QUERY,
}

# Names the generated surface uses for the three message unions.
INIT_MSG = "InstantiateMsg"
EXECUTE_MSG = "ExecuteMsg"
QUERY_MSG = "QueryMsg"

# Return annotation required for Init/Execute handlers.
RESPONSE_TYPE = "Response"


def lookup(name: str) -> Optional[Marker]:
    """Resolve the last segment of a decorator name (`compose.execute` → EXECUTE)."""
    try:
        return Marker(name.rsplit(".", 1)[-1])
    except ValueError:
        return None


def arg_key(name: Optional[str]) -> Optional[ArgKey]:
    if name is None:
        return None
    try:
        return ArgKey(name)
    except ValueError:
        return None


__all__ = [
    "Marker",
    "ArgKey",
    "Role",
    "Placement",
    "Rule",
    "RULES",
    "COMPONENT_ONLY_ARGS",
    "SKIPPABLE",
    "INIT_MSG",
    "EXECUTE_MSG",
    "QUERY_MSG",
    "RESPONSE_TYPE",
    "lookup",
    "arg_key",
]

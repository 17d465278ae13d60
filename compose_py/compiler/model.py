"""
compose_py.compiler.model — the composition IR.

Goals
-----
- Immutable: every node is a frozen dataclass; the validator builds them once
  and the synthesizer only reads them.
- Ordered: tuples everywhere, so declaration order survives into the
  generated message unions and into collision reporting.
- Self-contained: no back-references to `ast` nodes, only Locations.

Public API
----------
Param, ReturnType, Origin, Method, Interface, Component, Contract, Program
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Tuple

from ..attrs import Role
from ..diagnostics import Location
from .names import snake


@dataclass(frozen=True)
class Param:
    name: str   # as declared in the handler signature
    field: str  # wire name (leading underscores stripped)
    type: str   # annotation source text

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "field": self.field, "type": self.type}


@dataclass(frozen=True)
class ReturnType:
    value: Optional[str]
    error: Optional[str] = None


@dataclass(frozen=True)
class Origin:
    interface: Optional[str] = None

    @classmethod
    def contract(cls) -> "Origin":
        return cls(None)

    @classmethod
    def of_interface(cls, name: str) -> "Origin":
        return cls(name)

    @property
    def is_interface(self) -> bool:
        return self.interface is not None

    def __str__(self) -> str:
        return f"interface {self.interface}" if self.interface else "contract"


@dataclass(frozen=True)
class Method:
    name: str
    role: Role
    params: Tuple[Param, ...] = ()
    returns: ReturnType = ReturnType(None)
    origin: Origin = Origin()
    location: Location = Location()
    custom: bool = False

    @property
    def key(self) -> str:
        """Wire key of the message variant this method serves."""
        return snake(self.name)

    def signature(self) -> Tuple[Any, ...]:
        """Shape used to match an implementation against an interface declaration."""
        return (self.role, tuple((p.field, p.type) for p in self.params), self.returns.value)

    def describe(self) -> str:
        args = ", ".join(f"{p.field}: {p.type}" for p in self.params)
        return f"@{self.role.value} {self.name}({args}) -> {self.returns.value}"


@dataclass(frozen=True)
class Interface:
    name: str
    methods: Tuple[Method, ...]
    error: Optional[str] = None
    location: Location = Location()

    def method(self, name: str) -> Optional[Method]:
        for m in self.methods:
            if m.name == name:
                return m
        return None


@dataclass(frozen=True)
class Component:
    name: str
    methods: Tuple[Method, ...] = ()
    path: Optional[str] = None
    entry: bool = False
    skip: FrozenSet[Role] = frozenset()
    custom_impl: FrozenSet[str] = frozenset()
    custom_all: bool = False
    implements: Tuple[str, ...] = ()
    error: Optional[str] = None
    location: Location = Location()

    @property
    def key(self) -> str:
        """Namespace of this component's routes and generated identifiers."""
        return self.path or snake(self.name)

    def by_role(self, role: Role) -> Tuple[Method, ...]:
        return tuple(m for m in self.methods if m.role is role)

    @property
    def init(self) -> Optional[Method]:
        found = self.by_role(Role.INIT)
        return found[0] if found else None

    @property
    def guard(self) -> Optional[Method]:
        found = self.by_role(Role.EXECUTE_GUARD)
        return found[0] if found else None

    def skips(self, role: Role) -> bool:
        return role in self.skip

    def is_custom(self, method_name: str) -> bool:
        return self.custom_all or method_name in self.custom_impl

    def standalone(self) -> "Contract":
        """One-component contract used when this component is an entry on its own."""
        alone = replace(self, skip=frozenset())
        return Contract(
            name=self.name,
            components=(alone,),
            error=self.error or "",
            entry=True,
            location=self.location,
        )


@dataclass(frozen=True)
class Contract:
    name: str
    components: Tuple[Component, ...]
    error: str
    entry: bool = False
    location: Location = Location()

    def routed(self, role: Role) -> Iterator[Tuple[Component, Method]]:
        """Non-skipped (component, method) pairs for a message category, in order."""
        for comp in self.components:
            if comp.skips(role):
                continue
            for m in comp.by_role(role):
                yield comp, m

    def inits(self) -> Iterator[Tuple[Component, Method]]:
        for comp in self.components:
            if comp.init is not None:
                yield comp, comp.init

    def guards(self) -> Iterator[Tuple[Component, Method]]:
        # A guard only protects the execute surface its component contributes.
        for comp in self.components:
            if comp.guard is not None and not comp.skips(Role.EXECUTE):
                yield comp, comp.guard


@dataclass(frozen=True)
class Program:
    filename: str
    interfaces: Tuple[Interface, ...] = ()
    components: Tuple[Component, ...] = ()
    contract: Optional[Contract] = None

    def component(self, name: str) -> Optional[Component]:
        for c in self.components:
            if c.name == name:
                return c
        return None

    def entry_contracts(self) -> List[Contract]:
        out: List[Contract] = []
        if self.contract is not None and self.contract.entry:
            out.append(self.contract)
        out.extend(c.standalone() for c in self.components if c.entry)
        return out


__all__ = [
    "Param",
    "ReturnType",
    "Origin",
    "Method",
    "Interface",
    "Component",
    "Contract",
    "Program",
]

"""
compose_py.compiler.validate — declarations → validated Program.

Goals
-----
- Report everything. Every rule pushes into one DiagnosticSink and the pass
  keeps going with whatever it could recover (first-seen init/guard kept,
  bad arguments ignored). The sink is drained once at the end.
- Never partially succeed. `validate` either returns a complete Program or
  raises CompileErrors carrying every diagnostic of the pass.
- Composition is a single left-to-right scan over components with running
  per-category name sets, so collisions are reported in declaration order.

Public API
----------
- validate(unit) -> Program
- compose(name, components, error, *, entry, sink, location) -> Contract
"""

from __future__ import annotations

import ast
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union

from .. import diagnostics as D
from ..attrs import (
    COMPONENT_ONLY_ARGS,
    RULES,
    SKIPPABLE,
    ArgKey,
    Marker,
    Placement,
    Role,
    arg_key,
)
from ..diagnostics import DiagnosticSink, Location
from .method import Context, classify, role_markers_hint
from .model import Component, Contract, Interface, Method, Origin, Program
from .parse import Declaration, MarkerUse, Unit, decorator_name

log = logging.getLogger(__name__)


# ----------------------------- argument readers ----------------------------- #


def _is_stub(fn: ast.AST) -> bool:
    """Body is only a docstring, `...`, `pass` or `raise NotImplementedError`."""
    for stmt in getattr(fn, "body", []):
        if isinstance(stmt, ast.Pass):
            continue
        if isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant):
            if stmt.value.value is Ellipsis or isinstance(stmt.value.value, str):
                continue
        if isinstance(stmt, ast.Raise) and stmt.exc is not None:
            if (decorator_name(stmt.exc) or "").endswith("NotImplementedError"):
                continue
        return False
    return True


def _error_decl(cls: ast.ClassDef) -> Optional[Tuple[str, ast.AST]]:
    """`Error = SomeException` in a class body."""
    for stmt in cls.body:
        if isinstance(stmt, ast.Assign) and any(isinstance(t, ast.Name) and t.id == "Error" for t in stmt.targets):
            return (decorator_name(stmt.value) or "<expr>").rsplit(".", 1)[-1], stmt
        if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name) and stmt.target.id == "Error":
            if stmt.value is not None:
                return (decorator_name(stmt.value) or "<expr>").rsplit(".", 1)[-1], stmt
    return None


def _functions(cls: ast.ClassDef) -> List[Union[ast.FunctionDef, ast.AsyncFunctionDef]]:
    return [s for s in cls.body if isinstance(s, (ast.FunctionDef, ast.AsyncFunctionDef))]


class _Args:
    """Typed readers over one marker's keyword arguments; failures become diagnostics."""

    def __init__(self, use: MarkerUse, sink: DiagnosticSink) -> None:
        self.use = use
        self.sink = sink
        self.values: Dict[ArgKey, ast.expr] = {}
        marker = use.marker.value
        for pos in use.positional:
            sink.push_for(pos, f"'@{marker}' only accepts keyword arguments", D.BAD_ARGUMENT)
        allowed = RULES[use.marker].args
        for kw in use.keywords:
            key = arg_key(kw.arg)
            if kw.arg is None:
                sink.push_for(kw.value, f"'@{marker}' does not accept **kwargs", D.BAD_ARGUMENT)
            elif key is not None and key in allowed:
                self.values[key] = kw.value
            elif key in COMPONENT_ONLY_ARGS:
                sink.push_for(kw.value, f"'{kw.arg}' is only valid inside '@component(...)'", D.MISPLACED_ATTRIBUTE)
            else:
                sink.push_for(kw.value, f"Unrecognized attribute '{kw.arg}' in '@{marker}'", D.UNKNOWN_ATTRIBUTE)

    def has(self, key: ArgKey) -> bool:
        return key in self.values

    def string(self, key: ArgKey) -> Optional[str]:
        node = self.values.get(key)
        if node is None:
            return None
        if isinstance(node, ast.Constant) and isinstance(node.value, str) and node.value.isidentifier():
            return node.value
        self.sink.push_for(node, f"'{key.value}' must be an identifier string literal", D.BAD_ARGUMENT)
        return None

    def flag(self, key: ArgKey) -> Optional[bool]:
        node = self.values.get(key)
        if node is None:
            return None
        if isinstance(node, ast.Constant) and isinstance(node.value, bool):
            return node.value
        self.sink.push_for(node, f"'{key.value}' must be True or False", D.BAD_ARGUMENT)
        return None

    def strings(self, key: ArgKey) -> List[Tuple[str, ast.expr]]:
        node = self.values.get(key)
        if node is None:
            return []
        items = node.elts if isinstance(node, (ast.List, ast.Tuple)) else [node]
        out: List[Tuple[str, ast.expr]] = []
        for item in items:
            if isinstance(item, ast.Constant) and isinstance(item.value, str):
                out.append((item.value, item))
            else:
                self.sink.push_for(item, f"'{key.value}' expects string literals", D.BAD_ARGUMENT)
        return out

    def names(self, key: ArgKey) -> List[Tuple[str, ast.expr]]:
        """Class references given as names, dotted names or strings."""
        node = self.values.get(key)
        if node is None:
            return []
        items = node.elts if isinstance(node, (ast.List, ast.Tuple)) else [node]
        out: List[Tuple[str, ast.expr]] = []
        for item in items:
            if isinstance(item, ast.Constant) and isinstance(item.value, str):
                out.append((item.value, item))
            elif isinstance(item, (ast.Name, ast.Attribute)):
                out.append(((decorator_name(item) or "").rsplit(".", 1)[-1], item))
            else:
                self.sink.push_for(item, f"'{key.value}' expects class names", D.BAD_ARGUMENT)
        return out


# ------------------------------- validator ---------------------------------- #


class _Validator:
    def __init__(self, unit: Unit, sink: DiagnosticSink) -> None:
        self.unit = unit
        self.sink = sink
        self.scope = unit.scope

    # ---- class-level markers ----

    def _class_markers(self, decl: Declaration) -> Tuple[Optional[MarkerUse], bool]:
        """Check every decorator on a declaration; return (primary use, stacked @entry)."""
        primary: Optional[MarkerUse] = None
        entry = False
        for name, node in decl.unknown:
            self.sink.push_for(node, f"Unrecognized attribute '@{name}' on '{decl.name}'", D.UNKNOWN_ATTRIBUTE)
        for use in decl.markers:
            placement = RULES[use.marker].placement
            m = use.marker.value
            if placement is Placement.DECLARATION:
                if primary is None:
                    primary = use
                elif primary.marker is use.marker:
                    self.sink.push_for(use.node, f"Duplicate '@{m}' attribute on '{decl.name}'", D.DUPLICATE_ATTRIBUTE)
                else:
                    self.sink.push_for(
                        use.node, f"'@{m}' conflicts with '@{primary.marker.value}' on '{decl.name}'", D.DUPLICATE_ATTRIBUTE
                    )
            elif placement is Placement.MODIFIER:
                if use.is_call:
                    self.sink.push_for(use.node, f"'@{m}' takes no arguments", D.BAD_ARGUMENT)
                if entry:
                    self.sink.push_for(use.node, f"Duplicate '@{m}' attribute on '{decl.name}'", D.DUPLICATE_ATTRIBUTE)
                entry = True
            elif placement is Placement.ARGUMENT:
                self.sink.push_for(
                    use.node, f"'@{m}' is only valid as an argument of '@component(...)'", D.MISPLACED_ATTRIBUTE
                )
            else:
                self.sink.push_for(use.node, f"'@{m}' applies to methods, not to class '{decl.name}'", D.MISPLACED_ATTRIBUTE)

        if primary is None:
            if decl.markers:
                first = decl.markers[0]
                if RULES[first.marker].placement is Placement.MODIFIER:
                    self.sink.push_for(
                        first.node,
                        f"'@{first.marker.value}' on '{decl.name}' requires '@component' or '@contract'",
                        D.MISPLACED_ATTRIBUTE,
                    )
        elif entry and primary.marker is Marker.INTERFACE:
            self.sink.push_for(primary.node, f"Interface '{decl.name}' cannot declare an entry point", D.MISPLACED_ATTRIBUTE)
            entry = False
        return primary, entry

    def _resolve_error(self, name: Optional[str], node: Any) -> Optional[str]:
        if name is None:
            return None
        if not self.scope.resolves(name):
            self.sink.push_for(node, f"Unresolved error type '{name}'", D.UNRESOLVED_NAME)
        return name

    # ---- interfaces ----

    def interface(self, decl: Declaration, use: MarkerUse) -> Interface:
        _Args(use, self.sink)  # interfaces take no arguments; reports any given
        cls = decl.node
        for base in cls.bases:
            if isinstance(base, ast.Subscript):
                self.sink.push_for(base, f"Interface '{decl.name}' cannot be generic", D.INTERFACE_MEMBER)

        found = _error_decl(cls)
        error = None
        if found is None:
            self.sink.push_for(
                cls, f"Interface '{decl.name}' is missing its Error declaration (add `Error = <ExceptionType>`)", D.INTERFACE_ERROR
            )
        else:
            error = self._resolve_error(found[0], found[1])

        context = Context.interface(decl.name, error)
        methods: List[Method] = []
        for fn in _functions(cls):
            m = classify(fn, context, self.sink)
            if m is None:
                self.sink.push_for(fn, f"Expected one of {role_markers_hint()} on interface method '{fn.name}'", D.INTERFACE_MEMBER)
                continue
            if m.role is Role.EXECUTE_GUARD:
                self.sink.push_for(fn, f"Interfaces cannot declare an execute_guard ('{m.name}')", D.INTERFACE_MEMBER)
                continue
            if not _is_stub(fn):
                self.sink.push_for(fn, f"Interface method '{m.name}' cannot contain a default implementation", D.INTERFACE_DEFAULT)
            methods.append(m)
        methods = self._dedupe(decl.name, methods)
        return Interface(name=decl.name, methods=tuple(methods), error=error, location=decl.location)

    def _dedupe(self, owner: str, methods: Sequence[Method]) -> List[Method]:
        """Drop duplicate names, clashing wire keys and extra init/guard (first one wins), reporting each."""
        out: List[Method] = []
        names: Dict[str, Method] = {}
        wire: Dict[Tuple[Role, str], Method] = {}
        singletons: Dict[Role, Method] = {}
        for m in methods:
            if m.name in names:
                self.sink.push_for(m, f"Duplicate method '{m.name}' in '{owner}'", D.DUPLICATE_METHOD)
                continue
            if m.role in (Role.EXECUTE, Role.QUERY):
                clash = wire.get((m.role, m.key))
                if clash is not None:
                    self.sink.push_for(
                        m,
                        f"{m.role.value} message '{m.key}' is defined by both '{owner}.{clash.name}' and "
                        f"'{owner}.{m.name}'; rename one of them",
                        D.COLLISION,
                    )
                    continue
                wire[(m.role, m.key)] = m
            if m.role in (Role.INIT, Role.EXECUTE_GUARD):
                kept = singletons.get(m.role)
                if kept is not None:
                    code = D.DUPLICATE_INIT if m.role is Role.INIT else D.DUPLICATE_GUARD
                    self.sink.push_for(
                        m, f"Duplicate @{m.role.value} '{m.name}' in '{owner}' (already defined by '{kept.name}')", code
                    )
                    continue
                singletons[m.role] = m
            names[m.name] = m
            out.append(m)
        return out

    # ---- components ----

    def component(self, decl: Declaration, use: MarkerUse, entry: bool, interfaces: Dict[str, Interface]) -> Component:
        args = _Args(use, self.sink)
        cls = decl.node
        path = args.string(ArgKey.PATH)
        entry = bool(args.flag(ArgKey.ENTRY)) or entry

        skip = set()
        for value, node in args.strings(ArgKey.SKIP):
            role = SKIPPABLE.get(value)
            if role is None:
                self.sink.push_for(node, f"Unexpected argument '{value}' in skip; expected 'execute' or 'query'", D.BAD_ARGUMENT)
            else:
                skip.add(role)

        custom_all = False
        custom: List[Tuple[str, ast.expr]] = []
        custom_node = args.values.get(ArgKey.CUSTOM_IMPL)
        if isinstance(custom_node, ast.Constant) and custom_node.value is True:
            custom_all = True
        elif custom_node is not None:
            custom = args.strings(ArgKey.CUSTOM_IMPL)

        implemented: List[Interface] = []
        for name, node in args.names(ArgKey.IMPLEMENTS):
            iface = interfaces.get(name)
            if iface is None:
                self.sink.push_for(node, f"Unknown interface '{name}' in '{decl.name}'", D.UNKNOWN_INTERFACE)
            elif iface not in implemented:
                implemented.append(iface)

        found = _error_decl(cls)
        error = self._resolve_error(found[0], found[1]) if found else None
        if entry and error is None:
            self.sink.push_for(
                cls, f"Entry component '{decl.name}' must declare its Error type (`Error = <ExceptionType>`)", D.MISSING_ERROR
            )

        context = Context.component(decl.name, error, implemented)
        declared: List[Method] = []
        for fn in _functions(cls):
            m = classify(fn, context, self.sink)
            if m is None:
                for iface in implemented:
                    if iface.method(fn.name) is not None:
                        self.sink.push_for(
                            fn,
                            f"'{decl.name}.{fn.name}' implements '{iface.name}.{fn.name}' and must carry its role marker",
                            D.SIGNATURE_MISMATCH,
                        )
                        break
                continue
            declared.append(m)
        methods = self._dedupe(decl.name, declared)

        custom_names = {name for name, _ in custom}
        methods = self._conform(decl, methods, implemented, custom_names, custom_all)

        known = {m.name for m in methods}
        for name, node in custom:
            if name not in known:
                self.sink.push_for(node, f"custom_impl names unknown method '{name}' in '{decl.name}'", D.UNKNOWN_CUSTOM_IMPL)

        return Component(
            name=decl.name,
            methods=tuple(methods),
            path=path,
            entry=entry,
            skip=frozenset(skip),
            custom_impl=frozenset(custom_names),
            custom_all=custom_all,
            implements=tuple(i.name for i in implemented),
            error=error,
            location=decl.location,
        )

    def _conform(
        self,
        decl: Declaration,
        methods: List[Method],
        implemented: Sequence[Interface],
        custom_names: Set[str],
        custom_all: bool,
    ) -> List[Method]:
        """Match interface declarations against the component, synthesizing custom-routed ones."""
        by_name = {m.name: m for m in methods}
        out = [replace(m, custom=custom_all or m.name in custom_names) for m in methods]
        for iface in implemented:
            for im in iface.methods:
                is_custom = custom_all or im.name in custom_names
                have = by_name.get(im.name)
                if have is None:
                    if is_custom:
                        out.append(
                            Method(
                                name=im.name,
                                role=im.role,
                                params=im.params,
                                returns=im.returns,
                                origin=Origin.of_interface(iface.name),
                                location=decl.location,
                                custom=True,
                            )
                        )
                        by_name[im.name] = out[-1]
                    else:
                        self.sink.push_for(
                            decl.node,
                            f"Missing required implementation of '{iface.name}.{im.name}' in '{decl.name}'",
                            D.MISSING_IMPL,
                        )
                elif have.origin.interface == iface.name and have.signature() != im.signature():
                    self.sink.push_for(
                        have,
                        f"'{decl.name}.{have.name}' does not match interface '{iface.name}': "
                        f"expected {im.describe()}, found {have.describe()}",
                        D.SIGNATURE_MISMATCH,
                    )
        return self._dedupe(decl.name, out)

    # ---- contract ----

    def contract(
        self, decl: Declaration, use: MarkerUse, entry: bool, components: Dict[str, Component]
    ) -> Optional[Contract]:
        args = _Args(use, self.sink)
        entry = bool(args.flag(ArgKey.ENTRY)) or entry

        for fn in _functions(decl.node):
            if any(decorator_name(d) for d in fn.decorator_list):
                self.sink.push_for(
                    fn, f"Contract '{decl.name}' cannot declare handlers; move '{fn.name}' into a component",
                    D.MISPLACED_ATTRIBUTE,
                )

        error: Optional[str] = None
        names = args.names(ArgKey.ERROR)
        if not names:
            if not args.has(ArgKey.ERROR):
                self.sink.push_for(use.node, f"Contract '{decl.name}' must declare error=<ExceptionType>", D.MISSING_ERROR)
        else:
            error = self._resolve_error(names[0][0], names[0][1])

        chosen: List[Component] = []
        listed: Set[str] = set()
        if not args.has(ArgKey.COMPONENTS):
            self.sink.push_for(use.node, f"Contract '{decl.name}' must list components=[...]", D.BAD_ARGUMENT)
        for name, node in args.names(ArgKey.COMPONENTS):
            if name in listed:
                self.sink.push_for(node, f"Component '{name}' listed twice in '{decl.name}'", D.DUPLICATE_COMPONENT)
                continue
            listed.add(name)
            comp = components.get(name)
            if comp is None:
                self.sink.push_for(node, f"Unknown component '{name}' in '{decl.name}'", D.UNKNOWN_COMPONENT)
                continue
            chosen.append(comp)

        if error is not None:
            family = self.scope.family(error)
            for comp in chosen:
                init = comp.init
                if init is None:
                    continue
                init_error = init.returns.error
                if init_error is not None and init_error not in family:
                    self.sink.push_for(
                        init,
                        f"Init '{comp.name}.{init.name}' fails with '{init_error}', "
                        f"which is not in the '{error}' error family",
                        D.ERROR_FAMILY,
                    )

        return compose(
            decl.name, chosen, error or "", entry=entry, sink=self.sink, location=decl.location
        )

    # ---- driver ----

    def run(self) -> Program:
        for name, use in self.unit.strays:
            self.sink.push_for(
                use.node, f"'@{use.marker.value}' on module-level function '{name}' must sit inside a component or interface",
                D.MISPLACED_ATTRIBUTE,
            )

        interfaces: Dict[str, Interface] = {}
        components: Dict[str, Component] = {}
        contracts: List[Tuple[Declaration, MarkerUse, bool]] = []
        seen: Set[str] = set()

        # Interfaces first so components can reference them regardless of order.
        pending: List[Tuple[Declaration, MarkerUse, bool]] = []
        for decl in self.unit.declarations:
            primary, entry = self._class_markers(decl)
            if primary is None:
                continue
            if decl.name in seen:
                self.sink.push_for(decl.node, f"Duplicate declaration '{decl.name}'", D.DUPLICATE_DECLARATION)
                continue
            seen.add(decl.name)
            if primary.marker is Marker.INTERFACE:
                interfaces[decl.name] = self.interface(decl, primary)
            else:
                pending.append((decl, primary, entry))

        for decl, primary, entry in pending:
            if primary.marker is Marker.COMPONENT:
                components[decl.name] = self.component(decl, primary, entry, interfaces)
            else:
                contracts.append((decl, primary, entry))

        contract: Optional[Contract] = None
        for i, (decl, primary, entry) in enumerate(contracts):
            if i > 0:
                self.sink.push_for(
                    decl.node, f"Only one contract may be declared per module ('{contracts[0][0].name}' already is)",
                    D.DUPLICATE_CONTRACT,
                )
                continue
            contract = self.contract(decl, primary, entry, components)

        return Program(
            filename=self.unit.filename,
            interfaces=tuple(interfaces.values()),
            components=tuple(components.values()),
            contract=contract,
        )


# ------------------------------- public API --------------------------------- #


def compose(
    name: str,
    components: Sequence[Component],
    error: str,
    *,
    entry: bool = False,
    sink: DiagnosticSink,
    location: Location = Location(),
) -> Contract:
    """
    Merge `components` (in order) into a Contract, reporting execute/query
    name collisions and namespace clashes into `sink`.
    """
    seen: Dict[Role, Dict[str, Tuple[Component, Method]]] = {Role.EXECUTE: {}, Role.QUERY: {}}
    namespaces: Dict[str, Component] = {}

    for comp in components:
        other = namespaces.get(comp.key)
        if other is not None:
            sink.push_for(
                comp, f"Components '{other.name}' and '{comp.name}' share the namespace '{comp.key}'", D.NAMESPACE_COLLISION
            )
        else:
            namespaces[comp.key] = comp

        for role in (Role.EXECUTE, Role.QUERY):
            if comp.skips(role):
                continue
            names = seen[role]
            for m in comp.by_role(role):
                prev = names.get(m.key)
                if prev is None:
                    names[m.key] = (comp, m)
                    continue
                prev_comp, prev_m = prev
                if (
                    prev_m.origin.is_interface
                    and prev_m.origin == m.origin
                    and not prev_m.custom
                    and not m.custom
                ):
                    sink.push_for(
                        m,
                        f"Ambiguous default for '{m.origin.interface}.{m.name}': supplied by both "
                        f"'{prev_comp.name}' and '{comp.name}'; mark one custom_impl or skip {role.value}",
                        D.AMBIGUOUS_DEFAULT,
                    )
                else:
                    sink.push_for(
                        m,
                        f"{role.value} message '{m.key}' is defined by both '{prev_comp.name}' and '{comp.name}'; "
                        f"skip {role.value} on one of them",
                        D.COLLISION,
                    )

    return Contract(name=name, components=tuple(components), error=error, entry=entry, location=location)


def validate(unit: Unit) -> Program:
    """Validate a parsed Unit. Raises CompileErrors with every diagnostic on failure."""
    sink = DiagnosticSink(unit.filename, unit.source)
    program = _Validator(unit, sink).run()
    log.debug("validated %s: %d diagnostics", unit.filename, len(sink))
    sink.finish()
    return program


__all__ = ["validate", "compose"]

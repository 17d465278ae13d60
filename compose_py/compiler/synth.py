"""
compose_py.compiler.synth — validated Contract → Artifact.

The Artifact is everything the runtime (and the emitted Python module) needs
to serve a composed contract, with no reference back to the Model:

- init_schema     : InstantiateMsg, one property per component with an init
- execute_schema  : ExecuteMsg, a JSON Schema `oneOf` of single-key variants
- query_schema    : QueryMsg, same convention
- query_responses : response schema per query key
- routes          : dispatch table (wire key → component handler)
- guards          : execute guards in composition order
- digest          : sha3-256 over the canonical JSON of all of the above

Design notes
------------
- Pure: `synthesize` reads only its argument. Same Contract, same bytes.
- Variant titles join the component namespace and the method name so they
  stay unique even if collisions were allowed.
- Methods resolved to author-supplied code (`custom_impl`) always get a
  `custom` route target; no default route is ever emitted for them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..attrs import EXECUTE_MSG, INIT_MSG, QUERY_MSG, Role
from ..canonical import canonical_json_str, sha3_256_hex
from ..errors import ArtifactError
from .model import Component, Contract, Method
from .names import pascal
from .typemap import body_schema, schema_for

log = logging.getLogger(__name__)

ARTIFACT_VERSION = 1
SCHEMA_DIALECT = "http://json-schema.org/draft-07/schema#"

TARGET_DEFAULT = "default"
TARGET_CUSTOM = "custom"


@dataclass(frozen=True)
class Route:
    kind: Role
    key: str
    variant: str
    component: str
    namespace: str
    method: str
    fields: Tuple[Tuple[str, str], ...] = ()
    target: str = TARGET_DEFAULT
    error_source: str = ""
    response: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "key": self.key,
            "variant": self.variant,
            "component": self.component,
            "namespace": self.namespace,
            "method": self.method,
            "fields": [list(f) for f in self.fields],
            "target": self.target,
            "error_source": self.error_source,
            "response": self.response,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Route":
        return cls(
            kind=Role(d["kind"]),
            key=str(d["key"]),
            variant=str(d["variant"]),
            component=str(d["component"]),
            namespace=str(d["namespace"]),
            method=str(d["method"]),
            fields=tuple((str(f), str(t)) for f, t in d.get("fields", [])),
            target=str(d.get("target", TARGET_DEFAULT)),
            error_source=str(d.get("error_source", "")),
            response=d.get("response"),
        )


@dataclass(frozen=True)
class Guard:
    component: str
    namespace: str
    method: str
    error_source: str
    target: str = TARGET_DEFAULT

    def to_dict(self) -> Dict[str, str]:
        return {
            "component": self.component,
            "namespace": self.namespace,
            "method": self.method,
            "error_source": self.error_source,
            "target": self.target,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Guard":
        return cls(
            str(d["component"]),
            str(d["namespace"]),
            str(d["method"]),
            str(d["error_source"]),
            str(d.get("target", TARGET_DEFAULT)),
        )


@dataclass(frozen=True)
class Artifact:
    name: str
    error: str
    entry: bool
    components: Tuple[Tuple[str, str], ...]
    init_schema: Dict[str, Any] = field(hash=False)
    execute_schema: Dict[str, Any] = field(hash=False)
    query_schema: Dict[str, Any] = field(hash=False)
    query_responses: Dict[str, Any] = field(hash=False)
    routes: Tuple[Route, ...] = ()
    guards: Tuple[Guard, ...] = ()
    version: int = ARTIFACT_VERSION

    # ---- views ----

    def routes_for(self, kind: Role) -> Tuple[Route, ...]:
        return tuple(r for r in self.routes if r.kind is kind)

    def route(self, kind: Role, key: str) -> Optional[Route]:
        for r in self.routes:
            if r.kind is kind and r.key == key:
                return r
        return None

    def body(self, kind: Role, key: str) -> Optional[Dict[str, Any]]:
        """Schema of one variant's payload (or one component's init block)."""
        if kind is Role.INIT:
            return self.init_schema.get("properties", {}).get(key)
        schema = self.execute_schema if kind is Role.EXECUTE else self.query_schema
        for variant in schema.get("oneOf", []):
            if key in variant.get("properties", {}):
                return variant["properties"][key]
        return None

    # ---- serialization ----

    def _body_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "name": self.name,
            "error": self.error,
            "entry": self.entry,
            "components": [{"name": n, "namespace": k} for n, k in self.components],
            "schemas": {
                "init": self.init_schema,
                "execute": self.execute_schema,
                "query": self.query_schema,
                "query_responses": self.query_responses,
            },
            "routes": [r.to_dict() for r in self.routes],
            "guards": [g.to_dict() for g in self.guards],
        }

    @property
    def digest(self) -> str:
        return sha3_256_hex(canonical_json_str(self._body_dict()))

    def to_dict(self) -> Dict[str, Any]:
        d = self._body_dict()
        d["digest"] = self.digest
        return d

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Artifact":
        version = d.get("version")
        if version != ARTIFACT_VERSION:
            raise ArtifactError(f"unsupported artifact version {version!r} (expected {ARTIFACT_VERSION})")
        try:
            schemas = d["schemas"]
            art = cls(
                name=str(d["name"]),
                error=str(d["error"]),
                entry=bool(d["entry"]),
                components=tuple((str(c["name"]), str(c["namespace"])) for c in d["components"]),
                init_schema=dict(schemas["init"]),
                execute_schema=dict(schemas["execute"]),
                query_schema=dict(schemas["query"]),
                query_responses=dict(schemas["query_responses"]),
                routes=tuple(Route.from_dict(r) for r in d["routes"]),
                guards=tuple(Guard.from_dict(g) for g in d["guards"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ArtifactError(f"malformed artifact: {exc}") from exc
        expected = d.get("digest")
        if expected is not None and expected != art.digest:
            raise ArtifactError(f"artifact digest mismatch: recorded {expected}, computed {art.digest}")
        return art


# ----------------------------- synthesis ----------------------------------- #


def _error_source(comp: Component, m: Method) -> str:
    return m.origin.interface or comp.name


def _target(m: Method) -> str:
    return TARGET_CUSTOM if m.custom else TARGET_DEFAULT


def _route(comp: Component, m: Method) -> Route:
    key = comp.key if m.role is Role.INIT else m.key
    suffix = "Init" if m.role is Role.INIT else pascal(m.name)
    return Route(
        kind=m.role,
        key=key,
        variant=pascal(comp.key) + suffix,
        component=comp.name,
        namespace=comp.key,
        method=m.name,
        fields=tuple((p.field, p.type) for p in m.params),
        target=_target(m),
        error_source=_error_source(comp, m),
        response=m.returns.value if m.role is Role.QUERY else None,
    )


def _union_schema(title: str, routes: Iterable[Route]) -> Dict[str, Any]:
    variants: List[Dict[str, Any]] = []
    for r in routes:
        variants.append(
            {
                "title": r.variant,
                "description": f"{r.component}.{r.method}",
                "type": "object",
                "properties": {r.key: body_schema(r.fields)},
                "required": [r.key],
                "additionalProperties": False,
            }
        )
    schema: Dict[str, Any] = {"$schema": SCHEMA_DIALECT, "title": title}
    if variants:
        schema["oneOf"] = variants
    else:
        schema["not"] = {}
    return schema


def _init_schema(routes: Iterable[Route]) -> Dict[str, Any]:
    props: Dict[str, Any] = {}
    required: List[str] = []
    for r in routes:
        props[r.key] = body_schema(r.fields)
        if r.fields:
            required.append(r.key)
    return {
        "$schema": SCHEMA_DIALECT,
        "title": INIT_MSG,
        "type": "object",
        "properties": props,
        "required": required,
        "additionalProperties": False,
    }


def synthesize(contract: Contract) -> Artifact:
    """Build the Artifact for a validated Contract (pure, deterministic)."""
    inits = [_route(c, m) for c, m in contract.inits()]
    executes = [_route(c, m) for c, m in contract.routed(Role.EXECUTE)]
    queries = [_route(c, m) for c, m in contract.routed(Role.QUERY)]
    guards = tuple(
        Guard(c.name, c.key, m.name, _error_source(c, m), _target(m))
        for c, m in contract.guards()
    )

    artifact = Artifact(
        name=contract.name,
        error=contract.error,
        entry=contract.entry,
        components=tuple((c.name, c.key) for c in contract.components),
        init_schema=_init_schema(inits),
        execute_schema=_union_schema(EXECUTE_MSG, executes),
        query_schema=_union_schema(QUERY_MSG, queries),
        query_responses={r.key: schema_for(r.response or "Any") for r in queries},
        routes=tuple(inits + executes + queries),
        guards=guards,
    )
    log.debug("synthesized %s: %d routes, digest %s", contract.name, len(artifact.routes), artifact.digest)
    return artifact


def synthesize_component(component: Component) -> Artifact:
    """Standalone artifact for one entry component (its skip set does not apply)."""
    return synthesize(component.standalone())


def artifact_to_json(artifact: Artifact) -> str:
    return canonical_json_str(artifact.to_dict())


__all__ = [
    "ARTIFACT_VERSION",
    "TARGET_DEFAULT",
    "TARGET_CUSTOM",
    "Route",
    "Guard",
    "Artifact",
    "synthesize",
    "synthesize_component",
    "artifact_to_json",
]

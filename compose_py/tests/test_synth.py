from __future__ import annotations

import json
import textwrap

import pytest

from compose_py.attrs import Role
from compose_py.compiler import build, build_source, compile_source
from compose_py.compiler.synth import (
    TARGET_CUSTOM,
    TARGET_DEFAULT,
    Artifact,
    artifact_to_json,
    synthesize,
)
from compose_py.compiler.typemap import bytes_shape, schema_for
from compose_py.errors import ArtifactError

SOURCE = textwrap.dedent(
    """
    from typing import List, Optional

    from compose_py.dsl import component, contract, execute, execute_guard, init, interface, query, Uint128
    from compose_py.runtime import Response


    class Err(Exception):
        pass


    @interface
    class Named:
        Error = Err

        @query
        def name(ctx) -> str: ...


    @component(path="ledger")
    class Ledger:
        Error = Err

        @init
        def new(ctx, supply: Uint128) -> Response:
            return Response()

        @execute
        def transfer(ctx, to: str, amount: Uint128, memo: Optional[str]) -> Response:
            return Response()

        @execute_guard
        def check(ctx, msg) -> None:
            pass

        @query
        def balances(ctx, owners: List[str]) -> List[int]:
            return []


    @component(implements=[Named], custom_impl=["name"])
    class Meta:
        @init
        def new(ctx) -> Response:
            return Response()

        @execute
        def set_name(ctx, name: str) -> Response:
            return Response()


    @contract(components=[Ledger, Meta], error=Err, entry=True)
    class Token:
        pass
    """
)


@pytest.fixture(scope="module")
def artifact() -> Artifact:
    [art] = build_source(SOURCE, "token.py")
    return art


def test_synthesis_is_deterministic() -> None:
    program = compile_source(SOURCE, "token.py")
    a = synthesize(program.contract)
    b = synthesize(program.contract)
    assert a == b
    assert artifact_to_json(a) == artifact_to_json(b)
    # a fresh parse of the same text lands on the same bytes too
    [c] = build_source(SOURCE, "token.py")
    assert artifact_to_json(c) == artifact_to_json(a)
    assert c.digest == a.digest


def test_execute_union_lists_variants_in_component_order(artifact: Artifact) -> None:
    schema = artifact.execute_schema
    assert schema["title"] == "ExecuteMsg"
    assert [v["title"] for v in schema["oneOf"]] == ["LedgerTransfer", "MetaSetName"]
    transfer = artifact.body(Role.EXECUTE, "transfer")
    assert transfer["required"] == ["to", "amount", "memo"]
    assert transfer["additionalProperties"] is False
    assert transfer["properties"]["amount"] == {"type": "string", "pattern": "^[0-9]+$"}
    assert transfer["properties"]["memo"] == {"anyOf": [{"type": "string"}, {"type": "null"}]}


def test_query_union_and_response_schemas(artifact: Artifact) -> None:
    assert [v["title"] for v in artifact.query_schema["oneOf"]] == ["LedgerBalances", "MetaName"]
    assert artifact.query_responses["balances"] == {"type": "array", "items": {"type": "integer"}}
    assert artifact.query_responses["name"] == {"type": "string"}


def test_init_schema_is_keyed_by_component(artifact: Artifact) -> None:
    schema = artifact.init_schema
    assert schema["title"] == "InstantiateMsg"
    assert list(schema["properties"]) == ["ledger", "meta"]
    # components whose init takes no parameters may be left out
    assert schema["required"] == ["ledger"]
    inits = artifact.routes_for(Role.INIT)
    assert [(r.key, r.variant, r.method) for r in inits] == [("ledger", "LedgerInit", "new"), ("meta", "MetaInit", "new")]


def test_guards_and_error_sources(artifact: Artifact) -> None:
    assert [(g.component, g.method, g.namespace) for g in artifact.guards] == [("Ledger", "check", "ledger")]
    assert artifact.route(Role.QUERY, "name").error_source == "Named"
    assert artifact.route(Role.EXECUTE, "set_name").error_source == "Meta"


def test_custom_impl_never_gets_a_default_route(artifact: Artifact) -> None:
    targets = {(r.kind, r.key): r.target for r in artifact.routes}
    assert targets[(Role.QUERY, "name")] == TARGET_CUSTOM
    assert targets[(Role.EXECUTE, "set_name")] == TARGET_DEFAULT
    assert [r for r in artifact.routes if r.key == "name" and r.target == TARGET_DEFAULT] == []


def test_custom_impl_wins_even_when_a_default_exists() -> None:
    program = compile_source(
        textwrap.dedent(
            """
            from compose_py.dsl import component, query

            @component(custom_impl=["get"])
            class A:
                @query
                def get(ctx) -> int:
                    return 1
            """
        )
    )
    [route] = synthesize(program.component("A").standalone()).routes
    assert route.target == TARGET_CUSTOM


def test_skipped_guard_component_contributes_no_guard() -> None:
    program = compile_source(
        textwrap.dedent(
            """
            from compose_py.dsl import component, contract, execute_guard, query

            class Err(Exception):
                pass

            @component(skip=["execute"])
            class A:
                @execute_guard
                def g(ctx, msg) -> None:
                    pass

                @query
                def get(ctx) -> int:
                    return 1

            @contract(components=[A], error=Err)
            class App:
                pass
            """
        )
    )
    [art] = build(program)
    assert art.guards == ()
    assert art.execute_schema["not"] == {}


def test_artifact_dict_round_trip_and_tamper_detection(artifact: Artifact) -> None:
    d = json.loads(artifact_to_json(artifact))
    again = Artifact.from_dict(d)
    assert again.digest == artifact.digest == d["digest"]

    d["routes"][0]["method"] = "evil"
    with pytest.raises(ArtifactError, match="digest mismatch"):
        Artifact.from_dict(d)


def test_artifact_version_and_shape_are_checked(artifact: Artifact) -> None:
    d = json.loads(artifact_to_json(artifact))
    with pytest.raises(ArtifactError, match="unsupported artifact version"):
        Artifact.from_dict({**d, "version": 99})
    del d["routes"]
    with pytest.raises(ArtifactError, match="malformed artifact"):
        Artifact.from_dict(d)


@pytest.mark.parametrize(
    "annotation,schema",
    [
        ("int", {"type": "integer"}),
        ("bytes", {"type": "string", "contentEncoding": "base64"}),
        ("Dict[str, int]", {"type": "object", "additionalProperties": {"type": "integer"}}),
        ("int | None", {"anyOf": [{"type": "integer"}, {"type": "null"}]}),
        ("Tuple[int, str]", {"type": "array", "items": [{"type": "integer"}, {"type": "string"}], "minItems": 2, "maxItems": 2}),
        ("Tuple[int, ...]", {"type": "array", "items": {"type": "integer"}}),
        ("Config", {"title": "Config"}),
    ],
)
def test_schema_for(annotation: str, schema: dict) -> None:
    assert schema_for(annotation) == schema


@pytest.mark.parametrize(
    "annotation,shape",
    [
        ("bytes", ("bytes",)),
        ("Optional[bytes]", ("optional", "bytes")),
        ("bytes | None", ("optional", "bytes")),
        ("List[bytes]", ("items", "bytes")),
        ("Tuple[bytes, ...]", ("items", "bytes")),
        ("Optional[list[bytes]]", ("optional", "items", "bytes")),
        ("'bytes'", ("bytes",)),
        ("str", None),
        ("Dict[str, bytes]", None),
        ("Tuple[bytes, int]", None),
    ],
)
def test_bytes_shape(annotation: str, shape) -> None:
    assert bytes_shape(annotation) == shape

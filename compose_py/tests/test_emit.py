from __future__ import annotations

import textwrap

import pytest

from compose_py.compiler import build_source
from compose_py.compiler.emit import render_module
from compose_py.runtime import Response, make_context
from compose_py.runtime.entry import EntryPoints, decode_query_response

SOURCE = textwrap.dedent(
    """
    from compose_py.dsl import component, contract, execute, init, query
    from compose_py.runtime import Response

    class Err(Exception):
        pass

    @component(path="tally")
    class Tally:
        @init
        def new(ctx) -> Response:
            return Response()

        @execute
        def bump(ctx, by: int, _note: str) -> Response:
            return Response()

        @query
        def count(ctx) -> int:
            return 0

    @contract(components=[Tally], error=Err, entry=True)
    class Counter:
        pass
    """
)


class Tally:
    def new(ctx):
        ctx.save(b"n", b"0")
        return Response()

    def bump(ctx, by, note):
        ctx.save(b"n", str(int(ctx.load(b"n")) + by))
        return Response().add_attribute("note", note)

    def count(ctx):
        return int(ctx.load(b"n"))


def _exec(source: str) -> dict:
    ns: dict = {}
    exec(compile(source, "counter_msg.py", "exec"), ns)
    return ns


def test_generated_module_is_deterministic() -> None:
    [a] = build_source(SOURCE, "counter.py")
    [b] = build_source(SOURCE, "counter.py")
    assert render_module(a) == render_module(b)
    head = render_module(a).splitlines()[0]
    assert head.startswith("# This file was generated by compose-py") and head.endswith("Do not edit by hand.")


def test_generated_module_exposes_builders_and_binding() -> None:
    [art] = build_source(SOURCE, "counter.py")
    ns = _exec(render_module(art))

    assert ns["CONTRACT"] == "Counter"
    assert ns["ERROR_TYPE"] == "Err"
    assert ns["ARTIFACT"].digest == art.digest
    assert ns["EXECUTE_TALLY_BUMP"] == "bump"
    assert ns["QUERY_TALLY_COUNT"] == "count"
    assert ns["INIT_TALLY_NEW"] == "tally"
    assert ns["ROUTES"]["tally"] == {"init": ["tally"], "execute": ["bump"], "query": ["count"]}
    assert ns["execute_bump"](by=2, note="hi") == {"bump": {"by": 2, "note": "hi"}}
    assert ns["query_count"]() == {"count": {}}

    entry = ns["bind"]({"Tally": Tally}, block_size=0)
    assert isinstance(entry, EntryPoints)
    ctx = make_context("alice")
    entry.initialize(ctx, {})
    resp = entry.execute(ctx, ns["execute_bump"](by=3, note="x"))
    assert resp.attributes == [("note", "x")]
    assert decode_query_response(entry.query(ctx, ns["query_count"]())) == 3


def test_library_contract_module_exposes_dispatcher() -> None:
    [art] = build_source(SOURCE.replace("entry=True", "entry=False"), "counter.py")
    ns = _exec(render_module(art))
    assert "bind" not in ns
    d = ns["dispatcher"]({"Tally": Tally})
    assert d.artifact.digest == art.digest


@pytest.mark.parametrize("name", ["class", "from"])
def test_keyword_field_names_stay_valid_python(name: str) -> None:
    src = SOURCE.replace("_note: str", f"_{name}: str")
    [art] = build_source(src, "counter.py")
    ns = _exec(render_module(art))
    assert ns["execute_bump"](1, "v") == {"bump": {"by": 1, name: "v"}}

from __future__ import annotations

import base64
import textwrap

import pytest

from compose_py.attrs import Role
from compose_py.compiler import build_source
from compose_py.config import reload_config
from compose_py.runtime import (
    BindingError,
    DeserializeError,
    HandlerError,
    Response,
    SerializeError,
    make_context,
)
from compose_py.runtime.entry import EntryPoints, bind, decode_message, decode_query_response, load_artifact
from compose_py.runtime.dispatch import Dispatcher

SOURCE = textwrap.dedent(
    """
    from compose_py.dsl import component, contract, execute, execute_guard, init, query
    from compose_py.runtime import Response

    class Err(Exception):
        pass

    @component(path="notes")
    class Notes:
        @init
        def new(ctx, owner: str) -> Response:
            return Response()

        @execute
        def write(ctx, text: str, blob: bytes) -> Response:
            return Response()

        @execute_guard
        def only_owner(ctx, msg) -> None:
            pass

        @query
        def read(ctx) -> str:
            return ""

        @query
        def raw(ctx) -> dict:
            return {}

    @component
    class Clock:
        @init
        def start(ctx) -> Response:
            return Response()

        @query
        def now(ctx) -> int:
            return 0

    @contract(components=[Notes, Clock], error=Err, entry=True)
    class Journal:
        pass
    """
)


class Notes:
    def new(ctx, owner):
        ctx.save(b"owner", owner)
        return Response().add_attribute("owner", owner)

    def write(ctx, text, blob):
        ctx.save(b"text", text)
        ctx.save(b"blob", blob)
        return Response().set_data(blob)

    def only_owner(ctx, msg):
        if ctx.load(b"owner") != (ctx.sender or "").encode():
            raise PermissionError(f"{ctx.sender} may not {msg.key}")

    def read(ctx):
        return (ctx.load(b"text") or b"").decode()

    def raw(ctx):
        return {"blob": object()}


class Clock:
    def start(ctx):
        return Response().add_attribute("clock", "started")

    def now(ctx):
        return ctx.env.height


COMPONENTS = {"Notes": Notes, "Clock": Clock}


@pytest.fixture
def entry() -> EntryPoints:
    [art] = build_source(SOURCE, "journal.py")
    return bind(art, COMPONENTS)


@pytest.fixture
def ctx():
    return make_context("alice", env={"height": 12})


# --- initialize -----------------------------------------------------------------


def test_initialize_runs_every_init_in_order(entry: EntryPoints, ctx) -> None:
    resp = entry.initialize(ctx, b'{"notes": {"owner": "alice"}}')
    assert resp.attributes == [("owner", "alice"), ("clock", "started")]
    assert ctx.scoped("notes").load(b"owner") == b"alice"


def test_initialize_rejects_missing_block(entry: EntryPoints, ctx) -> None:
    with pytest.raises(DeserializeError, match="invalid init message"):
        entry.initialize(ctx, b'{"clock": {}}')


def test_initialize_rejects_unknown_component(entry: EntryPoints, ctx) -> None:
    with pytest.raises(DeserializeError):
        entry.initialize(ctx, {"notes": {"owner": "a"}, "ghost": {}})


def test_empty_init_payload_follows_strict_setting(monkeypatch: pytest.MonkeyPatch) -> None:
    [art] = build_source(
        textwrap.dedent(
            """
            from compose_py.dsl import component, init
            from compose_py.runtime import Response

            @component(entry=True)
            class Solo:
                Error = ValueError

                @init
                def new(ctx) -> Response:
                    return Response()
            """
        )
    )

    class Solo:
        def new(ctx):
            return Response().add_attribute("ok", "1")

    with pytest.raises(DeserializeError):
        bind(art, {"Solo": Solo}).initialize(make_context("a"), b"")

    monkeypatch.setenv("COMPOSE_PY_STRICT_PAYLOADS", "false")
    reload_config()
    resp = bind(art, {"Solo": Solo}).initialize(make_context("a"), b"")
    assert resp.attributes == [("ok", "1")]


# --- execute --------------------------------------------------------------------


def test_execute_runs_guard_then_handler_and_pads_data(entry: EntryPoints, ctx) -> None:
    entry.initialize(ctx, {"notes": {"owner": "alice"}})
    blob = base64.b64encode(b"\x00\x01hello").decode()
    resp = entry.execute(ctx, {"write": {"text": "hi", "blob": blob}})
    assert resp.data == b"\x00\x01hello" + b" " * (256 - 7)
    assert decode_query_response(entry.query(ctx, {"read": {}})) == "hi"


def test_guard_failure_blocks_the_handler(entry: EntryPoints, ctx) -> None:
    entry.initialize(ctx, {"notes": {"owner": "alice"}})
    mallory = make_context("mallory", storage=ctx.storage)
    with pytest.raises(HandlerError) as ei:
        entry.execute(mallory, {"write": {"text": "pwned", "blob": ""}})
    assert ei.value.source == "Notes"
    assert "only_owner" in ei.value.message
    assert ctx.scoped("notes").load(b"text") is None


@pytest.mark.parametrize(
    "payload,match",
    [
        (b"not json", "not valid JSON"),
        (b"[]", "exactly one key"),
        (b'{"write": {}, "read": {}}', "exactly one key"),
        (b'{"erase": {}}', "unknown execute variant 'erase', expected one of: write"),
        (b'{"write": {"text": 1, "blob": ""}}', "invalid execute 'write'"),
        (b'{"write": {"text": "x"}}', "'blob' is a required property"),
        (b'{"write": {"text": "x", "blob": "", "extra": 1}}', "Additional properties"),
        (b'{"write": {"text": "x", "blob": "@@@"}}', "not valid base64"),
    ],
)
def test_bad_execute_payloads(entry: EntryPoints, ctx, payload: bytes, match: str) -> None:
    entry.initialize(ctx, {"notes": {"owner": "alice"}})
    with pytest.raises(DeserializeError, match=match):
        entry.execute(ctx, payload)


def test_payload_size_cap(ctx) -> None:
    [art] = build_source(SOURCE, "journal.py")
    small = EntryPoints(art, Dispatcher(art, COMPONENTS), max_message_bytes=64)
    with pytest.raises(DeserializeError, match="payload too large"):
        small.execute(ctx, b'{"write": {"text": "' + b"x" * 100 + b'", "blob": ""}}')


def test_decode_message_reports_expected_keys() -> None:
    [art] = build_source(SOURCE, "journal.py")
    with pytest.raises(DeserializeError) as ei:
        decode_message(art, Role.QUERY, '{"when": {}}')
    assert ei.value.context["expected"] == ["now", "raw", "read"]
    msg = decode_message(art, Role.QUERY, '{"now": {}}')
    assert (msg.kind, msg.key, dict(msg.fields)) == (Role.QUERY, "now", {})


# --- query ----------------------------------------------------------------------


def test_query_sees_env_and_is_padded(entry: EntryPoints, ctx) -> None:
    out = entry.query(ctx, {"now": {}})
    assert out == b"12" + b" " * 254


def test_unserializable_query_result(entry: EntryPoints, ctx) -> None:
    with pytest.raises(SerializeError) as ei:
        entry.query(ctx, {"raw": {}})
    assert ei.value.code == "QUERY_RESPONSE_SERIALIZE"


def test_query_result_must_match_declared_type(ctx) -> None:
    class WrongClock(Clock):
        def now(ctx):
            return "noon"

    [art] = build_source(SOURCE, "journal.py")
    entry = bind(art, {"Notes": Notes, "Clock": WrongClock})
    with pytest.raises(SerializeError, match="does not match its declared type"):
        entry.query(ctx, {"now": {}})


def test_block_size_comes_from_config(monkeypatch: pytest.MonkeyPatch, ctx) -> None:
    monkeypatch.setenv("COMPOSE_PY_BLOCK_SIZE", "0")
    reload_config()
    [art] = build_source(SOURCE, "journal.py")
    assert bind(art, COMPONENTS).query(ctx, {"now": {}}) == b"12"
    assert bind(art, COMPONENTS, block_size=8).query(ctx, {"now": {}}) == b"12      "


# --- envelope and binding -------------------------------------------------------


def test_call_envelope(entry: EntryPoints, ctx) -> None:
    assert entry.call("query", ctx, {"now": {}}) == {"ok": 12}
    err = entry.call("execute", ctx, {"nope": {}})
    assert err["error"]["code"] == "DESERIALIZE"
    ok = entry.call("initialize", ctx, {"notes": {"owner": "alice"}})
    assert ok["ok"]["attributes"] == [["owner", "alice"], ["clock", "started"]]
    with pytest.raises(ValueError):
        entry.call("migrate", ctx, {})


def test_library_contract_has_no_entry_points() -> None:
    [art] = build_source(SOURCE.replace("entry=True", "entry=False"), "journal.py")
    with pytest.raises(BindingError, match="not an entry contract"):
        bind(art, COMPONENTS)
    # it still dispatches
    d = Dispatcher(art, COMPONENTS)
    assert d.keys(Role.QUERY) == ["read", "raw", "now"]


def test_load_artifact_accepts_every_form(entry: EntryPoints) -> None:
    from compose_py.compiler.encode import encode_artifact
    from compose_py.compiler.synth import artifact_to_json

    art = entry.artifact
    text = artifact_to_json(art)
    for src in (art, art.to_dict(), text, text.encode(), encode_artifact(art, "msgpack")):
        assert load_artifact(src).digest == art.digest

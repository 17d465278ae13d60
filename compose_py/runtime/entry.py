"""
compose_py.runtime.entry — initialize / execute / query over raw payloads.

Goals
-----
- Decode an incoming payload (bytes, str or an already-parsed mapping) into a
  single-key tagged Message and check it against the artifact's JSON Schema
  before any handler runs.
- Run the execute guards of every component, in composition order, before an
  execute message reaches its handler.
- Return init/execute results as a Response and query results as canonical
  JSON bytes, with binary payloads space-padded to the configured block size.

Public API
----------
- load_artifact(src) -> Artifact
- decode_message(artifact, kind, raw, ...) -> Message
- decode_query_response(data) -> Any
- class EntryPoints:
    initialize(ctx, raw) -> Response
    execute(ctx, raw)    -> Response
    query(ctx, raw)      -> bytes
    query_value(ctx, raw) -> Any
    call(op, ctx, raw)   -> dict   (result envelope; never raises ContractError)
- bind(artifact, components, overrides=None, *, block_size=None) -> EntryPoints

Errors
------
DeserializeError (bad payload), HandlerError (a handler or guard failed),
SerializeError (a query result could not be encoded), BindingError (missing
implementations, or entry points requested for a library contract).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from jsonschema import Draft7Validator

from ..attrs import Role
from ..canonical import canonical_json_bytes
from ..compiler.encode import MAGIC, decode_artifact
from ..compiler.synth import Artifact, Route
from ..config import load_config
from ..errors import ArtifactError
from .context import Context
from .dispatch import Dispatcher, Message
from .error import BindingError, ContractError, DeserializeError, HandlerError, SerializeError
from .response import Response, pad_response, space_pad

log = logging.getLogger(__name__)

Payload = Union[bytes, bytearray, memoryview, str, Mapping[str, Any], None]

OPS = ("initialize", "execute", "query")


# ----------------------------- artifacts ------------------------------------


def load_artifact(src: Union[Artifact, Mapping[str, Any], str, bytes]) -> Artifact:
    """Artifact from an instance, a dict, artifact JSON text, or a binary (CPAF) blob."""
    if isinstance(src, Artifact):
        return src
    if isinstance(src, Mapping):
        return Artifact.from_dict(src)
    if isinstance(src, (bytes, bytearray, memoryview)):
        blob = bytes(src)
        if blob.startswith(MAGIC):
            return decode_artifact(blob)
        src = blob
    try:
        data = json.loads(src)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ArtifactError(f"artifact is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ArtifactError("artifact JSON must be an object")
    return Artifact.from_dict(data)


# ----------------------------- decoding -------------------------------------


def _read(raw: Payload, limit: int) -> Any:
    if raw is None or isinstance(raw, Mapping):
        return raw
    if isinstance(raw, (bytes, bytearray, memoryview)):
        data = bytes(raw)
    elif isinstance(raw, str):
        data = raw.encode("utf-8")
    else:
        raise DeserializeError(f"unsupported payload type {type(raw).__name__}")
    if len(data) > limit:
        raise DeserializeError(f"payload too large ({len(data)} > {limit} bytes)", context={"limit": limit})
    if not data.strip():
        return None
    try:
        return json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DeserializeError(f"payload is not valid JSON: {exc}") from exc


def _schema_errors(validator: Draft7Validator, value: Any) -> List[str]:
    out = []
    for err in validator.iter_errors(value):
        where = "/".join(str(p) for p in err.absolute_path) or "<root>"
        out.append(f"{where}: {err.message}")
    return sorted(out)


def _check(validator: Draft7Validator, value: Any, what: str) -> None:
    problems = _schema_errors(validator, value)
    if problems:
        raise DeserializeError(f"invalid {what}: {problems[0]}", context={"errors": problems})


def decode_message(
    artifact: Artifact,
    kind: Role,
    raw: Payload,
    *,
    max_bytes: Optional[int] = None,
    validators: Optional[Mapping[Tuple[Role, str], Draft7Validator]] = None,
) -> Message:
    """Parse `raw` as one tagged execute/query message and validate its fields."""
    limit = load_config().max_message_bytes if max_bytes is None else max_bytes
    payload = _read(raw, limit)
    expected = sorted(r.key for r in artifact.routes_for(kind))
    if not isinstance(payload, Mapping) or len(payload) != 1:
        raise DeserializeError(
            f"{kind.value} message must be an object with exactly one key",
            context={"expected": expected},
        )
    (key, body), = payload.items()
    if key not in expected:
        raise DeserializeError(
            f"unknown {kind.value} variant '{key}', expected one of: {', '.join(expected) or '(none)'}",
            context={"key": key, "expected": expected},
        )
    if validators is not None and (kind, key) in validators:
        validator = validators[(kind, key)]
    else:
        validator = Draft7Validator(artifact.body(kind, key) or {})
    _check(validator, body, f"{kind.value} '{key}'")
    return Message(kind=kind, key=key, fields=dict(body))


def decode_query_response(data: bytes) -> Any:
    """Inverse of EntryPoints.query: strip padding and parse the JSON."""
    return json.loads(bytes(data).rstrip(b" ").decode("utf-8"))


# ----------------------------- entry points ---------------------------------


class EntryPoints:
    def __init__(
        self,
        artifact: Artifact,
        dispatcher: Dispatcher,
        *,
        block_size: Optional[int] = None,
        max_message_bytes: Optional[int] = None,
    ) -> None:
        if not artifact.entry:
            raise BindingError(
                f"contract '{artifact.name}' is not an entry contract",
                context={"contract": artifact.name},
            )
        cfg = load_config()
        self.artifact = artifact
        self.dispatcher = dispatcher
        self.block_size = cfg.block_size if block_size is None else block_size
        self.max_message_bytes = cfg.max_message_bytes if max_message_bytes is None else max_message_bytes
        self.strict_payloads = cfg.strict_payloads
        self._init_validator = Draft7Validator(artifact.init_schema)
        self._validators: Dict[Tuple[Role, str], Draft7Validator] = {
            (r.kind, r.key): Draft7Validator(artifact.body(r.kind, r.key) or {})
            for r in artifact.routes
            if r.kind is not Role.INIT
        }
        self._response_validators: Dict[str, Draft7Validator] = {
            k: Draft7Validator(s) for k, s in artifact.query_responses.items()
        }

    def _decode(self, kind: Role, raw: Payload) -> Message:
        return decode_message(self.artifact, kind, raw, max_bytes=self.max_message_bytes, validators=self._validators)

    def _as_response(self, route: Route, result: Any) -> Response:
        if result is None:
            return Response()
        if isinstance(result, Response):
            return result
        raise HandlerError(
            f"{route.component}.{route.method} returned {type(result).__name__}, expected Response",
            source=route.error_source,
            error_type=self.artifact.error,
        )

    # ---- operations ----

    def initialize(self, ctx: Context, raw: Payload) -> Response:
        payload = _read(raw, self.max_message_bytes)
        if payload is None and not self.strict_payloads:
            payload = {}
        _check(self._init_validator, payload, "init message")
        response = Response()
        for route, result in self.dispatcher.initialize(ctx, payload):
            response = response.merge(self._as_response(route, result))
        log.debug("initialize %s: %d init handlers", self.artifact.name, len(self.artifact.routes_for(Role.INIT)))
        return pad_response(response, self.block_size)

    def execute(self, ctx: Context, raw: Payload) -> Response:
        message = self._decode(Role.EXECUTE, raw)
        self.dispatcher.guard(ctx, message)
        result = self.dispatcher.dispatch(ctx, message)
        return pad_response(self._as_response(self.artifact.route(Role.EXECUTE, message.key), result), self.block_size)

    def query_value(self, ctx: Context, raw: Payload) -> Any:
        message = self._decode(Role.QUERY, raw)
        return self.dispatcher.dispatch(ctx.read_only(), message)

    def query(self, ctx: Context, raw: Payload) -> bytes:
        message = self._decode(Role.QUERY, raw)
        result = self.dispatcher.dispatch(ctx.read_only(), message)
        try:
            data = canonical_json_bytes(result)
        except (TypeError, ValueError) as exc:
            raise SerializeError(
                f"query '{message.key}' returned an unserializable {type(result).__name__}: {exc}",
                context={"key": message.key},
            ) from exc
        validator = self._response_validators.get(message.key)
        if validator is not None:
            problems = _schema_errors(validator, json.loads(data))
            if problems:
                raise SerializeError(
                    f"query '{message.key}' response does not match its declared type: {problems[0]}",
                    context={"key": message.key, "errors": problems},
                )
        return space_pad(data, self.block_size)

    def call(self, op: str, ctx: Context, raw: Payload) -> Dict[str, Any]:
        """Run one operation and wrap the outcome as {"ok": ...} or {"error": {...}}."""
        if op not in OPS:
            raise ValueError(f"unknown operation {op!r} (expected one of {', '.join(OPS)})")
        try:
            result = getattr(self, op)(ctx, raw)
        except ContractError as exc:
            log.info("%s %s failed: [%s] %s", self.artifact.name, op, exc.code, exc.message)
            return {"error": exc.to_dict()}
        if isinstance(result, Response):
            return {"ok": result.to_dict()}
        return {"ok": decode_query_response(result)}


def bind(
    artifact: Union[Artifact, Mapping[str, Any], str, bytes],
    components: Mapping[str, Any],
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    block_size: Optional[int] = None,
) -> EntryPoints:
    """Resolve every handler of `artifact` and return its entry points."""
    art = load_artifact(artifact)
    return EntryPoints(art, Dispatcher(art, components, overrides), block_size=block_size)


__all__ = [
    "Payload",
    "OPS",
    "load_artifact",
    "decode_message",
    "decode_query_response",
    "EntryPoints",
    "Dispatcher",
    "Message",
    "bind",
]

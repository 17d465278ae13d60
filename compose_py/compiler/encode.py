"""
encode.py — stable Artifact ↔ bytes encoding (CBOR or msgpack).

Design goals
------------
- Round-trip stable across platforms and Python versions.
- Deterministic: the payload is the artifact's canonical JSON object (sorted
  keys) re-encoded, and CBOR output uses canonical map ordering.
- No pickles or dynamic code; only maps, lists and scalars.
- Self-describing header with magic + version + format.

Wire layout
-----------
Header (6 bytes):
  0..3 : ASCII magic b"CPAF"  (Compose Artifact)
  4    : version byte (0x01)
  5    : format byte  (0x01 = CBOR, 0x02 = MSGPACK)

Payload:
  The artifact dict (Artifact.to_dict()), digest included; decoding
  re-verifies the digest.
"""
from __future__ import annotations

import json
from typing import Any, Optional, Tuple

import cbor2
import msgspec

from ..canonical import canonical_json_str
from ..config import load_config
from ..errors import ArtifactError
from .synth import Artifact

MAGIC = b"CPAF"
VERSION = 1
FMT_CBOR = 0x01
FMT_MSGPACK = 0x02

FORMATS = {"cbor": FMT_CBOR, "msgpack": FMT_MSGPACK}
EXTENSIONS = {FMT_CBOR: "cbor", FMT_MSGPACK: "msgpack"}

_MSGPACK_ENC = msgspec.msgpack.Encoder()
_MSGPACK_DEC = msgspec.msgpack.Decoder()


def _dumps_payload(obj: Any, fmt: int) -> bytes:
    if fmt == FMT_CBOR:
        # canonical=True enforces deterministic map ordering and integer encodings
        return cbor2.dumps(obj, canonical=True)
    if fmt == FMT_MSGPACK:
        return _MSGPACK_ENC.encode(obj)
    raise ArtifactError(f"Unknown format byte: {fmt!r}")


def _loads_payload(data: bytes, fmt: int) -> Any:
    try:
        if fmt == FMT_CBOR:
            return cbor2.loads(data)
        if fmt == FMT_MSGPACK:
            return _MSGPACK_DEC.decode(data)
    except (cbor2.CBORDecodeError, msgspec.DecodeError) as exc:
        raise ArtifactError(f"corrupt artifact payload: {exc}") from exc
    raise ArtifactError(f"Unknown format byte: {fmt!r}")


def _wrap_with_header(payload: bytes, fmt: int) -> bytes:
    return MAGIC + bytes((VERSION, fmt)) + payload


def _unwrap_header(blob: bytes) -> Tuple[int, bytes]:
    if len(blob) < 6 or blob[:4] != MAGIC:
        raise ArtifactError("Unrecognized artifact blob (bad magic)")
    ver, fmt = blob[4], blob[5]
    if ver != VERSION:
        raise ArtifactError(f"Unsupported artifact container version: {ver} (expected {VERSION})")
    if fmt not in EXTENSIONS:
        raise ArtifactError(f"Unknown format byte: {fmt!r}")
    return fmt, blob[6:]


def format_code(name: Optional[str]) -> int:
    """'cbor' / 'msgpack' → format byte; None → configured default."""
    key = (name or load_config().artifact_format).lower()
    try:
        return FORMATS[key]
    except KeyError:
        raise ArtifactError(f"unknown artifact format {name!r}; expected one of {sorted(FORMATS)}") from None


def encode_artifact(artifact: Artifact, fmt: Optional[str] = None) -> bytes:
    """Encode an Artifact to header-prefixed bytes."""
    code = format_code(fmt)
    # Round-trip through canonical JSON so both codecs see sorted keys.
    payload = json.loads(canonical_json_str(artifact.to_dict()))
    return _wrap_with_header(_dumps_payload(payload, code), code)


def decode_artifact(blob: bytes) -> Artifact:
    """Decode header-prefixed bytes back into an Artifact (digest verified)."""
    fmt, payload = _unwrap_header(bytes(blob))
    data = _loads_payload(payload, fmt)
    if not isinstance(data, dict):
        raise ArtifactError("Invalid artifact payload (expected a map)")
    return Artifact.from_dict(data)


def sniff_format(blob: bytes) -> Optional[str]:
    """Format name of a header-prefixed blob, or None if it is not one."""
    try:
        fmt, _ = _unwrap_header(bytes(blob))
    except ArtifactError:
        return None
    return EXTENSIONS[fmt]


__all__ = [
    "MAGIC",
    "VERSION",
    "FMT_CBOR",
    "FMT_MSGPACK",
    "FORMATS",
    "format_code",
    "encode_artifact",
    "decode_artifact",
    "sniff_format",
]

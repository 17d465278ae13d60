"""
Deterministic serialization and file helpers for build artifacts:
- Canonical JSON (sorted keys, no whitespace, no NaN)
- SHA3-256 digests
- Atomic writes and mkdir -p
"""

from __future__ import annotations

import base64
import hashlib
import json
import os
import tempfile
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Final, Union

_JSON_SEPARATORS: Final = (",", ":")


def _default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonical_json_str(obj: Any) -> str:
    """
    Serialize to a canonical JSON string:
    - sorted keys, no whitespace
    - bytes become base64, dataclasses become objects
    - NaN/Infinity rejected
    """
    return json.dumps(obj, sort_keys=True, separators=_JSON_SEPARATORS, ensure_ascii=False, allow_nan=False, default=_default)


def canonical_json_bytes(obj: Any) -> bytes:
    return canonical_json_str(obj).encode("utf-8")


def sha3_256_hex(data: Union[bytes, str]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return "0x" + hashlib.sha3_256(data).hexdigest()


def ensure_dir(path: Union[str, Path]) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(path: Union[str, Path], data: bytes) -> Path:
    """Write via a temp file in the same directory, then rename over the target."""
    p = Path(path)
    ensure_dir(p.parent)
    fd, tmp = tempfile.mkstemp(prefix=f".{p.name}.", dir=str(p.parent))
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp, p)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    return p


def atomic_write_text(path: Union[str, Path], text: str) -> Path:
    return atomic_write_bytes(path, text.encode("utf-8"))


__all__ = [
    "canonical_json_str",
    "canonical_json_bytes",
    "sha3_256_hex",
    "ensure_dir",
    "atomic_write_bytes",
    "atomic_write_text",
]

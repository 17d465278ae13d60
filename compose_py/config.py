"""
compose_py.config — toolchain and runtime knobs.

No third-party deps; safe to import very early.

Configuration precedence:
  1) Environment variables (COMPOSE_PY_*)
  2) Hardcoded defaults below

Key env vars:
  - COMPOSE_PY_BLOCK_SIZE          (int)   default: 256  (0 disables response padding)
  - COMPOSE_PY_ARTIFACT_FORMAT     (str)   default: cbor (cbor | msgpack)
  - COMPOSE_PY_MAX_SOURCE_BYTES    (int)   default: 1_048_576
  - COMPOSE_PY_MAX_MESSAGE_BYTES   (int)   default: 262_144
  - COMPOSE_PY_STRICT_PAYLOADS     (bool)  default: true  (reject non-object init payloads)
  - COMPOSE_PY_LOG_LEVEL           (str)   default: WARNING

Usage:
    from compose_py.config import load_config
    CFG = load_config()
    padded = space_pad(data, CFG.block_size)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict

ARTIFACT_FORMATS = ("cbor", "msgpack")


# ----------------------------- helpers ---------------------------------------


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "t", "yes", "y", "on")


def _env_int(name: str, default: int, *, min_v: int, max_v: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        v = int(raw, 0)
    except ValueError:
        return default
    return max(min_v, min(max_v, v))


def _env_str(name: str, default: str, *, choices: tuple = ()) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    val = raw.strip().lower() if choices else raw.strip()
    if choices and val not in choices:
        return default
    return val or default


# ------------------------------- config --------------------------------------


@dataclass(frozen=True)
class ComposeConfig:
    block_size: int
    artifact_format: str
    max_source_bytes: int
    max_message_bytes: int
    strict_payloads: bool
    log_level: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "block_size": self.block_size,
            "artifact_format": self.artifact_format,
            "max_source_bytes": self.max_source_bytes,
            "max_message_bytes": self.max_message_bytes,
            "strict_payloads": self.strict_payloads,
            "log_level": self.log_level,
        }


@lru_cache(maxsize=1)
def load_config() -> ComposeConfig:
    """Build the process-wide config from the environment (cached)."""
    return ComposeConfig(
        block_size=_env_int("COMPOSE_PY_BLOCK_SIZE", 256, min_v=0, max_v=65_536),
        artifact_format=_env_str("COMPOSE_PY_ARTIFACT_FORMAT", "cbor", choices=ARTIFACT_FORMATS),
        max_source_bytes=_env_int("COMPOSE_PY_MAX_SOURCE_BYTES", 1_048_576, min_v=1_024, max_v=64 * 1_048_576),
        max_message_bytes=_env_int("COMPOSE_PY_MAX_MESSAGE_BYTES", 262_144, min_v=64, max_v=16 * 1_048_576),
        strict_payloads=_env_bool("COMPOSE_PY_STRICT_PAYLOADS", True),
        log_level=_env_str("COMPOSE_PY_LOG_LEVEL", "WARNING").upper(),
    )


def reload_config() -> ComposeConfig:
    """Drop the cached config and re-read the environment (tests, CLI flags)."""
    load_config.cache_clear()
    return load_config()


__all__ = ["ComposeConfig", "ARTIFACT_FORMATS", "load_config", "reload_config"]

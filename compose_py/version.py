"""compose_py.version — package version, resolved once at import.

Sources, first hit wins:
  1) COMPOSE_PY_VERSION             exact string, used as is
  2) installed 'compose-py' metadata
  3) BASE_VERSION + local part built from `git describe` (GIT_DESCRIBE in CI)
  4) BASE_VERSION + '+dev'

BASE_VERSION is also stamped into generated modules, so it only moves when
artifacts or emitted code change shape.
"""

from __future__ import annotations

import os
import re
import subprocess
from functools import lru_cache
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Callable, Optional, Tuple

BASE_VERSION = "0.1.0"

DIST_NAME = "compose-py"

_LOCAL_JUNK = re.compile(r"[^A-Za-z0-9_.]+")
_DOTS = re.compile(r"\.{2,}")


def local_segment(describe: str) -> str:
    """'v0.1.0-3-gabc1234-dirty' -> '0.1.0.3.gabc1234.dirty' (PEP 440 local part)."""
    text = describe.strip().lstrip("v").replace("-", ".")
    return _DOTS.sub(".", _LOCAL_JUNK.sub(".", text)).strip(".")


@lru_cache(maxsize=1)
def git_describe(cwd: Optional[Path] = None) -> Optional[str]:
    cmd = ("git", "describe", "--tags", "--dirty", "--always")
    try:
        proc = subprocess.run(
            cmd,
            cwd=cwd or Path(__file__).resolve().parent,
            capture_output=True,
            text=True,
            timeout=1.5,
            env=dict(os.environ, LANG="C", LC_ALL="C"),
        )
    except (OSError, subprocess.SubprocessError):
        return None
    return (proc.stdout.strip() or None) if proc.returncode == 0 else None


def _from_env() -> Optional[str]:
    return os.getenv("COMPOSE_PY_VERSION") or None


def _from_metadata() -> Optional[str]:
    try:
        found = importlib_metadata.version(DIST_NAME)
    except importlib_metadata.PackageNotFoundError:
        return None
    return None if found in ("", "0.0.0") else found


def _from_git() -> Optional[str]:
    describe = os.getenv("GIT_DESCRIBE") or git_describe()
    return f"{BASE_VERSION}+{local_segment(describe)}" if describe else None


_SOURCES: Tuple[Callable[[], Optional[str]], ...] = (_from_env, _from_metadata, _from_git)


@lru_cache(maxsize=1)
def compute_version() -> str:
    for source in _SOURCES:
        found = source()
        if found:
            return found
    return f"{BASE_VERSION}+dev"


__version__ = compute_version()

__all__ = ["__version__", "BASE_VERSION", "DIST_NAME", "git_describe", "local_segment", "compute_version"]

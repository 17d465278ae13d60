from __future__ import annotations

import os
from pathlib import Path

import pytest

from compose_py.config import reload_config

TESTS_DIR = Path(__file__).resolve().parent
EXAMPLES_DIR = TESTS_DIR.parent / "examples"


@pytest.fixture(autouse=True)
def _clean_config(monkeypatch: pytest.MonkeyPatch):
    """Each test starts from default config, whatever the caller's environment holds."""
    for key in list(os.environ):
        if key.startswith("COMPOSE_PY_") and key != "COMPOSE_PY_VERSION":
            monkeypatch.delenv(key, raising=False)
    reload_config()
    yield
    monkeypatch.undo()
    reload_config()


@pytest.fixture
def bank_path() -> Path:
    p = EXAMPLES_DIR / "bank" / "contract.py"
    assert p.is_file(), f"missing bank example at {p}"
    return p

"""
compose_py.cli
--------------

Command-line entrypoint for the compose-py toolchain, exposed as the
`compose-py` console script (compose_py.cli.main:main):

  compose-py check   path/to/contract.py
  compose-py compile path/to/contract.py --out build/
  compose-py inspect build/bank.artifact.cbor
"""

from __future__ import annotations

from .main import app, main

__all__ = ["app", "main"]

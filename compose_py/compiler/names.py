"""
Identifier helpers shared by the validator, synthesizer and emitter.
"""

from __future__ import annotations

_PY_KEYWORDS = {
    "False", "None", "True", "and", "as", "assert", "async", "await", "break", "class", "continue",
    "def", "del", "elif", "else", "except", "finally", "for", "from", "global", "if", "import", "in",
    "is", "lambda", "nonlocal", "not", "or", "pass", "raise", "return", "try", "while", "with", "yield",
}


def snake(s: str) -> str:
    """`SetString` → `set_string`; already-snake names pass through unchanged."""
    out = []
    prev_lower = False
    for ch in s:
        if ch.isalnum():
            if ch.isupper() and prev_lower:
                out.append("_")
            out.append(ch.lower())
            prev_lower = ch.islower() or ch.isdigit()
        else:
            out.append("_")
            prev_lower = False
    return "".join(out).strip("_") or "x"


def pascal(s: str) -> str:
    """`set_string` → `SetString`."""
    return "".join(part[:1].upper() + part[1:] for part in snake(s).split("_") if part)


def field_name(param: str) -> str:
    """Wire field name for a declared parameter: leading underscores are dropped."""
    return param.lstrip("_")


def py_ident(s: str) -> str:
    s2 = "".join(ch if (ch.isalnum() or ch == "_") else "_" for ch in s.strip())
    if not s2:
        s2 = "x"
    if s2 in _PY_KEYWORDS:
        s2 += "_"
    if s2[0].isdigit():
        s2 = "_" + s2
    return s2


__all__ = ["snake", "pascal", "field_name", "py_ident"]

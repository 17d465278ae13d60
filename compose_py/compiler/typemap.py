"""
Annotation text → JSON Schema fragments for generated message shapes.

Only the annotation *text* is inspected (it was captured with ast.unparse);
nothing is evaluated. Names outside the table become an open schema titled
with the name, so author-defined types pass through untouched.
"""

from __future__ import annotations

import ast
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Tuple

_SCALARS: Dict[str, Dict[str, Any]] = {
    "int": {"type": "integer"},
    "str": {"type": "string"},
    "bool": {"type": "boolean"},
    "float": {"type": "number"},
    "bytes": {"type": "string", "contentEncoding": "base64"},
    "None": {"type": "null"},
    "NoneType": {"type": "null"},
    "Any": {},
    "object": {},
    "dict": {"type": "object"},
    "Dict": {"type": "object"},
    "Mapping": {"type": "object"},
    "list": {"type": "array"},
    "List": {"type": "array"},
    "Sequence": {"type": "array"},
    "tuple": {"type": "array"},
    "Tuple": {"type": "array"},
    "Uint128": {"type": "string", "pattern": "^[0-9]+$"},
}

_ARRAYS = {"list", "List", "Sequence", "tuple", "Tuple", "set", "Set", "FrozenSet", "frozenset"}
_MAPS = {"dict", "Dict", "Mapping"}


def _last(node: ast.AST) -> str:
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Name):
        return node.id
    return ""


def _subscript_args(node: ast.Subscript) -> List[ast.expr]:
    sl = node.slice
    return list(sl.elts) if isinstance(sl, ast.Tuple) else [sl]


def _node_schema(node: ast.expr) -> Dict[str, Any]:
    if isinstance(node, ast.Constant):
        if node.value is None:
            return {"type": "null"}
        if isinstance(node.value, str):  # forward reference
            return schema_for(node.value)
        return {}
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return {"anyOf": [_node_schema(node.left), _node_schema(node.right)]}
    if isinstance(node, ast.Subscript):
        base = _last(node.value)
        args = _subscript_args(node)
        if base == "Optional":
            return {"anyOf": [_node_schema(args[0]), {"type": "null"}]}
        if base == "Union":
            return {"anyOf": [_node_schema(a) for a in args]}
        if base in _ARRAYS:
            if base in ("tuple", "Tuple") and not (len(args) == 2 and isinstance(args[1], ast.Constant) and args[1].value is Ellipsis):
                items = [_node_schema(a) for a in args]
                # draft-07 positional form
                return {"type": "array", "items": items, "minItems": len(items), "maxItems": len(items)}
            return {"type": "array", "items": _node_schema(args[0])}
        if base in _MAPS:
            return {"type": "object", "additionalProperties": _node_schema(args[-1])}
        return {"title": ast.unparse(node)}
    name = _last(node)
    if name in _SCALARS:
        return dict(_SCALARS[name])
    return {"title": ast.unparse(node)}


def schema_for(annotation: str) -> Dict[str, Any]:
    """JSON Schema for one annotation string (e.g. 'Optional[int]')."""
    try:
        node = ast.parse(annotation.strip(), mode="eval").body
    except SyntaxError:
        return {"title": annotation}
    return _node_schema(node)


BytesShape = Tuple[str, ...]


def _bytes_shape(node: ast.expr) -> Optional[BytesShape]:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return bytes_shape(node.value)
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        sides = [node.left, node.right]
        if any(isinstance(s, ast.Constant) and s.value is None for s in sides):
            other = [s for s in sides if not (isinstance(s, ast.Constant) and s.value is None)]
            inner = _bytes_shape(other[0]) if other else None
            return ("optional",) + inner if inner else None
        return None
    if isinstance(node, ast.Subscript):
        base = _last(node.value)
        args = _subscript_args(node)
        if base == "Optional":
            inner = _bytes_shape(args[0])
            return ("optional",) + inner if inner else None
        variadic_tuple = len(args) == 2 and isinstance(args[1], ast.Constant) and args[1].value is Ellipsis
        if base in _ARRAYS and (len(args) == 1 or variadic_tuple):
            inner = _bytes_shape(args[0])
            return ("items",) + inner if inner else None
        return None
    return ("bytes",) if _last(node) == "bytes" else None


@lru_cache(maxsize=256)
def bytes_shape(annotation: str) -> Optional[BytesShape]:
    """
    Where base64 `bytes` sit inside an annotation, outermost first:
    'bytes' -> ('bytes',), 'Optional[List[bytes]]' -> ('optional', 'items', 'bytes').
    None when the annotation carries no bytes the runtime has to decode.
    """
    try:
        node = ast.parse(annotation.strip(), mode="eval").body
    except SyntaxError:
        return None
    return _bytes_shape(node)


def body_schema(fields: Sequence[Tuple[str, str]]) -> Dict[str, Any]:
    """Closed object schema for a handler's (field, annotation) list."""
    return {
        "type": "object",
        "properties": {name: schema_for(ann) for name, ann in fields},
        "required": [name for name, _ in fields],
        "additionalProperties": False,
    }


__all__ = ["BytesShape", "schema_for", "bytes_shape", "body_schema"]

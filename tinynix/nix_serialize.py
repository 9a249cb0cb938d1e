from __future__ import annotations

import json
from pathlib import Path, PurePath
from typing import Any
import collections.abc

import yaml

from tinynix.nix_datatypes import (
    Expression, Value, SearchPath, List as NixList, AttrSet, int_in_range,
)


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str, *, encoding: str = 'utf-8') -> str:
    if isinstance(data, (bytes, bytearray)):
        return data.decode(encoding)
    return data


def to_data(expr: Expression) -> Any:
    """
    Convert a value-only Expression into plain Python data.
    Paths become strings and search paths become "<name>".
    Unevaluated nodes (Ref, BinaryOp, ...) raise TypeError.
    """
    match expr:
        case Value(value=PurePath() as p):
            return str(p)
        case Value(value=v):
            return v
        case SearchPath(name=name):
            return f"<{name}>"
        case NixList(items=items):
            return [to_data(item) for item in items]
        case AttrSet(bindings=bindings):
            return {key: to_data(value) for key, value in bindings.items()}
        case _:
            raise TypeError(f"Cannot convert {type(expr).__name__} to data; evaluate it first.")


def from_data(obj: Any) -> Expression:
    """
    Convert plain Python data into a value-only Expression.
    dict -> AttrSet, list/tuple -> List, pathlib paths -> path values.
    """
    match obj:
        case Expression():
            return obj
        case None | bool() | float() | str():
            return Value(obj)
        case int():
            if not int_in_range(obj):
                raise ValueError(f"Integer {obj} does not fit in 64 bits.")
            return Value(obj)
        case PurePath():
            return Value(Path(obj))
        case collections.abc.Mapping():
            bindings = {}
            for key, value in obj.items():
                if not isinstance(key, str):
                    raise TypeError(f"Attribute names must be strings, not {type(key).__name__}")
                bindings[key] = from_data(value)
            return AttrSet(bindings)
        case list() | tuple():
            return NixList([from_data(item) for item in obj])
        case _:
            raise TypeError(f"Cannot convert {type(obj).__name__} to a tinynix value.")


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str, *, fmt: str = 'json') -> Expression:
    """
    Parse JSON or YAML text into a value-only Expression.
    Supported fmt: 'json', 'yaml'.
    """
    text = _norm_text(data)
    f = (fmt or '').lower()
    if f == 'json':
        return from_data(json.loads(text))
    if f == 'yaml':
        return from_data(yaml.safe_load(text))
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def serialize(expr: Expression, *, fmt: str = 'json', pretty: bool = True) -> str:
    """
    Convert a value-only Expression into JSON or YAML text.
    Attribute order is preserved in both formats.
    """
    f = (fmt or '').lower()
    built = to_data(expr)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "to_data",
    "from_data",
    "deserialize",
    "serialize",
]

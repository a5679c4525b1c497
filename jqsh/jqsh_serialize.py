from __future__ import annotations

import json
from fractions import Fraction
from typing import Any, Iterator, List, Optional
import collections.abc

import yaml

from jqsh.jqsh_datatypes import (
    Value, HashableValue, ExceptionValue, Null, Boolean, Number, String, Array, Object, Function,
    HashableString, NULL, narrow,
)


# --------------------------
# Helpers
# --------------------------

def _number_to_python(n: Fraction) -> Any:
    if n.denominator == 1:
        return int(n)
    return float(n)


def from_python(obj: Any) -> Value:
    """Converts plain Python data (as loaded from JSON or YAML) to a Value."""
    if isinstance(obj, Value):
        return obj
    if isinstance(obj, HashableValue):
        return obj.widen()
    if obj is None:
        return NULL
    if isinstance(obj, bool):
        return Boolean(obj)
    if isinstance(obj, float):
        if obj != obj or obj in (float("inf"), float("-inf")):
            raise ValueError(f"{obj!r} has no exact rational value")
        return Number(Fraction(str(obj)))
    if isinstance(obj, (int, Fraction)):
        return Number(obj)
    if isinstance(obj, str):
        return String(obj)
    if isinstance(obj, collections.abc.Mapping):
        pairs = []
        for k, v in obj.items():
            hk = HashableString(k) if isinstance(k, str) else narrow(from_python(k))
            pairs.append((hk, from_python(v)))
        return Object(pairs)
    if isinstance(obj, (list, tuple)):
        return Array(from_python(x) for x in obj)
    # YAML can produce dates and similar scalars; keep their text.
    return String(str(obj))


def to_python(value: Any) -> Any:
    """Converts a Value (or HashableValue) to plain Python data."""
    if isinstance(value, HashableValue):
        value = value.widen()
    if isinstance(value, Null):
        return None
    if isinstance(value, (Boolean, String)):
        return value.value
    if isinstance(value, Number):
        return _number_to_python(value.value)
    if isinstance(value, Array):
        return [to_python(x) for x in value.items]
    if isinstance(value, Object):
        out = {}
        for k, v in value.entries.items():
            pk = k.value if isinstance(k, HashableString) else json.dumps(to_python(k))
            out[pk] = to_python(v)
        return out
    if isinstance(value, ExceptionValue):
        return {"__raise__": value.name, "metadata": to_python(value.metadata)}
    if isinstance(value, Function):
        raise TypeError("functions cannot be serialized")
    raise TypeError(f"not a jqsh value: {type(value).__name__}")


def detect_format(data_hint: str) -> str:
    """Returns 'json' when the text looks like JSON, else 'yaml'."""
    s = data_hint.lstrip()
    if not s or s[0] in '{["' or s[0].isdigit() or (s[0] == '-' and s[1:2].isdigit()):
        return 'json'
    if s.split(None, 1)[0] in ('true', 'false', 'null'):
        return 'json'
    return 'yaml'


def _json_documents(text: str) -> Iterator[Any]:
    decoder = json.JSONDecoder()
    pos = 0
    n = len(text)
    while True:
        while pos < n and text[pos].isspace():
            pos += 1
        if pos >= n:
            return
        obj, pos = decoder.raw_decode(text, pos)
        yield obj


# --------------------------
# Public API
# --------------------------

def deserialize(text: str, *, fmt: Optional[str] = None) -> List[Value]:
    """Parses every document in `text` into Values.

    JSON input may hold several whitespace-separated documents; YAML input
    may hold several `---` separated documents.
    """
    f = fmt or detect_format(text)
    if f == 'json':
        return [from_python(doc) for doc in _json_documents(text)]
    if f == 'yaml':
        return [from_python(doc) for doc in yaml.safe_load_all(text)]
    raise ValueError(f"unsupported format: {f}")


def serialize(value: Value, *, fmt: str = 'json') -> str:
    """Renders a Value as JSON (compact) or YAML."""
    built = to_python(value)
    if fmt == 'json':
        return json.dumps(built, ensure_ascii=False, separators=(',', ':'))
    if fmt == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    raise ValueError(f"unsupported format: {fmt}")

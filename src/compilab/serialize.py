"""JSON encoding of analysis results with orjson.

Dataclasses become objects, sets become sorted lists and the small value
types that read best as text (expressions, productions, LR items and
actions) become their printed form.
"""

from __future__ import annotations

import dataclasses
from typing import Any

import orjson

from compilab.lexical.regex_ast import Regex
from compilab.syntax.grammar import Grammar, Production
from compilab.syntax.lr import ActionEntry, LRItem

_OPTIONS = orjson.OPT_PASSTHROUGH_DATACLASS | orjson.OPT_NON_STR_KEYS


def _default(obj: Any) -> Any:
    if isinstance(obj, set | frozenset):
        return sorted(obj)
    if isinstance(obj, Regex | Production | LRItem | ActionEntry):
        return str(obj)
    if isinstance(obj, Grammar):
        return {
            "start_symbol": obj.start_symbol,
            "terminals": obj.terminals,
            "non_terminals": obj.non_terminals,
            "productions": [str(p) for p in obj.productions],
        }
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def dumps(obj: Any) -> bytes:
    """Encode ``obj`` as UTF-8 JSON bytes."""
    return orjson.dumps(obj, default=_default, option=_OPTIONS)


def to_jsonable(obj: Any) -> Any:
    """Plain dict/list/str/number form of ``obj``."""
    return orjson.loads(dumps(obj))

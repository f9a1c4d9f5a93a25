from __future__ import annotations

import datetime as _dt
from collections.abc import Mapping
from typing import Any, Dict, Iterator, List, Tuple, Union

from .errors import PathNotFound

UnifiedValue = Union[None, bool, int, float, str, Tuple[Any, ...], "FrozenMapping"]


class FrozenMapping(Mapping[str, Any]):
    """Immutable, insertion-ordered mapping node of a UnifiedValue tree."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None):
        self._data: Dict[str, Any] = {_lift_key(key): lift(value) for key, value in (data or {}).items()}

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FrozenMapping):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self._data.items()))

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"FrozenMapping({self._data!r})"

    def to_dict(self) -> Dict[str, Any]:
        return {key: unfreeze(value) for key, value in self._data.items()}


def _lift_key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if isinstance(key, (int, float)) or key is None:
        return "null" if key is None else str(key)
    if isinstance(key, (_dt.date, _dt.time)):
        return key.isoformat()
    raise TypeError(f"unsupported mapping key type {type(key).__name__}")


def lift(value: Any) -> UnifiedValue:
    """Convert parser output into the UnifiedValue variant set.

    Dicts become FrozenMappings with string keys, lists become tuples and
    dates/times become ISO-8601 strings. Anything else raises TypeError.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, FrozenMapping):
        return value
    if isinstance(value, Mapping):
        frozen = FrozenMapping()
        frozen._data = {_lift_key(key): lift(item) for key, item in value.items()}
        return frozen
    if isinstance(value, (list, tuple)):
        return tuple(lift(item) for item in value)
    if isinstance(value, (_dt.date, _dt.time)):
        return value.isoformat()
    raise TypeError(f"unsupported value type {type(value).__name__}")


def unfreeze(value: Any) -> Any:
    """Return a plain, mutable copy (dicts and lists) of a UnifiedValue."""
    if isinstance(value, FrozenMapping):
        return value.to_dict()
    if isinstance(value, tuple):
        return [unfreeze(item) for item in value]
    return value


def type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, tuple):
        return "sequence"
    if isinstance(value, Mapping):
        return "mapping"
    return type(value).__name__


def parse_path(expression: str) -> List[str]:
    """Split a dot-notation path expression into its segments."""
    if not isinstance(expression, str) or not expression:
        raise PathNotFound(str(expression))
    segments = expression.split(".")
    if any(segment == "" for segment in segments):
        raise PathNotFound(expression)
    return segments


def _as_index(segment: str) -> int | None:
    if segment.isascii() and segment.isdigit():
        return int(segment)
    return None


def traverse(root: UnifiedValue, expression: str) -> UnifiedValue:
    """Walk *root* along *expression*, raising PathNotFound on any miss."""
    current = root
    for segment in parse_path(expression):
        if isinstance(current, Mapping):
            if segment not in current:
                raise PathNotFound(expression)
            current = current[segment]
            continue
        if isinstance(current, tuple):
            index = _as_index(segment)
            if index is None or index >= len(current):
                raise PathNotFound(expression)
            current = current[index]
            continue
        raise PathNotFound(expression)
    return current


def iter_paths(value: UnifiedValue, prefix: Tuple[str, ...] = ()) -> Iterator[Tuple[str, ...]]:
    """Yield every addressable path of a tree, parents before children."""
    if isinstance(value, Mapping):
        items = value.items()
    elif isinstance(value, tuple):
        items = ((str(index), item) for index, item in enumerate(value))
    else:
        return
    for key, item in items:
        current = prefix + (key,)
        yield current
        yield from iter_paths(item, current)


__all__ = [
    "UnifiedValue",
    "FrozenMapping",
    "lift",
    "unfreeze",
    "type_name",
    "parse_path",
    "traverse",
    "iter_paths",
]

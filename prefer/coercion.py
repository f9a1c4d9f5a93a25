"""Typed extraction of UnifiedValues.

The rules are fixed and identical for every source format: integers never
absorb fractional floats, strings never absorb numbers, and booleans accept
only ``true``/``false`` spellings.

Structured targets: a dataclass is filled field by field under the same
rules, while a pydantic model validates the plain mapping with its own field
types and validators.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import re
import types
import typing
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

from pydantic import BaseModel, ValidationError

from .errors import TypeMismatch
from .value import FrozenMapping, type_name, unfreeze

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_FLOAT_PATTERN = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")

_SEQUENCE_ORIGINS = (list, tuple, collections.abc.Sequence, collections.abc.Iterable)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping)


def _type_label(target: Any) -> str:
    if isinstance(target, type):
        return target.__name__
    return str(target).replace("typing.", "")


def _to_int(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and _INT_PATTERN.fullmatch(value):
        return int(value)
    raise TypeMismatch("int", _describe(value))


def _to_float(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str) and _FLOAT_PATTERN.fullmatch(value):
        return float(value)
    raise TypeMismatch("float", _describe(value))


def _to_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    raise TypeMismatch("str", _describe(value))


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise TypeMismatch("bool", _describe(value))


def _to_path(value: Any) -> Path:
    if isinstance(value, str):
        return Path(value)
    raise TypeMismatch("Path", _describe(value))


def _to_frozen(value: Any) -> FrozenMapping:
    if isinstance(value, FrozenMapping):
        return value
    raise TypeMismatch("FrozenMapping", _describe(value))


_SCALARS: Dict[Any, Callable[[Any], Any]] = {
    int: _to_int,
    float: _to_float,
    str: _to_str,
    bool: _to_bool,
    Path: _to_path,
    FrozenMapping: _to_frozen,
}


def _describe(value: Any) -> str:
    label = type_name(value)
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return f"{label} {value!r}"
    return label


def _coerce_sequence(value: Any, item_type: Any, container: type, target: Any) -> Any:
    if not isinstance(value, tuple):
        raise TypeMismatch(_type_label(target), _describe(value))
    items = []
    for index, item in enumerate(value):
        try:
            items.append(coerce(item, item_type))
        except TypeMismatch as exc:
            raise exc.nested(f"[{index}]") from None
    return container(items)


def _coerce_mapping(value: Any, key_type: Any, value_type: Any, target: Any) -> Dict[Any, Any]:
    if not isinstance(value, FrozenMapping):
        raise TypeMismatch(_type_label(target), _describe(value))
    result: Dict[Any, Any] = {}
    for key, item in value.items():
        try:
            converted_key = coerce(key, key_type)
            result[converted_key] = coerce(item, value_type)
        except TypeMismatch as exc:
            raise exc.nested(key) from None
    return result


def _location(loc: Tuple[Any, ...]) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path


def _coerce_model(value: Any, target: type) -> BaseModel:
    if not isinstance(value, FrozenMapping):
        raise TypeMismatch(target.__name__, _describe(value))
    try:
        return target.model_validate(value.to_dict())
    except ValidationError as exc:
        first = exc.errors()[0]
        raise TypeMismatch(target.__name__, first["msg"], _location(tuple(first["loc"]))) from None


def _coerce_dataclass(value: Any, target: type) -> Any:
    if not isinstance(value, FrozenMapping):
        raise TypeMismatch(target.__name__, _describe(value))
    hints = typing.get_type_hints(target)
    kwargs: Dict[str, Any] = {}
    for field in dataclasses.fields(target):
        if not field.init:
            continue
        if field.name not in value:
            if field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING:
                raise TypeMismatch(target.__name__, "missing field", field.name)
            continue
        try:
            kwargs[field.name] = coerce(value[field.name], hints.get(field.name))
        except TypeMismatch as exc:
            raise exc.nested(field.name) from None
    return target(**kwargs)


def _tuple_item_type(args: Tuple[Any, ...]) -> Any:
    if len(args) == 2 and args[1] is Ellipsis:
        return args[0]
    if len(args) == 1:
        return args[0]
    # Fixed-length heterogeneous tuples are not a configuration shape.
    raise TypeError(f"unsupported tuple target tuple[{', '.join(map(_type_label, args))}]")


def coerce(value: Any, target: Any = None) -> Any:
    """Convert *value* to *target*, raising TypeMismatch when the rules forbid it.

    ``None``, ``typing.Any`` and ``object`` return the raw value untouched.
    """
    if target is None or target is Any or target is object:
        return value

    scalar = _SCALARS.get(target)
    if scalar is not None:
        return scalar(value)

    if isinstance(target, type) and typing.get_origin(target) is None:
        if issubclass(target, BaseModel):
            return _coerce_model(value, target)
        if dataclasses.is_dataclass(target):
            return _coerce_dataclass(value, target)

    if target is list or target is tuple:
        if not isinstance(value, tuple):
            raise TypeMismatch(target.__name__, _describe(value))
        return target(unfreeze(item) for item in value)
    if target is dict:
        if not isinstance(value, FrozenMapping):
            raise TypeMismatch("dict", _describe(value))
        return value.to_dict()

    origin = typing.get_origin(target)
    args = typing.get_args(target)

    if origin is typing.Union or (hasattr(types, "UnionType") and origin is types.UnionType):
        members = [arg for arg in args if arg is not type(None)]
        if value is None and len(members) < len(args):
            return None
        if len(members) == 1:
            return coerce(value, members[0])
        for member in members:
            try:
                return coerce(value, member)
            except TypeMismatch:
                continue
        raise TypeMismatch(_type_label(target), _describe(value))

    if origin is tuple:
        return _coerce_sequence(value, _tuple_item_type(args), tuple, target)
    if origin in _SEQUENCE_ORIGINS:
        item_type = args[0] if args else None
        return _coerce_sequence(value, item_type, list, target)
    if origin in _MAPPING_ORIGINS:
        key_type, value_type = args if len(args) == 2 else (str, None)
        return _coerce_mapping(value, key_type, value_type, target)

    raise TypeError(f"unsupported coercion target {_type_label(target)}")


__all__ = ["coerce"]

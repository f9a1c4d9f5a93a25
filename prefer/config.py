from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from .coercion import coerce
from .errors import PathNotFound, TypeMismatch
from .formats import FormatKey
from .providers import ChangeToken
from .value import FrozenMapping, UnifiedValue, iter_paths, lift, traverse

_MISSING: Any = object()


@dataclass(frozen=True)
class ResolvedSource:
    """Identity of the file a Configuration was loaded from."""

    path: Path
    format: FormatKey
    token: ChangeToken


class Configuration:
    """Immutable snapshot of one parsed configuration file.

    A reload produces a new instance; holders of an older snapshot keep
    seeing consistent data.
    """

    __slots__ = ("_data", "_source")

    def __init__(self, data: Mapping[str, Any] | None = None, source: Optional[ResolvedSource] = None):
        root = lift(data if data is not None else {})
        if not isinstance(root, FrozenMapping):
            raise TypeError("configuration root must be a mapping")
        object.__setattr__(self, "_data", root)
        object.__setattr__(self, "_source", source)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Configuration is immutable")

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        where = self._source.path if self._source else "<memory>"
        return f"Configuration(source={where!s}, keys={list(self._data)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Configuration):
            return NotImplemented
        return self._data == other._data and self._source == other._source

    __hash__ = None  # type: ignore[assignment]

    # -------------------- metadata --------------------
    @property
    def source(self) -> Optional[ResolvedSource]:
        return self._source

    @property
    def path(self) -> Optional[Path]:
        return self._source.path if self._source else None

    @property
    def format(self) -> Optional[FormatKey]:
        return self._source.format if self._source else None

    @property
    def data(self) -> FrozenMapping:
        return self._data

    # -------------------- accessors --------------------
    def get_value(self, path: str) -> UnifiedValue:
        return traverse(self._data, path)

    def get(self, path: str, as_type: Any = None, *, default: Any = _MISSING) -> Any:
        """Look up a dot-notation *path* and coerce it to *as_type*.

        ``default`` replaces a missing path; a value that exists but cannot be
        coerced always raises TypeMismatch.
        """
        try:
            value = traverse(self._data, path)
        except PathNotFound:
            if default is _MISSING:
                raise
            return default
        try:
            return coerce(value, as_type)
        except TypeMismatch as exc:
            raise exc.nested(path) from None

    def has(self, path: str) -> bool:
        try:
            traverse(self._data, path)
        except PathNotFound:
            return False
        return True

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.has(path)

    def __getitem__(self, path: str) -> UnifiedValue:
        return traverse(self._data, path)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def keys(self):
        return self._data.keys()

    def paths(self) -> Iterator[str]:
        """Every addressable dot path, parents first."""
        for segments in iter_paths(self._data):
            yield ".".join(segments)

    def flatten(self) -> Dict[str, UnifiedValue]:
        """Leaf values keyed by dot path."""
        leaves: Dict[str, UnifiedValue] = {}

        def _walk(value: UnifiedValue, prefix: str) -> None:
            if isinstance(value, FrozenMapping):
                items = value.items()
            elif isinstance(value, tuple):
                items = ((str(index), item) for index, item in enumerate(value))
            else:
                leaves[prefix] = value
                return
            for key, item in items:
                _walk(item, f"{prefix}.{key}" if prefix else key)

        _walk(self._data, "")
        return leaves

    def to_dict(self) -> Dict[str, Any]:
        return self._data.to_dict()


__all__ = ["Configuration", "ResolvedSource"]

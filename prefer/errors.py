"""Exception hierarchy shared by discovery, loading, access and watching.

Callers catch :class:`PreferError` to handle every library failure at once, or
the concrete subclasses to tell "nothing found" from "found but broken" from
"found but unreadable".
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Sequence


class PreferError(Exception):
    """Base type for all exceptions raised by ``prefer``."""


class InvalidName(PreferError, ValueError):
    def __init__(self, name: Any, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid configuration name {name!r}: {reason}")


class NotFound(PreferError, LookupError):
    """No candidate file exists for a configuration name."""

    def __init__(self, name: str, searched: Sequence[Path] = ()):
        self.name = name
        self.searched = tuple(searched)
        super().__init__(f"Configuration '{name}' not found in any search path")


class IoError(PreferError, OSError):
    """Stat, read or subscribe failure for an existing path."""

    def __init__(self, path: Path | str, cause: BaseException):
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Failed to access configuration file {self.path}: {cause}")


class ParseError(PreferError, ValueError):
    def __init__(self, format: str, cause: BaseException | str, path: Optional[Path | str] = None):
        self.format = format
        self.cause = cause
        self.path = Path(path) if path is not None else None
        where = f" file at {self.path}" if self.path is not None else " content"
        super().__init__(f"Failed to parse {format}{where}: {cause}")

    def with_path(self, path: Path | str) -> "ParseError":
        """Return a copy of this error pointing at *path*."""
        error = ParseError(self.format, self.cause, path)
        error.__cause__ = self.__cause__
        return error


class UnsupportedFormat(PreferError, ValueError):
    """The format is unknown or disabled in the active registry."""

    def __init__(self, target: Any):
        self.target = target
        super().__init__(f"Invalid or unsupported configuration format for: {target}")


class PathNotFound(PreferError, KeyError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(path)

    def __str__(self) -> str:
        return f"Configuration key '{self.path}' not found"


class TypeMismatch(PreferError, TypeError):
    def __init__(self, expected: str, actual: str, path: str = ""):
        self.expected = expected
        self.actual = actual
        self.path = path
        super().__init__(self._message())

    def _message(self) -> str:
        where = f" at '{self.path}'" if self.path else ""
        return f"Cannot convert value{where} to {self.expected}: found {self.actual}"

    def with_path(self, path: str) -> "TypeMismatch":
        return TypeMismatch(self.expected, self.actual, path)

    def nested(self, prefix: str) -> "TypeMismatch":
        """Prefix the failing position with *prefix* (``servers`` + ``[1]``)."""
        if not self.path:
            return self.with_path(prefix)
        joiner = "" if self.path.startswith("[") else "."
        return self.with_path(f"{prefix}{joiner}{self.path}")


class WatchError(PreferError):
    """Watch lifecycle misuse or an unusable change subscription."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message if cause is None else f"{message}: {cause}")


__all__ = [
    "PreferError",
    "InvalidName",
    "NotFound",
    "IoError",
    "ParseError",
    "UnsupportedFormat",
    "PathNotFound",
    "TypeMismatch",
    "WatchError",
]

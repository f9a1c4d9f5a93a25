"""Ordered, platform-aware candidate paths for a configuration name.

Priority is current directory first, then user-scoped locations, then
system-wide locations. Nothing here touches the file system; existence checks
belong to the loader.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .errors import InvalidName
from .formats import FormatKey, FormatRegistry, default_registry
from .providers import PathsProvider, SystemPaths

POSIX_SYSTEM_DIRS: Tuple[str, ...] = ("/usr/local/etc", "/usr/etc", "/etc")


@dataclass(frozen=True)
class Candidate:
    directory: Path
    filename: str
    format: FormatKey

    @property
    def path(self) -> Path:
        return self.directory / self.filename


@dataclass(frozen=True)
class CandidatePath:
    name: str
    candidates: Tuple[Candidate, ...]

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self.candidates)

    def __len__(self) -> int:
        return len(self.candidates)

    def __getitem__(self, index: int) -> Candidate:
        return self.candidates[index]

    @property
    def paths(self) -> Tuple[Path, ...]:
        return tuple(candidate.path for candidate in self.candidates)

    @property
    def directories(self) -> Tuple[Path, ...]:
        seen: List[Path] = []
        for candidate in self.candidates:
            if candidate.directory not in seen:
                seen.append(candidate.directory)
        return tuple(seen)

    @property
    def filenames(self) -> frozenset:
        return frozenset(candidate.filename for candidate in self.candidates)


def validate_name(name: object) -> str:
    if not isinstance(name, str):
        raise InvalidName(name, "must be a string")
    if not name:
        raise InvalidName(name, "must not be empty")
    if name != name.strip():
        raise InvalidName(name, "must not have surrounding whitespace")
    if "/" in name or "\\" in name or (os.sep in name) or (os.altsep and os.altsep in name):
        raise InvalidName(name, "must not contain path separators")
    if "." in name:
        raise InvalidName(name, "must be a bare name without an extension")
    if "\x00" in name:
        raise InvalidName(name, "must not contain NUL")
    return name


def _posix_dirs(provider: PathsProvider) -> List[Path]:
    dirs: List[Path] = []
    home = provider.home()

    config_home = provider.env("XDG_CONFIG_HOME")
    if config_home:
        dirs.append(Path(config_home))
    elif home is not None:
        dirs.append(home / ".config")

    config_dirs = provider.env("XDG_CONFIG_DIRS")
    if config_dirs:
        dirs.extend(Path(entry) for entry in config_dirs.split(":") if entry)

    if home is not None:
        dirs.append(home)

    dirs.extend(Path(entry) for entry in POSIX_SYSTEM_DIRS)
    return dirs


def _windows_dirs(provider: PathsProvider) -> List[Path]:
    dirs: List[Path] = []
    home = provider.home()
    profile = provider.env("USERPROFILE")
    if profile:
        home = Path(profile)
    if home is not None:
        dirs.append(home)

    appdata = provider.env("APPDATA")
    if appdata:
        dirs.append(Path(appdata))
    elif home is not None:
        dirs.append(home / "AppData" / "Roaming")

    for variable in ("ProgramData", "SystemRoot"):
        value = provider.env(variable)
        if value:
            dirs.append(Path(value))
    return dirs


def search_paths(provider: Optional[PathsProvider] = None) -> List[Path]:
    """Directories to search, highest priority first, duplicates removed."""
    provider = provider or SystemPaths()
    ordered: List[Path] = []
    cwd = provider.cwd()
    if cwd is not None:
        ordered.append(cwd)
    ordered.extend(_windows_dirs(provider) if provider.is_windows else _posix_dirs(provider))

    unique: List[Path] = []
    for directory in ordered:
        if directory not in unique:
            unique.append(directory)
    return unique


def resolve(
    name: str,
    provider: Optional[PathsProvider] = None,
    registry: Optional[FormatRegistry] = None,
) -> CandidatePath:
    """Expand every enabled extension against every search directory."""
    name = validate_name(name)
    registry = registry or default_registry()
    extensions = registry.extensions()
    candidates = tuple(
        Candidate(directory, f"{name}.{extension}", registry.format_for(f"{name}.{extension}"))
        for directory in search_paths(provider)
        for extension in extensions
    )
    return CandidatePath(name, candidates)


__all__ = [
    "Candidate",
    "CandidatePath",
    "validate_name",
    "search_paths",
    "resolve",
    "POSIX_SYSTEM_DIRS",
]

from __future__ import annotations

from pathlib import Path
from typing import Optional

from loguru import logger

from .config import Configuration, ResolvedSource
from .discovery import Candidate, CandidatePath, resolve
from .errors import NotFound, ParseError, UnsupportedFormat
from .formats import FormatKey, FormatRegistry, default_registry
from .providers import FileSystemProvider, LocalFileSystem, PathsProvider, SystemPaths
from .value import FrozenMapping, lift


class Loader:
    """Resolves a configuration name to the first existing candidate and parses it.

    First found wins, not first valid: a malformed high-priority file masks
    every lower-priority candidate.
    """

    def __init__(
        self,
        registry: Optional[FormatRegistry] = None,
        fs: Optional[FileSystemProvider] = None,
        paths: Optional[PathsProvider] = None,
    ):
        self.registry = registry or default_registry()
        self.fs = fs or LocalFileSystem()
        self.paths = paths or SystemPaths()

    def candidates(self, name: str) -> CandidatePath:
        return resolve(name, self.paths, self.registry)

    async def locate(self, name: str) -> Candidate:
        candidate_path = self.candidates(name)
        for candidate in candidate_path:
            if await self.fs.exists(candidate.path):
                logger.debug(f"Configuration '{name}' resolved to {candidate.path}")
                return candidate
        logger.debug(f"Configuration '{name}' not found in {len(candidate_path.directories)} directories")
        raise NotFound(name, candidate_path.directories)

    async def load(self, name: str) -> Configuration:
        candidate = await self.locate(name)
        return await self._read(candidate.path, candidate.format)

    async def load_path(self, path: Path | str) -> Configuration:
        path = Path(path)
        if not await self.fs.exists(path):
            raise NotFound(str(path), (path.parent,))
        tag = self.registry.format_for(path)
        if tag is None:
            data = await self.fs.read_all(path)
            tag = self.registry.sniff(data)
            if tag is None:
                raise UnsupportedFormat(path)
            return self._build(path, tag, data, await self.fs.change_token(path))
        return await self._read(path, tag)

    async def _read(self, path: Path, tag: FormatKey) -> Configuration:
        # The token is taken before reading so a write racing the read is
        # seen as a newer version on the next comparison.
        token = await self.fs.change_token(path)
        data = await self.fs.read_all(path)
        return self._build(path, tag, data, token)

    def _build(self, path: Path, tag: FormatKey, data: bytes, token) -> Configuration:
        root = self.registry.parse(tag, data, path)
        if root is None:
            root = lift({})
        if not isinstance(root, FrozenMapping):
            raise ParseError(str(tag), "document root must be a mapping", path)
        source = ResolvedSource(path.absolute(), tag, token)
        logger.debug(f"Loaded {str(tag)} configuration from {source.path}")
        return Configuration(root, source)


async def load(name: str) -> Configuration:
    """Load the configuration called *name* from the standard search paths."""
    return await Loader().load(name)


async def load_path(path: Path | str) -> Configuration:
    return await Loader().load_path(path)


async def find_config_file(name: str) -> Path:
    candidate = await Loader().locate(name)
    return candidate.path


__all__ = ["Loader", "load", "load_path", "find_config_file"]

"""Collaborators injected into discovery, loading and watching.

``PathsProvider`` answers "where do configurations live on this machine" and
``FileSystemProvider`` performs the only I/O the core needs: stat, read and
change subscriptions.
"""

from __future__ import annotations

import asyncio
import os
import stat as stat_mode
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Mapping, Optional, Protocol, Tuple

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import IoError, WatchError

ChangeToken = Tuple[int, int]


# ---------------------------------------------------------------------------
# Environment / OS paths
# ---------------------------------------------------------------------------

class PathsProvider(Protocol):
    @property
    def is_windows(self) -> bool: ...

    def cwd(self) -> Optional[Path]: ...

    def home(self) -> Optional[Path]: ...

    def env(self, name: str) -> Optional[str]: ...


class SystemPaths:
    """Reads the live process environment."""

    @property
    def is_windows(self) -> bool:
        return sys.platform.startswith("win")

    def cwd(self) -> Optional[Path]:
        try:
            return Path.cwd()
        except OSError:
            # The working directory was removed underneath the process.
            return None

    def home(self) -> Optional[Path]:
        try:
            return Path.home()
        except RuntimeError:
            return None

    def env(self, name: str) -> Optional[str]:
        return os.environ.get(name)


@dataclass(frozen=True)
class StaticPaths:
    """A fixed environment snapshot, for deterministic discovery."""

    cwd_dir: Optional[Path] = None
    home_dir: Optional[Path] = None
    environ: Mapping[str, str] = field(default_factory=dict)
    windows: bool = False

    @classmethod
    def snapshot(cls, provider: Optional[PathsProvider] = None, names: Tuple[str, ...] = ()) -> "StaticPaths":
        provider = provider or SystemPaths()
        values = {name: provider.env(name) for name in names}
        return cls(
            cwd_dir=provider.cwd(),
            home_dir=provider.home(),
            environ={name: value for name, value in values.items() if value is not None},
            windows=provider.is_windows,
        )

    @property
    def is_windows(self) -> bool:
        return self.windows

    def cwd(self) -> Optional[Path]:
        return self.cwd_dir

    def home(self) -> Optional[Path]:
        return self.home_dir

    def env(self, name: str) -> Optional[str]:
        return self.environ.get(name)


# ---------------------------------------------------------------------------
# File system
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChangeEvent:
    path: Path
    kind: str


class ChangeSubscription(Protocol):
    def __aiter__(self) -> AsyncIterator[ChangeEvent]: ...

    async def __anext__(self) -> ChangeEvent: ...

    def close(self) -> None: ...

    async def aclose(self) -> None: ...


class FileSystemProvider(Protocol):
    async def exists(self, path: Path) -> bool: ...

    async def read_all(self, path: Path) -> bytes: ...

    async def change_token(self, path: Path) -> ChangeToken: ...

    def subscribe(self, directory: Path) -> ChangeSubscription: ...


class _QueueHandler(FileSystemEventHandler):
    """Forwards watchdog events from the observer thread into the event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[Any]"):
        self._loop = loop
        self._queue = queue

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in ("created", "modified", "moved", "deleted"):
            return
        # A move touches both names: renaming the watched file away matters
        # as much as renaming a file into place.
        targets = [event.src_path]
        if event.event_type == "moved" and event.dest_path:
            targets.append(event.dest_path)
        for target in targets:
            if isinstance(target, bytes):
                target = os.fsdecode(target)
            change = ChangeEvent(Path(target), event.event_type)
            try:
                self._loop.call_soon_threadsafe(self._queue.put_nowait, change)
            except RuntimeError:
                # Loop already closed; the subscription is going away.
                logger.debug(f"Dropping change event for {target}: event loop closed")
                return


class WatchdogSubscription:
    """Directory subscription backed by a watchdog observer thread."""

    _CLOSED = object()

    def __init__(self, directory: Path, observer_factory=Observer):
        self.directory = Path(directory)
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._observer = observer_factory()
        self._closed = False
        try:
            self._observer.schedule(_QueueHandler(self._loop, self._queue), str(self.directory), recursive=False)
            self._observer.start()
        except OSError as exc:
            raise WatchError(f"Cannot watch {self.directory}", exc) from exc
        logger.debug(f"Watching directory {self.directory}")

    def __aiter__(self) -> "WatchdogSubscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is self._CLOSED:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        """Stop the observer and end iteration without waiting for its thread."""
        if self._closed:
            return
        self._closed = True
        self._observer.stop()
        self._queue.put_nowait(self._CLOSED)
        logger.debug(f"Stopped watching directory {self.directory}")

    async def aclose(self) -> None:
        self.close()
        await asyncio.to_thread(self._observer.join, 5.0)


class LocalFileSystem:
    """Default provider; blocking calls run in the default executor."""

    async def exists(self, path: Path) -> bool:
        try:
            info = await asyncio.to_thread(os.stat, path)
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as exc:
            raise IoError(path, exc) from exc
        return stat_mode.S_ISREG(info.st_mode)

    async def read_all(self, path: Path) -> bytes:
        try:
            return await asyncio.to_thread(Path(path).read_bytes)
        except OSError as exc:
            raise IoError(path, exc) from exc

    async def change_token(self, path: Path) -> ChangeToken:
        try:
            stat = await asyncio.to_thread(os.stat, path)
        except OSError as exc:
            raise IoError(path, exc) from exc
        return stat.st_mtime_ns, stat.st_size

    def subscribe(self, directory: Path) -> WatchdogSubscription:
        return WatchdogSubscription(directory)


__all__ = [
    "ChangeToken",
    "PathsProvider",
    "SystemPaths",
    "StaticPaths",
    "ChangeEvent",
    "ChangeSubscription",
    "FileSystemProvider",
    "LocalFileSystem",
    "WatchdogSubscription",
]

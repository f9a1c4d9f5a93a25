"""Watching a configuration for changes.

A ``Watcher`` owns one change subscription on the directory of the file it
last loaded and moves it when a reload resolves to another directory; the
old name of a moved file counts as a change. Matching events set a pending
flag; a single reload task waits out the debounce window and re-runs the
whole loader pipeline, so any burst of events costs at most one reload in
flight plus one queued behind it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, FrozenSet, List, Optional

from loguru import logger

from .config import Configuration, ResolvedSource
from .discovery import validate_name
from .errors import IoError, PreferError, WatchError
from .loader import Loader
from .logging_utils import log_operation
from .settings import get_settings


class WatchState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    CLOSED = "closed"


RELOADED = "reloaded"
RELOAD_FAILED = "reload_failed"
CLOSED = "closed"


@dataclass(frozen=True)
class WatchEvent:
    kind: str
    source: Optional[ResolvedSource] = None
    error: Optional[BaseException] = None
    snapshot: Optional[Configuration] = None


EventCallback = Callable[[WatchEvent], None]


class SnapshotStream:
    """Async iterator over reloaded snapshots with latest-value semantics.

    Each stream keeps a single slot: a reader that falls behind gets only the
    newest snapshot, never a backlog.
    """

    def __init__(self, watcher: "Watcher", owns_watcher: bool = False):
        self._watcher = watcher
        self._owns_watcher = owns_watcher
        self._latest: Optional[Configuration] = None
        self._error: Optional[BaseException] = None
        self._ended = False
        self._ready = asyncio.Event()

    @property
    def watcher(self) -> "Watcher":
        return self._watcher

    @property
    def current(self) -> Optional[Configuration]:
        return self._watcher.current

    @property
    def closed(self) -> bool:
        return self._ended

    def _push(self, snapshot: Configuration) -> None:
        self._latest = snapshot
        self._ready.set()

    def _fail(self, error: BaseException) -> None:
        self._error = error
        self._ready.set()

    def _end(self) -> None:
        self._ended = True
        self._ready.set()

    def __aiter__(self) -> "SnapshotStream":
        return self

    async def __anext__(self) -> Configuration:
        while True:
            if self._latest is not None:
                snapshot, self._latest = self._latest, None
                return snapshot
            if self._error is not None:
                error, self._error = self._error, None
                raise error
            if self._ended:
                raise StopAsyncIteration
            self._ready.clear()
            await self._ready.wait()

    async def aclose(self) -> None:
        if self._owns_watcher:
            await self._watcher.stop()
        else:
            self._watcher._detach(self)
        self._end()

    async def __aenter__(self) -> "SnapshotStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class Watcher:
    """Keeps the latest successfully parsed snapshot of one configuration."""

    def __init__(
        self,
        name: Optional[str] = None,
        *,
        path: Optional[Path | str] = None,
        loader: Optional[Loader] = None,
        debounce: Optional[float] = None,
    ):
        if (name is None) == (path is None):
            raise ValueError("pass exactly one of name or path")
        self.name = validate_name(name) if name is not None else None
        self.path = Path(path) if path is not None else None
        self.loader = loader or Loader()
        self.debounce = get_settings().debounce_seconds if debounce is None else float(debounce)

        self._state = WatchState.IDLE
        self._current: Optional[Configuration] = None
        self._subscription = None
        self._directory: Optional[Path] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._reload_task: Optional[asyncio.Task] = None
        self._pending = False
        self._streams: List[SnapshotStream] = []
        self._callbacks: List[EventCallback] = []

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"Watcher({self.label!r}, state={self._state.value})"

    @property
    def label(self) -> str:
        return self.name if self.name is not None else str(self.path)

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def current(self) -> Optional[Configuration]:
        return self._current

    @property
    def reload_pending(self) -> bool:
        return self._pending

    # -------------------- lifecycle --------------------
    async def start(self) -> Configuration:
        if self._state is not WatchState.IDLE:
            raise WatchError(f"Watcher for '{self.label}' is {self._state.value}, cannot start")
        self._current = await self._load()
        await self._follow(self._current.path.parent)
        self._state = WatchState.ACTIVE
        logger.info(f"Watching '{self.label}' at {self._current.path}")
        await self._catch_up(self._current)
        return self._current

    async def stop(self) -> None:
        await self._close()

    async def __aenter__(self) -> "Watcher":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _close(self, error: Optional[BaseException] = None) -> None:
        if self._state is WatchState.CLOSED:
            return
        was_active = self._state is WatchState.ACTIVE
        self._state = WatchState.CLOSED
        self._pending = False

        running = asyncio.current_task()
        tasks = [
            task
            for task in (self._pump_task, self._reload_task)
            if task is not None and task is not running and not task.done()
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._subscription is not None:
            subscription, self._subscription = self._subscription, None
            await subscription.aclose()

        streams, self._streams = self._streams, []
        for stream in streams:
            if error is not None:
                stream._fail(error)
            stream._end()

        if was_active:
            source = self._current.source if self._current is not None else None
            self._emit(WatchEvent(CLOSED, source=source, error=error))
            logger.info(f"Stopped watching '{self.label}'")

    # -------------------- subscribers --------------------
    def subscribe(self) -> SnapshotStream:
        return self._attach(owns_watcher=False)

    def _attach(self, owns_watcher: bool) -> SnapshotStream:
        if self._state is WatchState.CLOSED:
            raise WatchError(f"Watcher for '{self.label}' is closed")
        stream = SnapshotStream(self, owns_watcher=owns_watcher)
        self._streams.append(stream)
        return stream

    def _detach(self, stream: SnapshotStream) -> None:
        if stream in self._streams:
            self._streams.remove(stream)

    def on_event(self, callback: EventCallback) -> Callable[[], None]:
        """Register a side-channel callback; returns a function removing it."""
        self._callbacks.append(callback)

        def _remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _remove

    def _emit(self, event: WatchEvent) -> None:
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:
                logger.exception(f"Watch event callback failed for '{self.label}' ({event.kind})")

    # -------------------- reloading --------------------
    def request_reload(self) -> None:
        if self._state is not WatchState.ACTIVE:
            raise WatchError(f"Watcher for '{self.label}' is not active")
        self._pending = True
        if self._reload_task is None or self._reload_task.done():
            self._reload_task = asyncio.create_task(self._reload_loop())

    def _filenames(self) -> FrozenSet[str]:
        if self.name is not None:
            return self.loader.candidates(self.name).filenames
        return frozenset({self.path.name})

    async def _load(self) -> Configuration:
        if self.name is not None:
            return await self.loader.load(self.name)
        return await self.loader.load_path(self.path)

    async def _follow(self, directory: Path) -> None:
        """Point the change subscription at *directory*.

        The new subscription is open before the old one closes, so no change
        falls between the two.
        """
        if self._subscription is not None and directory == self._directory:
            return
        previous, previous_pump = self._subscription, self._pump_task
        subscription = self.loader.fs.subscribe(directory)
        self._subscription, self._directory = subscription, directory
        self._pump_task = asyncio.create_task(self._pump(subscription, self._filenames()))

        if previous_pump is not None and not previous_pump.done():
            previous_pump.cancel()
            await asyncio.gather(previous_pump, return_exceptions=True)
        if previous is not None:
            logger.info(f"Watching '{self.label}' moved to {directory}")
            await previous.aclose()

    async def _catch_up(self, snapshot: Configuration) -> None:
        # A write between reading the file and subscribing produced no event.
        try:
            token = await self.loader.fs.change_token(snapshot.path)
        except IoError:
            token = None
        if token != snapshot.source.token and self._state is WatchState.ACTIVE:
            self.request_reload()

    async def _pump(self, subscription, filenames: FrozenSet[str]) -> None:
        try:
            async for event in subscription:
                if event.path.name in filenames and self._state is WatchState.ACTIVE:
                    logger.trace(f"Change event {event.kind} for {event.path}")
                    self.request_reload()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if subscription is not self._subscription:
                return
            error = exc if isinstance(exc, PreferError) else WatchError("Change subscription failed", exc)
            logger.error(f"Watching '{self.label}' failed: {error}")
            await self._close(error)
            return
        if subscription is self._subscription:
            # The subscription ended on its own.
            await self._close()

    async def _reload_loop(self) -> None:
        while self._pending and self._state is WatchState.ACTIVE:
            await asyncio.sleep(self.debounce)
            self._pending = False
            try:
                with log_operation("reload", config=self.label):
                    snapshot = await self._load()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if self._state is WatchState.ACTIVE:
                    source = self._current.source if self._current is not None else None
                    self._emit(WatchEvent(RELOAD_FAILED, source=source, error=exc))
                continue
            if self._state is not WatchState.ACTIVE:
                return
            moved = snapshot.path.parent != self._directory
            if moved:
                try:
                    await self._follow(snapshot.path.parent)
                except PreferError as exc:
                    logger.error(f"Watching '{self.label}' failed: {exc}")
                    await self._close(exc)
                    return
                if self._state is not WatchState.ACTIVE:
                    return
            self._current = snapshot
            for stream in list(self._streams):
                stream._push(snapshot)
            logger.debug(f"Reloaded '{self.label}' from {snapshot.path}")
            self._emit(WatchEvent(RELOADED, source=snapshot.source, snapshot=snapshot))
            if moved:
                await self._catch_up(snapshot)


async def watch(
    name: str,
    *,
    loader: Optional[Loader] = None,
    debounce: Optional[float] = None,
) -> SnapshotStream:
    """Start watching *name*; closing the returned stream stops the watcher."""
    watcher = Watcher(name, loader=loader, debounce=debounce)
    await watcher.start()
    return watcher._attach(owns_watcher=True)


async def watch_path(
    path: Path | str,
    *,
    loader: Optional[Loader] = None,
    debounce: Optional[float] = None,
) -> SnapshotStream:
    watcher = Watcher(path=path, loader=loader, debounce=debounce)
    await watcher.start()
    return watcher._attach(owns_watcher=True)


__all__ = [
    "WatchState",
    "WatchEvent",
    "SnapshotStream",
    "Watcher",
    "watch",
    "watch_path",
    "RELOADED",
    "RELOAD_FAILED",
    "CLOSED",
]

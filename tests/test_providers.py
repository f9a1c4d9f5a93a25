import asyncio
import os
import sys
from pathlib import Path

import pytest
from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from prefer.errors import IoError, WatchError
from prefer.providers import ChangeEvent, LocalFileSystem, StaticPaths, SystemPaths, WatchdogSubscription


class FakeObserver:
    def __init__(self, fail=False):
        self.fail = fail
        self.scheduled = []
        self.started = False
        self.stopped = False
        self.joined = None

    def schedule(self, handler, path, recursive=False):
        if self.fail:
            raise OSError("inotify instance limit reached")
        self.scheduled.append((handler, path, recursive))

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        self.joined = timeout


@pytest.mark.asyncio
async def test_local_file_system_reads_and_tokens(tmp_path):
    fs = LocalFileSystem()
    path = tmp_path / "app.json"
    path.write_bytes(b'{"a": 1}')

    assert await fs.exists(path)
    assert not await fs.exists(tmp_path / "missing.json")
    assert not await fs.exists(tmp_path)
    assert not await fs.exists(path / "child")
    assert await fs.read_all(path) == b'{"a": 1}'

    stat = os.stat(path)
    assert await fs.change_token(path) == (stat.st_mtime_ns, stat.st_size)


@pytest.mark.asyncio
async def test_local_file_system_wraps_os_errors(tmp_path):
    fs = LocalFileSystem()
    with pytest.raises(IoError) as excinfo:
        await fs.read_all(tmp_path / "missing.json")
    assert isinstance(excinfo.value.cause, FileNotFoundError)
    with pytest.raises(IoError):
        await fs.change_token(tmp_path / "missing.json")


@pytest.mark.asyncio
async def test_watchdog_subscription_forwards_file_events():
    observer = FakeObserver()
    subscription = WatchdogSubscription(Path("/etc/app"), observer_factory=lambda: observer)
    handler, watched, recursive = observer.scheduled[0]
    assert watched == str(Path("/etc/app"))
    assert recursive is False
    assert observer.started

    handler.on_any_event(DirModifiedEvent("/etc/app"))
    handler.on_any_event(FileModifiedEvent("/etc/app/app.json"))
    handler.on_any_event(FileMovedEvent("/etc/app/app.json.tmp", "/etc/app/app.yaml"))
    handler.on_any_event(FileCreatedEvent("/etc/app/app.toml"))

    events = [await asyncio.wait_for(subscription.__anext__(), timeout=1) for _ in range(4)]
    assert events == [
        ChangeEvent(Path("/etc/app/app.json"), "modified"),
        ChangeEvent(Path("/etc/app/app.json.tmp"), "moved"),
        ChangeEvent(Path("/etc/app/app.yaml"), "moved"),
        ChangeEvent(Path("/etc/app/app.toml"), "created"),
    ]

    subscription.close()
    subscription.close()
    assert observer.stopped
    assert observer.joined is None
    assert [event async for event in subscription] == []


@pytest.mark.asyncio
async def test_watchdog_subscription_aclose_joins_observer_off_the_loop():
    observer = FakeObserver()
    subscription = WatchdogSubscription(Path("/etc/app"), observer_factory=lambda: observer)
    await subscription.aclose()
    await subscription.aclose()
    assert observer.stopped
    assert observer.joined == 5.0
    assert [event async for event in subscription] == []


@pytest.mark.asyncio
async def test_renaming_a_file_away_reports_its_old_name():
    observer = FakeObserver()
    subscription = WatchdogSubscription(Path("/etc/app"), observer_factory=lambda: observer)
    handler = observer.scheduled[0][0]
    handler.on_any_event(FileMovedEvent("/etc/app/app.json", "/etc/app/app.json.bak"))
    first = await asyncio.wait_for(subscription.__anext__(), timeout=1)
    assert first == ChangeEvent(Path("/etc/app/app.json"), "moved")
    await subscription.aclose()


@pytest.mark.asyncio
async def test_watchdog_subscription_reports_schedule_failure():
    with pytest.raises(WatchError) as excinfo:
        WatchdogSubscription(Path("/etc/app"), observer_factory=lambda: FakeObserver(fail=True))
    assert isinstance(excinfo.value.cause, OSError)


def test_static_paths_snapshot_copies_selected_variables(monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", "/xdg")
    monkeypatch.delenv("XDG_CONFIG_DIRS", raising=False)
    snapshot = StaticPaths.snapshot(SystemPaths(), ("XDG_CONFIG_HOME", "XDG_CONFIG_DIRS"))

    assert snapshot.env("XDG_CONFIG_HOME") == "/xdg"
    assert snapshot.env("XDG_CONFIG_DIRS") is None
    assert snapshot.cwd() == Path.cwd()
    assert snapshot.is_windows == SystemPaths().is_windows

    monkeypatch.setenv("XDG_CONFIG_HOME", "/elsewhere")
    assert snapshot.env("XDG_CONFIG_HOME") == "/xdg"

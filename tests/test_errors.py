import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from prefer.errors import (
    InvalidName,
    IoError,
    NotFound,
    ParseError,
    PathNotFound,
    PreferError,
    TypeMismatch,
    UnsupportedFormat,
    WatchError,
)


@pytest.mark.parametrize(
    "error, builtin",
    [
        (InvalidName("a/b", "bad"), ValueError),
        (NotFound("app"), LookupError),
        (IoError("/tmp/app.json", PermissionError("denied")), OSError),
        (ParseError("json", "boom"), ValueError),
        (UnsupportedFormat("app.cfg"), ValueError),
        (PathNotFound("a.b"), KeyError),
        (TypeMismatch("int", "string"), TypeError),
        (WatchError("gone"), PreferError),
    ],
)
def test_errors_share_base_and_builtin(error, builtin):
    assert isinstance(error, PreferError)
    assert isinstance(error, builtin)


def test_not_found_keeps_searched_directories():
    error = NotFound("app", [Path("/a"), Path("/b")])
    assert error.name == "app"
    assert error.searched == (Path("/a"), Path("/b"))
    assert "'app'" in str(error)


def test_io_error_message_names_path_and_cause():
    error = IoError("/srv/app.yaml", PermissionError("denied"))
    assert error.path == Path("/srv/app.yaml")
    assert isinstance(error.cause, PermissionError)
    assert "/srv/app.yaml" in str(error)
    assert "denied" in str(error)


def test_parse_error_with_path_keeps_format_and_cause():
    cause = ValueError("unexpected token")
    error = ParseError("json", cause)
    assert error.path is None

    located = error.with_path("/etc/app.json")
    assert located.format == "json"
    assert located.cause is cause
    assert located.path == Path("/etc/app.json")
    assert "/etc/app.json" in str(located)


def test_path_not_found_str_is_readable():
    assert str(PathNotFound("server.missing")) == "Configuration key 'server.missing' not found"


def test_type_mismatch_nesting_builds_full_path():
    leaf = TypeMismatch("int", "string 'x'")
    assert leaf.nested("port").path == "port"

    indexed = TypeMismatch("int", "string 'x'", "[1]")
    assert indexed.nested("ports").path == "ports[1]"

    keyed = TypeMismatch("int", "string 'x'", "port")
    assert keyed.nested("server").path == "server.port"
    assert "server.port" in str(keyed.nested("server"))


def test_watch_error_mentions_cause():
    error = WatchError("Cannot watch /srv", OSError("inotify limit"))
    assert "inotify limit" in str(error)
    assert isinstance(error.cause, OSError)

import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import prefer
from prefer.errors import IoError, NotFound, ParseError, PathNotFound, UnsupportedFormat
from prefer.formats import FormatPlugin, FormatRegistry, FormatTag
from prefer.loader import Loader
from prefer.providers import LocalFileSystem, StaticPaths

NAME = "prefertestapp"


@pytest.fixture
def dirs(tmp_path):
    cwd = tmp_path / "cwd"
    home = tmp_path / "home"
    (home / ".config").mkdir(parents=True)
    cwd.mkdir()
    return cwd, home


@pytest.fixture
def loader(dirs):
    cwd, home = dirs
    return Loader(FormatRegistry(), LocalFileSystem(), StaticPaths(cwd_dir=cwd, home_dir=home))


@pytest.mark.asyncio
async def test_not_found_lists_searched_directories(loader, dirs):
    with pytest.raises(NotFound) as excinfo:
        await loader.load(NAME)
    assert excinfo.value.name == NAME
    assert excinfo.value.searched[0] == dirs[0]


@pytest.mark.asyncio
async def test_higher_priority_directory_wins(loader, dirs):
    cwd, home = dirs
    (cwd / f"{NAME}.yaml").write_text("origin: cwd\n")
    (home / ".config" / f"{NAME}.json").write_text('{"origin": "home"}')

    config = await loader.load(NAME)
    assert config.get("origin") == "cwd"
    assert config.format is FormatTag.YAML
    assert config.path == (cwd / f"{NAME}.yaml").absolute()


@pytest.mark.asyncio
async def test_extension_order_within_one_directory(loader, dirs):
    cwd, _ = dirs
    (cwd / f"{NAME}.toml").write_text('origin = "toml"\n')
    (cwd / f"{NAME}.json").write_text('{"origin": "json"}')
    assert (await loader.load(NAME)).get("origin") == "json"


@pytest.mark.asyncio
async def test_malformed_first_candidate_masks_valid_ones(loader, dirs):
    cwd, home = dirs
    (cwd / f"{NAME}.json").write_text('{"origin": ')
    (home / ".config" / f"{NAME}.json").write_text('{"origin": "home"}')

    with pytest.raises(ParseError) as excinfo:
        await loader.load(NAME)
    assert excinfo.value.path == cwd / f"{NAME}.json"
    assert excinfo.value.format == "json"


@pytest.mark.asyncio
async def test_directory_named_like_candidate_is_skipped(loader, dirs):
    cwd, home = dirs
    (cwd / f"{NAME}.json").mkdir()
    (home / ".config" / f"{NAME}.ini").write_text("[server]\nport = 80\n")
    config = await loader.load(NAME)
    assert config.get("server.port", int) == 80


@pytest.mark.asyncio
async def test_non_mapping_root_is_a_parse_error(loader, dirs):
    (dirs[0] / f"{NAME}.json").write_text("[1, 2, 3]")
    with pytest.raises(ParseError):
        await loader.load(NAME)


@pytest.mark.asyncio
async def test_empty_document_is_an_empty_configuration(loader, dirs):
    (dirs[0] / f"{NAME}.yaml").write_text("")
    config = await loader.load(NAME)
    assert len(config) == 0


@pytest.mark.asyncio
async def test_load_path_by_extension_and_by_sniffing(loader, tmp_path):
    explicit = tmp_path / "service.xml"
    explicit.write_text("<config><port>80</port></config>")
    assert (await loader.load_path(explicit)).get("port", int) == 80

    sniffed = tmp_path / "service.conf"
    sniffed.write_text('{"port": 81}')
    config = await loader.load_path(str(sniffed))
    assert config.format is FormatTag.JSON
    assert config.get("port") == 81


@pytest.mark.asyncio
async def test_load_path_failures(loader, tmp_path):
    with pytest.raises(NotFound):
        await loader.load_path(tmp_path / "absent.json")

    unknown = tmp_path / "service.conf"
    unknown.write_text("port: 80\n")
    with pytest.raises(UnsupportedFormat):
        await loader.load_path(unknown)


@pytest.mark.asyncio
async def test_source_carries_change_token(loader, dirs):
    path = dirs[0] / f"{NAME}.json"
    path.write_text('{"a": 1}')
    config = await loader.load(NAME)
    stat = path.stat()
    assert config.source.token == (stat.st_mtime_ns, stat.st_size)


def _parse_kv(data):
    return dict(line.split("=", 1) for line in data.decode("utf-8").split())


@pytest.mark.asyncio
async def test_registered_format_loads_by_name_and_path(dirs):
    cwd, home = dirs
    registry = FormatRegistry()
    registry.register(FormatPlugin("kv", ("kv",), _parse_kv, str.encode))
    loader = Loader(registry, LocalFileSystem(), StaticPaths(cwd_dir=cwd, home_dir=home))
    (home / ".config" / f"{NAME}.kv").write_text("port=8080\nhost=db\n")

    config = await loader.load(NAME)
    assert config.format == "kv"
    assert config.get("port", int) == 8080
    assert config.path == (home / ".config" / f"{NAME}.kv").absolute()

    direct = await loader.load_path(home / ".config" / f"{NAME}.kv")
    assert direct.get("host") == "db"

    with pytest.raises(NotFound):
        await Loader(FormatRegistry(), LocalFileSystem(), StaticPaths(cwd_dir=cwd, home_dir=home)).load(NAME)


class _FailingReads(LocalFileSystem):
    async def read_all(self, path):
        raise IoError(path, PermissionError("denied"))


@pytest.mark.asyncio
async def test_read_failure_surfaces_io_error(dirs):
    cwd, home = dirs
    (cwd / f"{NAME}.json").write_text("{}")
    loader = Loader(FormatRegistry(), _FailingReads(), StaticPaths(cwd_dir=cwd, home_dir=home))
    with pytest.raises(IoError):
        await loader.load(NAME)


@pytest.mark.asyncio
async def test_settings_example_end_to_end(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PREFER_FORMATS", raising=False)
    (tmp_path / "settings.json").write_text(json.dumps({"server": {"port": 8080}, "auth": {"username": "admin"}}))

    config = await prefer.load("settings")
    assert config.get("server.port", int) == 8080
    assert config.get("auth.username", str) == "admin"
    with pytest.raises(PathNotFound):
        config.get("server.missing", str)

    found = await prefer.find_config_file("settings")
    assert found.resolve() == (tmp_path / "settings.json").resolve()

    direct = await prefer.load_path(tmp_path / "settings.json")
    assert direct.data == config.data

"""Format registry: file extension -> format tag -> parser.

Disabled formats are absent from the registry, so disabling one changes which
files are discoverable and never turns into a hard failure. Extra formats can be
registered on one registry instance; their extensions are searched after the
built-in ones.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from ..errors import ParseError, UnsupportedFormat
from ..value import UnifiedValue, lift
from . import ini_format, json5_format, json_format, toml_format, xml_format, yaml_format

ParseFn = Callable[[bytes], UnifiedValue]
SerializeFn = Callable[[UnifiedValue], bytes]
FormatKey = Union["FormatTag", str]


class FormatTag(str, Enum):
    JSON = "json"
    JSON5 = "json5"
    YAML = "yaml"
    TOML = "toml"
    INI = "ini"
    XML = "xml"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class FormatPlugin:
    """One syntax: its tag, the extensions that select it, and its codec.

    Built-in plugins use a FormatTag; registered ones may use any string.
    """

    tag: FormatKey
    extensions: Tuple[str, ...]
    parse: ParseFn
    serialize: SerializeFn


PLUGINS: Dict[FormatTag, FormatPlugin] = {
    FormatTag.JSON: FormatPlugin(FormatTag.JSON, json_format.EXTENSIONS, json_format.parse, json_format.serialize),
    FormatTag.JSON5: FormatPlugin(FormatTag.JSON5, json5_format.EXTENSIONS, json5_format.parse, json5_format.serialize),
    FormatTag.YAML: FormatPlugin(FormatTag.YAML, yaml_format.EXTENSIONS, yaml_format.parse, yaml_format.serialize),
    FormatTag.TOML: FormatPlugin(FormatTag.TOML, toml_format.EXTENSIONS, toml_format.parse, toml_format.serialize),
    FormatTag.INI: FormatPlugin(FormatTag.INI, ini_format.EXTENSIONS, ini_format.parse, ini_format.serialize),
    FormatTag.XML: FormatPlugin(FormatTag.XML, xml_format.EXTENSIONS, xml_format.parse, xml_format.serialize),
}

# Search order inside one directory; registered formats come after these.
EXTENSION_ORDER: Tuple[str, ...] = tuple(ext for plugin in PLUGINS.values() for ext in plugin.extensions)


def _key(tag: FormatKey) -> str:
    return str(tag).strip().lower()


def _extension_of(path: Path | str) -> str:
    return Path(path).suffix.lower().lstrip(".")


class FormatRegistry:
    def __init__(self, enabled: Optional[Iterable[FormatKey]] = None):
        self._plugins: Dict[str, FormatPlugin] = {}
        self._by_extension: Dict[str, str] = {}
        self._order: List[str] = []

        wanted = None if enabled is None else {_key(tag) for tag in enabled}
        if wanted is not None:
            unknown = sorted(wanted - {tag.value for tag in PLUGINS})
            if unknown:
                raise ValueError(f"unknown formats {unknown}")
        for plugin in PLUGINS.values():
            if wanted is None or plugin.tag.value in wanted:
                self._add(plugin)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"FormatRegistry({', '.join(self._plugins)})"

    def _add(self, plugin: FormatPlugin) -> None:
        key = _key(plugin.tag)
        self._plugins[key] = plugin
        for extension in plugin.extensions:
            extension = extension.lower().lstrip(".")
            self._by_extension[extension] = key
            self._order.append(extension)

    def register(self, plugin: FormatPlugin) -> None:
        """Add a format to this registry; its extensions are searched last."""
        key = _key(plugin.tag)
        if not key:
            raise ValueError("format tag must not be empty")
        if key in self._plugins:
            raise ValueError(f"format '{key}' is already registered")
        extensions = [extension.lower().lstrip(".") for extension in plugin.extensions]
        if not extensions or not all(extensions):
            raise ValueError(f"format '{key}' needs at least one non-empty extension")
        claimed = sorted(ext for ext in extensions if ext in self._by_extension)
        if claimed:
            raise ValueError(f"extensions {claimed} already belong to another format")
        self._add(plugin)

    @property
    def enabled(self) -> FrozenSet[FormatKey]:
        return frozenset(plugin.tag for plugin in self._plugins.values())

    def is_enabled(self, tag: FormatKey) -> bool:
        return _key(tag) in self._plugins

    def extensions(self) -> Tuple[str, ...]:
        return tuple(self._order)

    def format_for(self, path: Path | str) -> Optional[FormatKey]:
        """Tag for *path*'s extension, or None when unknown or disabled."""
        key = self._by_extension.get(_extension_of(path))
        return self._plugins[key].tag if key is not None else None

    def sniff(self, data: bytes) -> Optional[FormatKey]:
        head = data.lstrip(b"\xef\xbb\xbf \t\r\n")[:1]
        if head == b"<":
            key = FormatTag.XML.value
        elif head in (b"{", b"["):
            key = FormatTag.JSON.value
        else:
            return None
        plugin = self._plugins.get(key)
        return plugin.tag if plugin is not None else None

    def _plugin(self, tag: FormatKey) -> FormatPlugin:
        plugin = self._plugins.get(_key(tag))
        if plugin is None:
            raise UnsupportedFormat(tag)
        return plugin

    def parser_for(self, tag: FormatKey) -> ParseFn:
        return self._plugin(tag).parse

    def serializer_for(self, tag: FormatKey) -> SerializeFn:
        return self._plugin(tag).serialize

    def parse(self, tag: FormatKey, data: bytes, path: Optional[Path | str] = None) -> UnifiedValue:
        """Parse *data* and lift the result; plugins may return plain dicts and lists."""
        plugin = self._plugin(tag)
        try:
            return lift(plugin.parse(data))
        except ParseError as exc:
            raise exc.with_path(path) if path is not None else exc
        except Exception as exc:
            # Parsers are boundary adapters over third-party libraries, each
            # with its own exception types.
            raise ParseError(str(plugin.tag), exc, path) from exc


def default_registry() -> FormatRegistry:
    from ..settings import get_settings

    return FormatRegistry(get_settings().formats)


__all__ = [
    "FormatTag",
    "FormatKey",
    "FormatPlugin",
    "FormatRegistry",
    "PLUGINS",
    "EXTENSION_ORDER",
    "default_registry",
]

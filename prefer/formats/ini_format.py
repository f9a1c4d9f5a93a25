"""INI documents.

Sections become mappings under the root and dotted section names nest
(``[server.tls]`` is ``server -> tls``). Keys before the first section header
land in the ``default`` mapping. Values stay strings; key case is preserved.
"""

from __future__ import annotations

import configparser
import io
from typing import Any, Dict, Tuple

from ..value import FrozenMapping, UnifiedValue, lift, unfreeze

EXTENSIONS = ("ini",)

DEFAULT_SECTION = "default"
# configparser's own DEFAULT section propagates keys into every section;
# point it at a name no file can spell so sections stay independent.
_UNUSED_DEFAULTS = "\x00prefer-defaults"


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        interpolation=None,
        default_section=_UNUSED_DEFAULTS,
        allow_no_value=True,
        strict=False,
    )
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    return parser


def _section_node(root: Dict[str, Any], section: str) -> Dict[str, Any]:
    node = root
    parts = section.split(".")
    if any(not part.strip() for part in parts):
        raise ValueError(f"empty segment in section name [{section}]")
    for part in parts:
        part = part.strip()
        child = node.setdefault(part, {})
        if not isinstance(child, dict):
            raise ValueError(f"section [{section}] collides with key '{part}'")
        node = child
    return node


def parse(data: bytes) -> UnifiedValue:
    parser = _new_parser()
    parser.read_string(f"[{DEFAULT_SECTION}]\n" + data.decode("utf-8-sig"))

    root: Dict[str, Any] = {}
    for section in parser.sections():
        items = parser.items(section, raw=True)
        if section == DEFAULT_SECTION and not items:
            continue
        node = _section_node(root, section)
        for key, value in items:
            if isinstance(node.get(key), dict):
                raise ValueError(f"key '{key}' in [{section}] collides with a section")
            node[key] = value
    return lift(root)


def _ini_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        raise ValueError("INI cannot represent sequences")
    return str(value)


def _write_sections(parser: configparser.ConfigParser, mapping: Dict[str, Any], prefix: Tuple[str, ...]) -> None:
    scalars = {key: item for key, item in mapping.items() if not isinstance(item, dict)}
    nested = {key: item for key, item in mapping.items() if isinstance(item, dict)}
    if scalars or prefix:
        section = ".".join(prefix) if prefix else DEFAULT_SECTION
        parser.add_section(section)
        for key, item in scalars.items():
            parser.set(section, key, _ini_text(item))
    for key, item in nested.items():
        _write_sections(parser, item, prefix + (key,))


def serialize(value: UnifiedValue) -> bytes:
    if not isinstance(value, FrozenMapping):
        raise ValueError("INI documents need a mapping root")
    parser = _new_parser()
    _write_sections(parser, unfreeze(value), ())
    buffer = io.StringIO()
    parser.write(buffer)
    return buffer.getvalue().encode("utf-8")

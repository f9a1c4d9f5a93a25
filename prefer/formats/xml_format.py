"""XML documents.

Flattening rule: the document element is unwrapped and its content becomes
the root mapping. Attributes become ``@name`` keys, text that sits beside
attributes or child elements becomes ``#text``, a text-only element becomes
its string, an empty element becomes null and repeated sibling tags become a
sequence. Text split around child elements is stripped piecewise and joined
with single spaces, so ``a<b/>c`` gives ``"a c"``. XML names cannot start
with ``@`` or ``#``, so the prefixed keys never collide with element keys.
"""

from __future__ import annotations

from typing import Any, Dict, List
from xml.etree import ElementTree

from ..value import FrozenMapping, UnifiedValue, lift, unfreeze

EXTENSIONS = ("xml",)

ATTRIBUTE_PREFIX = "@"
TEXT_KEY = "#text"
ROOT_TAG = "config"


def _text_of(element: ElementTree.Element) -> str:
    pieces = [(element.text or "").strip()]
    pieces.extend((child.tail or "").strip() for child in element)
    return " ".join(piece for piece in pieces if piece)


def _element_value(element: ElementTree.Element) -> Any:
    node: Dict[str, Any] = {
        f"{ATTRIBUTE_PREFIX}{name}": value for name, value in element.attrib.items()
    }
    grouped: Dict[str, List[Any]] = {}
    for child in element:
        grouped.setdefault(child.tag, []).append(_element_value(child))
    text = _text_of(element)

    if not node and not grouped:
        return text or None

    for tag, values in grouped.items():
        node[tag] = values[0] if len(values) == 1 else values
    if text:
        node[TEXT_KEY] = text
    return node


def parse(data: bytes) -> UnifiedValue:
    document = ElementTree.fromstring(data)
    value = _element_value(document)
    if value is None:
        value = {}
    elif not isinstance(value, dict):
        value = {TEXT_KEY: value}
    return lift(value)


def _xml_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _fill(element: ElementTree.Element, value: Any) -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            if key.startswith(ATTRIBUTE_PREFIX):
                element.set(key[len(ATTRIBUTE_PREFIX):], _xml_text(item))
            elif key == TEXT_KEY:
                element.text = _xml_text(item)
            elif isinstance(item, list):
                for entry in item:
                    _fill(ElementTree.SubElement(element, key), entry)
            else:
                _fill(ElementTree.SubElement(element, key), item)
    elif value is not None:
        element.text = _xml_text(value)


def serialize(value: UnifiedValue) -> bytes:
    root = ElementTree.Element(ROOT_TAG)
    _fill(root, unfreeze(value) if isinstance(value, FrozenMapping) else value)
    return ElementTree.tostring(root, encoding="utf-8", xml_declaration=True)

from __future__ import annotations

import yaml

from ..value import UnifiedValue, lift, unfreeze

EXTENSIONS = ("yaml", "yml")


def parse(data: bytes) -> UnifiedValue:
    # Only the first document of a multi-document stream is configuration.
    documents = yaml.safe_load_all(data.decode("utf-8-sig"))
    first = next(iter(documents), None)
    return lift(first)


def serialize(value: UnifiedValue) -> bytes:
    return yaml.safe_dump(unfreeze(value), sort_keys=False, allow_unicode=True).encode("utf-8")

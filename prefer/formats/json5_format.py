"""JSON5 and JSONC (JSON with comments) documents."""

from __future__ import annotations

import json5

from ..value import UnifiedValue, lift, unfreeze

EXTENSIONS = ("json5", "jsonc")


def parse(data: bytes) -> UnifiedValue:
    return lift(json5.loads(data.decode("utf-8-sig")))


def serialize(value: UnifiedValue) -> bytes:
    return json5.dumps(unfreeze(value), indent=2).encode("utf-8")

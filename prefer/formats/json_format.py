from __future__ import annotations

import json

from ..value import UnifiedValue, lift, unfreeze

EXTENSIONS = ("json",)


def parse(data: bytes) -> UnifiedValue:
    return lift(json.loads(data.decode("utf-8-sig")))


def serialize(value: UnifiedValue) -> bytes:
    return json.dumps(unfreeze(value), ensure_ascii=False, indent=2).encode("utf-8")

from __future__ import annotations

import tomllib

import tomli_w

from ..value import UnifiedValue, lift, unfreeze

EXTENSIONS = ("toml",)


def parse(data: bytes) -> UnifiedValue:
    return lift(tomllib.loads(data.decode("utf-8-sig")))


def serialize(value: UnifiedValue) -> bytes:
    # TOML has no null; such keys are dropped.
    return tomli_w.dumps(_drop_nulls(unfreeze(value))).encode("utf-8")


def _drop_nulls(value):
    if isinstance(value, dict):
        return {key: _drop_nulls(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [_drop_nulls(item) for item in value if item is not None]
    return value

from __future__ import annotations

import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, conint, field_validator

ENV_DEBOUNCE_MS = "PREFER_DEBOUNCE_MS"
ENV_FORMATS = "PREFER_FORMATS"
ENV_LOG_LEVEL = "PREFER_LOG_LEVEL"

ALL_FORMATS = ["json", "json5", "yaml", "toml", "ini", "xml"]
LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


class PreferSettings(BaseModel):
    """Runtime knobs of the library itself (not of the configurations it loads)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    debounce_ms: conint(ge=0) = 100
    formats: List[str] = Field(default_factory=lambda: list(ALL_FORMATS))
    log_level: str = "INFO"

    @field_validator("formats", mode="before")
    @classmethod
    def _split_formats(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        return [str(item).strip().lower() for item in value if str(item).strip()]

    @field_validator("formats")
    @classmethod
    def _known_formats(cls, value: List[str]) -> List[str]:
        unknown = sorted(set(value) - set(ALL_FORMATS))
        if unknown:
            raise ValueError(f"unknown formats {unknown}; expected a subset of {ALL_FORMATS}")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value) -> str:
        level = str(value).strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level {value!r}")
        return level

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> PreferSettings:
    environ = os.environ if environ is None else environ
    values = {}
    if environ.get(ENV_DEBOUNCE_MS):
        values["debounce_ms"] = environ[ENV_DEBOUNCE_MS]
    if environ.get(ENV_FORMATS):
        values["formats"] = environ[ENV_FORMATS]
    if environ.get(ENV_LOG_LEVEL):
        values["log_level"] = environ[ENV_LOG_LEVEL]
    return PreferSettings.model_validate(values)


def get_settings() -> PreferSettings:
    """Settings from the current process environment, read on every call."""
    return settings_from_env()


__all__ = ["PreferSettings", "settings_from_env", "get_settings"]

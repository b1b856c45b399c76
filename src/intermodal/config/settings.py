"""Codec and stream settings models and loading helpers."""

from __future__ import annotations

import codecs
import json
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class RenderSettings(BaseModel):
    """How blocks are rendered as text."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    indent: int = Field(default=2, ge=2, le=8)
    width: int = Field(default=80, ge=20)
    allow_unicode: bool = True


class StreamSettings(BaseModel):
    """How streams of blocks are read and written."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    encoding: str = "utf-8"
    explicit_start: bool = False
    trailing_boundary: bool = False

    @field_validator("encoding")
    @classmethod
    def _check_encoding(cls, value: str) -> str:
        try:
            codecs.lookup(value)
        except LookupError as exc:
            raise ValueError(f"unknown text encoding {value!r}") from exc
        return value


class IntermodalConfig(BaseModel):
    """Root intermodal configuration model."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    render: RenderSettings = RenderSettings()
    stream: StreamSettings = StreamSettings()


class ConfigError(RuntimeError):
    """Raised when an intermodal config file cannot be read or validated."""


def _decode_config_payload(path: Path) -> dict[str, object]:
    """Decode a config file as JSON (``.json``) or YAML (any other suffix).

    Args:
        path: Config file path.

    Returns:
        Parsed mapping payload; an empty document yields an empty mapping.

    Raises:
        ConfigError: If the file cannot be read, decode fails or the payload
            root is not a mapping.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read intermodal config {path}: {exc}") from exc
    if path.suffix.lower() == ".json":
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError(
                f"Invalid intermodal config JSON in {path.name}: {exc}"
            ) from exc
    else:
        try:
            payload = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigError(
                f"Invalid intermodal config YAML in {path.name}: {exc}"
            ) from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigError(
            f"Invalid intermodal config {path.name}: expected a mapping with "
            f"'render' and/or 'stream' sections, got {type(payload).__name__}"
        )
    return payload


def load_config(path: Path) -> IntermodalConfig:
    """Load render and stream settings from disk, defaulting when missing.

    Args:
        path: Config file path.

    Returns:
        Parsed settings, or defaults when the file does not exist.

    Raises:
        ConfigError: If the file cannot be decoded or its settings are invalid.
    """
    if not path.exists():
        return IntermodalConfig()
    payload = _decode_config_payload(path)
    try:
        return IntermodalConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid intermodal settings in {path.name}: {exc}"
        ) from exc

"""Intermodal configuration loading."""

from intermodal.config.settings import (
    ConfigError,
    IntermodalConfig,
    RenderSettings,
    StreamSettings,
    load_config,
)

__all__ = [
    "ConfigError",
    "IntermodalConfig",
    "RenderSettings",
    "StreamSettings",
    "load_config",
]

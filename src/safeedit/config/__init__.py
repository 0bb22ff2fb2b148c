"""Configuration loading, schema, and defaults."""

from safeedit.config.loader import CONFIG_FILENAME, load_config
from safeedit.config.schema import (
    ApplyConfig,
    DiffConfig,
    EncodingConfig,
    LogConfig,
    SafeEditConfig,
)

__all__ = [
    "CONFIG_FILENAME",
    "ApplyConfig",
    "DiffConfig",
    "EncodingConfig",
    "LogConfig",
    "SafeEditConfig",
    "load_config",
]

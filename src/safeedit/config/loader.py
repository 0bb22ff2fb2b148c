"""Load and merge configuration from .safeedit.toml and env vars."""

from __future__ import annotations

import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from safeedit.config.schema import (
    PAGER_CHOICES,
    ApplyConfig,
    DiffConfig,
    EncodingConfig,
    LogConfig,
    SafeEditConfig,
)
from safeedit.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".safeedit.toml"


def find_config_file(root: Path, override: Optional[str] = None) -> Optional[Path]:
    """Locate the config file. *override* takes precedence."""
    if override:
        p = Path(override)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {override}")
        return p
    candidate = root / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _parse_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _merge_env_overrides(cfg: SafeEditConfig) -> None:
    """Apply SAFEEDIT_* environment variable overrides."""
    if val := os.environ.get("SAFEEDIT_CONTEXT"):
        try:
            cfg.diff.context = max(0, int(val))
        except ValueError:
            logger.warning("ignoring SAFEEDIT_CONTEXT=%r (not an integer)", val)
    if val := os.environ.get("SAFEEDIT_PAGER"):
        if val in PAGER_CHOICES:
            cfg.diff.pager = val  # type: ignore[assignment]
        else:
            logger.warning("ignoring SAFEEDIT_PAGER=%r", val)
    if os.environ.get("SAFEEDIT_NO_BACKUP") == "1":
        cfg.apply.backups = False
    if val := os.environ.get("SAFEEDIT_UNDO_LOG"):
        cfg.apply.undo_log = val
    if val := os.environ.get("SAFEEDIT_LOG_PATH"):
        cfg.log.path = val
    if val := os.environ.get("SAFEEDIT_ENCODING"):
        cfg.encoding.default = val


def _build_section(data: Dict[str, Any], cls: type, section: str):
    """Build a dataclass from a TOML section dict, ignoring unknown keys."""
    raw = data.get(section, {})
    if not isinstance(raw, dict):
        raise ConfigError(f"[{section}] must be a table")
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


def _validate(cfg: SafeEditConfig, source: Path) -> None:
    if cfg.diff.pager not in PAGER_CHOICES:
        raise ConfigError(f"{source}: diff.pager must be one of {', '.join(PAGER_CHOICES)}")
    if cfg.diff.color not in PAGER_CHOICES:
        raise ConfigError(f"{source}: diff.color must be auto, always or never")
    for name in ("context", "max_lines", "max_bytes", "max_line_bytes", "page_size"):
        value = getattr(cfg.diff, name)
        if not isinstance(value, int) or value < 0:
            raise ConfigError(f"{source}: diff.{name} must be a non-negative integer")
    if not isinstance(cfg.log.max_entries, int) or cfg.log.max_entries < 1:
        raise ConfigError(f"{source}: log.max_entries must be a positive integer")


def load_config(
    root: Path,
    config_override: Optional[str] = None,
) -> SafeEditConfig:
    """Load, validate, and return a SafeEditConfig."""
    config_path = find_config_file(root, config_override)

    if config_path is None:
        cfg = SafeEditConfig()
    else:
        logger.debug("loading config from %s", config_path)
        raw = _parse_toml(config_path)
        cfg = SafeEditConfig(
            version=str(raw.get("version", "1.0")),
            diff=_build_section(raw, DiffConfig, "diff"),
            apply=_build_section(raw, ApplyConfig, "apply"),
            log=_build_section(raw, LogConfig, "log"),
            encoding=_build_section(raw, EncodingConfig, "encoding"),
        )
        _validate(cfg, config_path)

    _merge_env_overrides(cfg)
    return cfg

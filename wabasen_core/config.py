"""
TOML-based configuration for the Wabasen command line.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.  The library
entry points never read either source themselves; they take an
optional ``WabasenConfig`` built here.

Usage:
    from wabasen_core.config import load_config
    cfg = load_config("wabasen.toml")

Example file:

    [archive]
    compression_level = 9

    [logging]
    level = "DEBUG"
    format = "json"
    file = "logs/wabasen.log"
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import,no-redef]

from wabasen_core.archive import DEFAULT_COMPRESSION_LEVEL
from wabasen_core.errors import ConfigError


@dataclass
class ArchiveConfig:
    """gzip settings for the temporary archive."""
    compression_level: int = DEFAULT_COMPRESSION_LEVEL


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class WabasenConfig:
    """Top-level configuration container."""
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


LOG_FORMATS = ("human", "json")


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def _validate(cfg: WabasenConfig) -> None:
    level = cfg.archive.compression_level
    if isinstance(level, bool) or not isinstance(level, int) or not 0 <= level <= 9:
        raise ConfigError(
            f"archive.compression_level must be an integer 0..9 ({level!r})",
            "archive.compression_level",
        )
    if not isinstance(cfg.logging.level, str):
        raise ConfigError(
            f"logging.level must be a string ({cfg.logging.level!r})", "logging.level"
        )
    if cfg.logging.format not in LOG_FORMATS:
        raise ConfigError(
            f"logging.format must be one of {', '.join(LOG_FORMATS)} ({cfg.logging.format!r})",
            "logging.format",
        )
    if cfg.logging.file is not None and not isinstance(cfg.logging.file, str):
        raise ConfigError(
            f"logging.file must be a path string ({cfg.logging.file!r})", "logging.file"
        )


def load_config(path: str | None = None) -> WabasenConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        WABASEN_COMPRESSION_LEVEL -> archive.compression_level
        WABASEN_LOG_LEVEL         -> logging.level
        WABASEN_LOG_FMT           -> logging.format
        WABASEN_LOG_FILE          -> logging.file

    Raises ``ConfigError`` for unreadable TOML or out-of-range values.
    """
    cfg = WabasenConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            try:
                with open(p, "rb") as f:
                    data = tomllib.load(f)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"Invalid TOML in config file ({path}): {exc}", str(path)) from exc
            except OSError as exc:
                raise ConfigError(f"Failed to read config file ({path}): {exc}", str(path)) from exc
            for section_name, section_dc in [
                ("archive", cfg.archive),
                ("logging", cfg.logging),
            ]:
                if section_name not in data:
                    continue
                if not isinstance(data[section_name], dict):
                    raise ConfigError(
                        f"[{section_name}] must be a table in config file ({path})", section_name
                    )
                _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("WABASEN_COMPRESSION_LEVEL"):
        try:
            cfg.archive.compression_level = int(v)
        except ValueError:
            raise ConfigError(
                f"WABASEN_COMPRESSION_LEVEL must be an integer ({v!r})",
                "archive.compression_level",
            ) from None
    if v := os.environ.get("WABASEN_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("WABASEN_LOG_FMT"):
        cfg.logging.format = v
    if v := os.environ.get("WABASEN_LOG_FILE"):
        cfg.logging.file = v

    _validate(cfg)
    return cfg

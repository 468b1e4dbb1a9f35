"""
Tests for wabasen_core.config — TOML configuration and environment overrides.

Covers:
  - Default values for all dataclass sections
  - TOML parsing and section merging
  - Environment variable overrides (precedence over TOML)
  - _merge helper edge cases
  - Missing TOML files
  - Hyphenated key handling
  - ConfigError for malformed TOML and out-of-range values
"""

from __future__ import annotations

import os
import tempfile
import textwrap
import unittest
from unittest.mock import patch

from wabasen_core.config import (
    ArchiveConfig,
    LoggingConfig,
    WabasenConfig,
    _merge,
    load_config,
)
from wabasen_core.errors import ConfigError, WabasenError

_ENV_KEYS = (
    "WABASEN_COMPRESSION_LEVEL",
    "WABASEN_LOG_LEVEL",
    "WABASEN_LOG_FMT",
    "WABASEN_LOG_FILE",
)


def _clean_env():
    return {k: v for k, v in os.environ.items() if k not in _ENV_KEYS}


# ═══════════════════════════════════════════════════════════════════
#  Defaults
# ═══════════════════════════════════════════════════════════════════

class TestDefaults(unittest.TestCase):

    def test_archive_defaults(self):
        self.assertEqual(ArchiveConfig().compression_level, 6)

    def test_logging_defaults(self):
        log_cfg = LoggingConfig()
        self.assertEqual(log_cfg.level, "INFO")
        self.assertEqual(log_cfg.format, "human")
        self.assertIsNone(log_cfg.file)

    def test_top_level_defaults(self):
        cfg = WabasenConfig()
        self.assertIsInstance(cfg.archive, ArchiveConfig)
        self.assertIsInstance(cfg.logging, LoggingConfig)

    def test_sections_not_shared(self):
        a, b = WabasenConfig(), WabasenConfig()
        a.archive.compression_level = 1
        self.assertEqual(b.archive.compression_level, 6)


# ═══════════════════════════════════════════════════════════════════
#  _merge helper
# ═══════════════════════════════════════════════════════════════════

class TestMerge(unittest.TestCase):

    def test_merge_updates_fields(self):
        log_cfg = LoggingConfig()
        _merge(log_cfg, {"level": "DEBUG", "format": "json"})
        self.assertEqual(log_cfg.level, "DEBUG")
        self.assertEqual(log_cfg.format, "json")

    def test_merge_ignores_unknown_keys(self):
        a = ArchiveConfig()
        _merge(a, {"unknown_field": 42})
        self.assertFalse(hasattr(a, "unknown_field"))

    def test_merge_hyphenated_keys(self):
        """TOML often uses kebab-case; _merge converts to snake_case."""
        a = ArchiveConfig()
        _merge(a, {"compression-level": 9})
        self.assertEqual(a.compression_level, 9)


# ═══════════════════════════════════════════════════════════════════
#  load_config
# ═══════════════════════════════════════════════════════════════════

class TestLoadConfig(unittest.TestCase):

    def _write(self, body: str) -> str:
        fd, path = tempfile.mkstemp(suffix=".toml")
        with os.fdopen(fd, "w") as f:
            f.write(textwrap.dedent(body))
        self.addCleanup(os.remove, path)
        return path

    def test_no_path_gives_defaults(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            cfg = load_config(None)
        self.assertEqual(cfg.archive.compression_level, 6)
        self.assertEqual(cfg.logging.level, "INFO")

    def test_missing_file_gives_defaults(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            cfg = load_config("/nonexistent/wabasen.toml")
        self.assertEqual(cfg.logging.format, "human")

    def test_toml_sections(self):
        path = self._write("""
            [archive]
            compression_level = 9

            [logging]
            level = "DEBUG"
            format = "json"
            file = "logs/wabasen.log"
        """)
        with patch.dict(os.environ, _clean_env(), clear=True):
            cfg = load_config(path)
        self.assertEqual(cfg.archive.compression_level, 9)
        self.assertEqual(cfg.logging.level, "DEBUG")
        self.assertEqual(cfg.logging.format, "json")
        self.assertEqual(cfg.logging.file, "logs/wabasen.log")

    def test_unknown_sections_ignored(self):
        path = self._write("""
            [network]
            port = 1234
        """)
        with patch.dict(os.environ, _clean_env(), clear=True):
            cfg = load_config(path)
        self.assertFalse(hasattr(cfg, "network"))

    def test_env_overrides_toml(self):
        path = self._write("""
            [archive]
            compression_level = 9
            [logging]
            level = "DEBUG"
        """)
        env = _clean_env()
        env.update({
            "WABASEN_COMPRESSION_LEVEL": "1",
            "WABASEN_LOG_LEVEL": "warning",
            "WABASEN_LOG_FMT": "json",
            "WABASEN_LOG_FILE": "/tmp/w.log",
        })
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config(path)
        self.assertEqual(cfg.archive.compression_level, 1)
        self.assertEqual(cfg.logging.level, "WARNING")
        self.assertEqual(cfg.logging.format, "json")
        self.assertEqual(cfg.logging.file, "/tmp/w.log")

    def test_bad_compression_env(self):
        env = _clean_env()
        env["WABASEN_COMPRESSION_LEVEL"] = "max"
        with patch.dict(os.environ, env, clear=True):
            with self.assertRaises(ConfigError) as ctx:
                load_config(None)
        self.assertEqual(ctx.exception.key, "archive.compression_level")


# ═══════════════════════════════════════════════════════════════════
#  Validation
# ═══════════════════════════════════════════════════════════════════

class TestValidation(unittest.TestCase):

    def _load(self, body: str):
        fd, path = tempfile.mkstemp(suffix=".toml")
        with os.fdopen(fd, "w") as f:
            f.write(textwrap.dedent(body))
        self.addCleanup(os.remove, path)
        with patch.dict(os.environ, _clean_env(), clear=True):
            return load_config(path)

    def test_compression_level_out_of_range(self):
        with self.assertRaises(ConfigError) as ctx:
            self._load("[archive]\ncompression_level = 12\n")
        self.assertEqual(ctx.exception.key, "archive.compression_level")
        self.assertIsInstance(ctx.exception, WabasenError)

    def test_compression_level_negative_env(self):
        env = _clean_env()
        env["WABASEN_COMPRESSION_LEVEL"] = "-1"
        with patch.dict(os.environ, env, clear=True):
            with self.assertRaises(ConfigError):
                load_config(None)

    def test_compression_level_wrong_type(self):
        for value in ('"fast"', "true", "6.5"):
            with self.subTest(value=value):
                with self.assertRaises(ConfigError):
                    self._load(f"[archive]\ncompression_level = {value}\n")

    def test_boundary_levels_accepted(self):
        for level in (0, 9):
            cfg = self._load(f"[archive]\ncompression_level = {level}\n")
            self.assertEqual(cfg.archive.compression_level, level)

    def test_unknown_log_format(self):
        with self.assertRaises(ConfigError) as ctx:
            self._load('[logging]\nformat = "xml"\n')
        self.assertEqual(ctx.exception.key, "logging.format")

    def test_malformed_toml(self):
        with self.assertRaises(ConfigError):
            self._load("[archive\ncompression_level = 6\n")

    def test_section_must_be_table(self):
        with self.assertRaises(ConfigError) as ctx:
            self._load("archive = 6\n")
        self.assertEqual(ctx.exception.key, "archive")

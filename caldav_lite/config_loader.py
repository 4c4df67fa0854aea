"""caldav_lite.config_loader

Lightweight config loader for caldav_lite.

- Reads YAML with PyYAML (``safe_load`` also accepts JSON documents).
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
- Environment variables override file values for the log level and the
  full-parsing switch.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .lite_models import Weekday

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("caldav_lite") / "config.yaml"

_TRUTHY = ("1", "true", "yes", "on")


@dataclass
class Config:
    """Typed configuration for caldav_lite.

    Fields:
        log_level: logging level name
        enable_full_parsing: run the typed parser on every CalDAV response entry
        expansion_days_window: default expansion window length in days (1..3660)
        default_week_start: WKST used by rule builders (MO..SU)
        max_ics_size_bytes: input size limit for the parser; 0 disables it
        worker_concurrency: parallel parse/expand jobs in the worker pool (1..32)
    """

    log_level: str = "INFO"
    enable_full_parsing: bool = False
    expansion_days_window: int = 365
    default_week_start: str = "MO"
    max_ics_size_bytes: int = 50 * 1024 * 1024
    worker_concurrency: int = 4

    @property
    def size_limit(self) -> int | None:
        """Size limit for the line reader, or None when disabled."""
        return self.max_ics_size_bytes if self.max_ics_size_bytes > 0 else None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int and clamped to their allowed
        ranges; unusable values fall back to the default. Every coercion is
        logged as a warning rather than raised.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int, low: int, high: int | None = None) -> int:
            raw = data.get(key, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            if value < low:
                logger.warning("%s %d below minimum; coercing to %d", key, value, low)
                return low
            if high is not None and value > high:
                logger.warning("%s %d above maximum; coercing to %d", key, value, high)
                return high
            return value

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        full_parsing = data.get("enable_full_parsing", False)
        if isinstance(full_parsing, str):
            full_parsing = full_parsing.strip().lower() in _TRUTHY
        else:
            full_parsing = bool(full_parsing)

        week_start = str(data.get("default_week_start", "MO")).upper()
        if week_start not in Weekday.__members__:
            logger.warning("default_week_start %r is not a weekday code; using MO", week_start)
            week_start = "MO"

        return cls(
            log_level=log_level,
            enable_full_parsing=full_parsing,
            expansion_days_window=_coerce_int("expansion_days_window", 365, 1, 3660),
            default_week_start=week_start,
            max_ics_size_bytes=_coerce_int("max_ics_size_bytes", 50 * 1024 * 1024, 0),
            worker_concurrency=_coerce_int("worker_concurrency", 4, 1, 32),
        )


def _load_yaml(path: Path) -> Any:
    """Load the raw document from a YAML (or JSON) file; empty files load as {}."""
    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    return {} if loaded is None else loaded


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    merged = dict(data)
    env_level = os.getenv("CALDAV_LITE_LOG_LEVEL", "").strip()
    if env_level:
        merged["log_level"] = env_level
    env_full = os.getenv("CALDAV_LITE_FULL_PARSING", "").strip()
    if env_full:
        merged["enable_full_parsing"] = env_full.lower() in _TRUTHY
    return merged


def load_config(path: str | None = None) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file. If not provided the default is
              ./caldav_lite/config.yaml (relative to current working dir).

    Returns:
        Config dataclass instance with values from file (or defaults).

    Behavior:
    - If file is missing: returns defaults (environment overrides still apply).
    - If file exists but top-level is not a mapping: raises ValueError.
    - Invalid YAML propagates yaml.YAMLError.
    """
    p = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        cfg = Config.from_dict(_apply_env_overrides({}))
        logger.debug("Default Config in use: %s", cfg)
        return cfg

    raw = _load_yaml(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
    cfg = Config.from_dict(_apply_env_overrides(raw))
    logger.info("Loaded configuration from %s", p)
    logger.debug("Configuration values: %s", cfg)
    return cfg

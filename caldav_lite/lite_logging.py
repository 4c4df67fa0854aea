"""
Central logging configuration for caldav_lite.

Keeps caldav_lite's own loggers at INFO (or DEBUG on request) while holding
chatty third-party loggers at WARNING, so per-line parser diagnostics can be
switched on without drowning in library output.
"""

import logging
import os
from typing import Optional

# Package modules whose level follows the debug switch.
LITE_MODULES = [
    "caldav_lite",
    "caldav_lite.lite_line_reader",
    "caldav_lite.lite_parser",
    "caldav_lite.lite_extraction",
    "caldav_lite.lite_rrule_parser",
    "caldav_lite.lite_rrule_expander",
    "caldav_lite.worker_pool",
]

# Third-party loggers held at WARNING unless reset for troubleshooting.
SUPPRESSED_LOGGERS = [
    "asyncio",
    "icalendar",
    "dateutil",
]


def configure_lite_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for caldav_lite.

    Debug mode can be overridden via environment variable for troubleshooting
    without changing code.

    Args:
        debug_mode: Whether to enable debug logging for caldav_lite modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        CALDAV_LITE_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALDAV_LITE_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("CALDAV_LITE_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("CALDAV_LITE_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    # Don't use force=True: keep the colorized handler installed by _init_logging
    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s"))
        root_logger.addHandler(handler)

    logger_config: dict[str, int] = {name: logging.WARNING for name in SUPPRESSED_LOGGERS}

    lite_level = logging.DEBUG if final_debug else logging.INFO
    for module in LITE_MODULES:
        logger_config[module] = lite_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for caldav_lite modules")
    else:
        root_logger.info("Production logging configuration applied")


def reset_logging_to_debug() -> None:
    """
    Reset all loggers to DEBUG level for troubleshooting.
    """
    logging.getLogger().setLevel(logging.DEBUG)
    for logger_name in SUPPRESSED_LOGGERS + LITE_MODULES:
        logging.getLogger(logger_name).setLevel(logging.DEBUG)

    logging.getLogger().info("All loggers reset to DEBUG level for troubleshooting")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["caldav_lite", "caldav_lite.lite_parser", "caldav_lite.lite_rrule_expander", "asyncio"]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status

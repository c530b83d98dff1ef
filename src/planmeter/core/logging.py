"""Centralized logging facility for PlanMeter.

Configures loguru's sinks (console output, rotating log file) from
the `logging` configuration group. Log files are stored in the
user's log directory.

Usage:
    from planmeter.core.logging import setup_logging
    setup_logging(config)

All modules log via `from loguru import logger`.
"""

import sys
from pathlib import Path

from loguru import logger
from platformdirs import user_log_dir

from planmeter.config.manager import ConfigManager


_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

_LOG_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{name}:{function}:{line} | "
    "{message}"
)

_log_dir: Path | None = None


def get_log_dir() -> Path:
    """Return the directory where log files are stored."""
    global _log_dir
    if _log_dir is None:
        _log_dir = Path(user_log_dir("PlanMeter", "PlanMeter"))
    return _log_dir


def get_current_log_path() -> Path:
    """Return the path to the current (active) log file."""
    return get_log_dir() / "planmeter.log"


def setup_logging(config: ConfigManager, log_dir: Path | None = None):
    """Configure the logging system based on the `logging` settings.

    Call once at startup, after config is loaded. `log_dir` overrides
    the per-user log directory.
    """
    level = config.get("logging", "log_level", "INFO")
    log_to_file = config.get("logging", "log_to_file", True)
    console_output = config.get("logging", "log_console_output", True)
    retention_days = config.get("logging", "log_retention_days", 30)
    max_size_mb = config.get("logging", "log_max_size_mb", 50)

    logger.remove()

    if console_output:
        logger.add(
            sys.stderr,
            format=_LOG_FORMAT,
            level=level,
            colorize=True,
        )

    if log_to_file:
        target_dir = Path(log_dir) if log_dir is not None else get_log_dir()
        target_dir.mkdir(parents=True, exist_ok=True)
        log_path = target_dir / "planmeter.log"

        logger.add(
            str(log_path),
            format=_LOG_FILE_FORMAT,
            level="DEBUG",  # Always capture DEBUG to file for diagnostics
            rotation=f"{max_size_mb} MB",
            retention=f"{retention_days} days",
            compression="zip",
            encoding="utf-8",
            enqueue=True,
        )

        logger.info(f"Log file: {log_path}")

    logger.info(f"Logging initialized (console={level}, file=DEBUG)")

"""Shared utilities for PolicyTracker.

- config.py: OpenAI credentials and the environment-driven TrackerConfig
- monitoring.py: Outcome counters, progress line and end-of-run summary
- logging_config.yaml: Handlers and levels applied by setup_logging()

Logging is configured once per process. The CLI calls setup_logging() before
any command runs; library code asks for loggers through get_logger(), which
configures logging on first use so modules imported outside the CLI (tests,
notebooks) still log to the same handlers.

Python Learning Notes:
    - logging.config.dictConfig() takes the whole configuration as one mapping,
      which is exactly what yaml.safe_load() returns
    - A module-level flag makes a setup function safe to call repeatedly
"""

import logging
import logging.config
from pathlib import Path
from typing import Optional

import yaml

from .config import TrackerConfig, get_openai_api_key
from .monitoring import PerformanceMonitor

DEFAULT_LOGGING_CONFIG = Path(__file__).parent / "logging_config.yaml"

_logging_configured = False


def _ensure_log_dirs(config: dict) -> None:
    """Create the directories file handlers write into (``logs/`` by default)."""
    for handler in config.get("handlers", {}).values():
        filename = handler.get("filename")
        if filename:
            Path(filename).parent.mkdir(parents=True, exist_ok=True)


def setup_logging(config_path: Optional[Path] = None) -> None:
    """Apply the YAML logging configuration, once.

    The bundled configuration sends INFO and above to the console, keeps a
    rotating DEBUG trail in logs/debug.log and collects errors in
    logs/error.log. The ``policytracker.processors`` loggers log at DEBUG
    so every oracle retry and dedup decision ends up in the trail.

    Args:
        config_path (Optional[Path]): Alternative dictConfig YAML file.
            Defaults to the logging_config.yaml shipped with the package.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    global _logging_configured

    if _logging_configured:
        return

    path = Path(config_path) if config_path else DEFAULT_LOGGING_CONFIG
    if not path.exists():
        raise FileNotFoundError(f"Logging config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f)

    _ensure_log_dirs(config)
    logging.config.dictConfig(config)
    _logging_configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for ``name``, configuring logging first if nobody has yet.

    Example:
        logger = get_logger(__name__)
        logger.info("Screened %d candidate(s)", len(ids))
    """
    if not _logging_configured:
        setup_logging()
    return logging.getLogger(name or __name__)


__all__ = [
    "get_openai_api_key",
    "TrackerConfig",
    "PerformanceMonitor",
    "setup_logging",
    "get_logger",
]

"""Logging setup for seikyu.

Every module logs under the ``seikyu`` tree (``seikyu.invoice``,
``seikyu.triggers`` ...). Records are shown with the short module name, and
``[logging.levels]`` in the config can raise or lower single modules, e.g.
``storage = "DEBUG"`` to trace WebDAV calls during a run.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import Config, LoggingConfig

ROOT_LOGGER = "seikyu"

# WebDAV and converter traffic logs every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")

CONSOLE_FORMAT = "%(levelname)-5s [%(module_name)-13s] %(message)s"
TIMESTAMPED_FORMAT = "%(asctime)s %(levelname)-5s [%(module_name)-13s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_initialized = False


class ModuleNameFilter(logging.Filter):
    """Adds ``module_name``: the logger name without the ``seikyu.`` prefix."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(ROOT_LOGGER + "."):
            name = name[len(ROOT_LOGGER) + 1:]
        record.module_name = name
        return True


def _level(name: str, fallback: int = logging.INFO) -> int:
    return getattr(logging, name.upper(), fallback)


def _handler(handler: logging.Handler, level: int, fmt: str, datefmt: str | None) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    handler.addFilter(ModuleNameFilter())
    return handler


def _file_handler(log_config: LoggingConfig) -> logging.Handler:
    file_path = Path(log_config.file)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_config.rotate:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_config.max_size_mb * 1024 * 1024,
            backupCount=log_config.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def setup_logging(
    config: Config,
    verbose: bool = False,
    daemon_mode: bool = False,
) -> None:
    """
    Configure the ``seikyu`` logger tree.

    Args:
        config: Application configuration with logging settings
        verbose: If True, override config level to DEBUG
        daemon_mode: If True, include timestamps in console output
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    log_config = config.logging
    level = logging.DEBUG if verbose else _level(log_config.level)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    if log_config.output in ("console", "both"):
        fmt = TIMESTAMPED_FORMAT if daemon_mode else CONSOLE_FORMAT
        datefmt = DATE_FORMAT if daemon_mode else None
        logger.addHandler(_handler(logging.StreamHandler(sys.stderr), level, fmt, datefmt))

    if log_config.output in ("file", "both") and log_config.file:
        logger.addHandler(_handler(_file_handler(log_config), level, TIMESTAMPED_FORMAT, DATE_FORMAT))

    # Per-module overrides only apply without --verbose. Handlers pass the
    # lowest configured level; each logger filters its own records.
    if not verbose:
        for module, module_level in log_config.levels.items():
            module_level = _level(module_level, level)
            logging.getLogger(f"{ROOT_LOGGER}.{module}").setLevel(module_level)
            for handler in logger.handlers:
                handler.setLevel(min(handler.level, module_level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def reset_logging() -> None:
    """Reset logging state for testing purposes."""
    global _initialized
    _initialized = False
    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith(ROOT_LOGGER + "."):
            logging.getLogger(name).setLevel(logging.NOTSET)

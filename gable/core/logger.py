from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

LOG_DIR_NAME = Path("__Temps") / "__Logs"

_LOGGER: logging.Logger | None = None


def default_log_dir(workspace: Path) -> Path:
    return Path(workspace) / LOG_DIR_NAME


def get_logger(log_dir: Path | None = None) -> logging.Logger:
    """Return the configured ``gable`` logger writing to <log_dir>/gable.log.

    Creates the directory if needed. Uses rotating file handler. Without a
    ``log_dir`` only the console handler is attached. Library modules never
    call this; the CLI does, once per process.
    """
    global _LOGGER
    if _LOGGER is not None:
        return _LOGGER

    logger = logging.getLogger("gable")
    logger.setLevel(logging.INFO)
    logger.propagate = False

    fmt = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if log_dir is not None:
        base = Path(log_dir)
        base.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            base / "gable.log", maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(fmt)
    logger.addHandler(console)

    _LOGGER = logger
    return logger


def add_file_handler(log_dir: Path) -> Path:
    """Attach <log_dir>/gable.log to the configured logger once; return the log path."""

    logger = get_logger()
    base = Path(log_dir)
    base.mkdir(parents=True, exist_ok=True)
    log_path = (base / "gable.log").resolve()
    for handler in logger.handlers:
        if isinstance(handler, RotatingFileHandler) and Path(handler.baseFilename) == log_path:
            return log_path
    file_handler = RotatingFileHandler(
        log_path, maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    if logger.handlers:
        file_handler.setFormatter(logger.handlers[0].formatter)
    logger.addHandler(file_handler)
    return log_path


def reset_logger() -> None:
    """Drop configured handlers so the next get_logger() call starts fresh."""
    global _LOGGER
    logger = logging.getLogger("gable")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    _LOGGER = None

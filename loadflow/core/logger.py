from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys
from .profiles import _work_dir


_LOGGER: logging.Logger | None = None


class _UserIdFilter(logging.Filter):
    """Default the ``user_id`` record attribute used by the formatter."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "user_id"):
            record.user_id = "-"
        return True


def get_logger(log_dir: Path | None = None) -> logging.Logger:
    """Return the application logger writing to ./loadflow/work/logs/app.log.

    Creates the directory if needed. Uses rotating file handler. Records carry
    the virtual user id (``extra={"user_id": ...}``) or ``-`` outside a flow.
    """
    global _LOGGER
    if _LOGGER is not None:
        return _LOGGER

    if log_dir is None:
        base = _work_dir() / "logs"
    else:
        base = Path(log_dir)
    base.mkdir(parents=True, exist_ok=True)
    log_path = base / "app.log"

    logger = logging.getLogger("loadflow")
    logger.setLevel(logging.INFO)
    logger.propagate = False

    fmt = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s [%(user_id)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    user_filter = _UserIdFilter()

    file_handler = RotatingFileHandler(log_path, maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8")
    file_handler.setFormatter(fmt)
    file_handler.addFilter(user_filter)
    logger.addHandler(file_handler)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(fmt)
    console.addFilter(user_filter)
    logger.addHandler(console)

    _LOGGER = logger
    return logger


def set_level(level_name: str) -> int:
    """Apply ``level_name`` (e.g. ``DEBUG``) to the application logger."""

    level_value = getattr(logging, level_name.upper(), None)
    if not isinstance(level_value, int):
        raise ValueError(f"Unknown log level: {level_name}")
    get_logger().setLevel(level_value)
    return level_value

"""Logging setup: a rotating log file plus an optional console handler."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_DIR = Path.home() / ".timesheettimer" / "logs"


def setup_logging(
        level="INFO",
        log_dir: Path | None = None,
        console=False,
        max_bytes=5 * 1024 * 1024,
        backup_count=5,
) -> logging.Logger:
    """Attach handlers to the ``timesheettimer`` logger.  Safe to call twice."""
    logger = logging.getLogger("timesheettimer")
    logger.setLevel(level)

    log_dir = log_dir or LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    fmt = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    file_handler_name = "timesheettimer:file"
    if not any(h.get_name() == file_handler_name for h in logger.handlers):
        file_handler = RotatingFileHandler(
            filename=log_dir / "timesheettimer.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(fmt)
        file_handler.set_name(file_handler_name)
        logger.addHandler(file_handler)

    console_handler_name = "timesheettimer:console"
    if console and not any(h.get_name() == console_handler_name for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(fmt)
        console_handler.set_name(console_handler_name)
        logger.addHandler(console_handler)

    return logger

"""
Logging configuration for the ledger service.

Creates a rotating file-based logger under LOG_DIR (default ./logs).
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

LEDGER_LOGGER = "ledger"
LEDGER_LOG_FILE = "ledger.log"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5


def _setup_file_logger(name: str, log_file: Path, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    # Avoid duplicate handlers if setup_logging is called multiple times
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    return logger


def setup_logging(log_level: str = "INFO", log_dir: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Configure the root level and the service logger for the ledger.
    """
    level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)

    directory = Path(log_dir) if log_dir else Path("logs")
    directory.mkdir(parents=True, exist_ok=True)

    logging.getLogger().setLevel(level)
    logger = _setup_file_logger(LEDGER_LOGGER, directory / LEDGER_LOG_FILE, level)

    # SQL statements only when DB_ECHO is on; the engine handles that itself
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Convenience wrapper to get a named logger.
    """
    return logging.getLogger(name)

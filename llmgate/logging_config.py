"""Logging configuration for LLMGate.

Console output is colored with colorlog, the log file rotates, and the file
handler can switch to JSON records (python-json-logger) for log shipping.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import colorlog
from pythonjsonlogger import json

_CONSOLE_FORMAT = "%(log_color)s%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


def setup_logging(
    log_level: str = "INFO",
    log_file_level: str = "DEBUG",
    log_dir: Path | str | None = None,
    log_file_name: str = "llmgate.log",
    log_json_format: bool = False,
    log_max_bytes: int = 10485760,  # 10MB
    log_backup_count: int = 5,
    force: bool = False,
) -> None:
    """Configure console and rotating-file logging for LLMGate.

    Args:
        log_level: Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file_level: File log level (typically DEBUG for full details)
        log_dir: Directory for log files (defaults to 'logs' in project root)
        log_file_name: Name of the log file
        log_json_format: Write JSON records to the log file
        log_max_bytes: Maximum size of log file before rotation
        log_backup_count: Number of rotated files to keep
        force: Reconfigure even if the root logger already has handlers

    Environment Variables:
        LLMGATE_LOG_LEVEL, LLMGATE_LOG_FILE_LEVEL, LLMGATE_LOG_DIR,
        LLMGATE_LOG_FILE_NAME, LLMGATE_LOG_JSON_FORMAT,
        LLMGATE_LOG_MAX_BYTES, LLMGATE_LOG_BACKUP_COUNT
    """
    root_logger = logging.getLogger()
    if root_logger.handlers and not force:
        # Host application already configured logging
        return

    log_level = os.getenv("LLMGATE_LOG_LEVEL", log_level).upper()
    log_file_level = os.getenv("LLMGATE_LOG_FILE_LEVEL", log_file_level).upper()
    log_dir = os.getenv("LLMGATE_LOG_DIR", log_dir)
    log_file_name = os.getenv("LLMGATE_LOG_FILE_NAME", log_file_name)
    log_json_format = os.getenv("LLMGATE_LOG_JSON_FORMAT", str(log_json_format)).lower() in ("true", "1", "yes")
    log_max_bytes = _env_int("LLMGATE_LOG_MAX_BYTES", log_max_bytes)
    log_backup_count = _env_int("LLMGATE_LOG_BACKUP_COUNT", log_backup_count)

    if log_dir is None:
        log_dir = Path(__file__).parent.parent / "logs"
    else:
        log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    numeric_level = getattr(logging, log_level, logging.INFO)
    numeric_file_level = getattr(logging, log_file_level, logging.DEBUG)

    # Handlers do the filtering
    root_logger.setLevel(logging.DEBUG)
    if force:
        root_logger.handlers.clear()

    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            _CONSOLE_FORMAT,
            datefmt=_DATE_FORMAT,
            reset=True,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
            style="%",
        )
    )
    root_logger.addHandler(console_handler)

    log_file_path = log_dir / log_file_name
    file_handler = RotatingFileHandler(
        log_file_path,
        maxBytes=log_max_bytes,
        backupCount=log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(numeric_file_level)
    if log_json_format:
        file_handler.setFormatter(
            json.JsonFormatter("%(asctime)s %(name)s %(levelname)s %(message)s", datefmt=_DATE_FORMAT)
        )
    else:
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
    root_logger.addHandler(file_handler)

    logging.getLogger(__name__).info(
        f"Logging configured: console={log_level}, file={log_file_level}, "
        f"file_path={log_file_path}, json_format={log_json_format}"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger, configuring logging first if nothing has yet.

    Args:
        name: Logger name (typically __name__)

    Returns:
        logging.Logger: Configured logger instance
    """
    if not logging.getLogger().handlers:
        setup_logging()
    return logging.getLogger(name)

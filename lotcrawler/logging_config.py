"""Console and JSON-file logging for crawl runs."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from pythonjsonlogger.json import JsonFormatter

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"

APP_LOG_FILE = "app.log"
ERROR_LOG_FILE = "error.log"

# Chatty third-party loggers, kept at WARNING unless verbose
NOISY_LOGGERS = ("httpx", "httpcore")


class CrawlJsonFormatter(JsonFormatter):
    """JSON formatter adding timestamp, level, logger and source location."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["source"] = f"{record.filename}:{record.lineno}"
        if record.funcName:
            log_record["function"] = record.funcName


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = "INFO",
    log_dir: str | Path | None = None,
    verbose: bool = False,
) -> logging.Logger:
    """Configure the root logger.

    A human-readable stdout handler is always installed. With ``log_dir``,
    every record also goes to ``app.log`` and errors to ``error.log``, both
    as one JSON object per line.

    Args:
        level: Root log level name
        log_dir: Directory for the JSON log files (created if missing)
        verbose: Force DEBUG regardless of ``level``

    Returns:
        The configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console)

    if log_dir:
        logs_dir = Path(log_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        json_formatter = CrawlJsonFormatter(JSON_FORMAT)
        root_logger.addHandler(_file_handler(logs_dir / APP_LOG_FILE, logging.DEBUG, json_formatter))
        root_logger.addHandler(_file_handler(logs_dir / ERROR_LOG_FILE, logging.ERROR, json_formatter))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    return root_logger


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Attaches fixed context fields (e.g. the category) to every record."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, **context) -> ContextLoggerAdapter:
    """Get a logger whose records carry ``context`` as extra fields."""
    return ContextLoggerAdapter(logging.getLogger(name), context)

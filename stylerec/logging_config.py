"""Logging setup: readable console output plus JSON log files."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

from stylerec.config import settings

SERVICE_NAME = "stylerec"

# Request context promoted to top-level JSON keys, null when a record lacks it
CONTEXT_FIELDS = ("user_id", "source", "link_id")

# Client libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    One JSON object per record.

    Every record carries ``service``, ``timestamp`` (UTC, from the record's
    creation time), ``level``, ``logger`` and ``location``, plus the
    recommendation context keys in CONTEXT_FIELDS.
    """

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['service'] = SERVICE_NAME
        log_record['timestamp'] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['location'] = f"{record.module}.{record.funcName}:{record.lineno}"
        for key in CONTEXT_FIELDS:
            log_record.setdefault(key, getattr(record, key, None))


def setup_logging(log_dir: Optional[str | Path] = None) -> logging.Logger:
    """
    Route the root logger to stdout and two JSON files.

    ``stylerec.log`` gets everything at or above LOG_LEVEL and
    ``stylerec-errors.log`` only errors. Files go in ``log_dir``, falling
    back to the LOG_DIR setting.
    """
    logs_dir = Path(log_dir if log_dir is not None else settings.log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level.upper())
    root_logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(
        logging.Formatter(f"%(asctime)s [{SERVICE_NAME}] %(levelname)s %(name)s: %(message)s")
    )
    root_logger.addHandler(console)

    json_formatter = CustomJsonFormatter("%(message)s")
    for filename, level in ((f"{SERVICE_NAME}.log", logging.NOTSET), (f"{SERVICE_NAME}-errors.log", logging.ERROR)):
        handler = logging.FileHandler(logs_dir / filename)
        handler.setLevel(level)
        handler.setFormatter(json_formatter)
        root_logger.addHandler(handler)

    if not settings.debug:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


class ContextLogger(logging.LoggerAdapter):
    """Attaches fixed request context (user, source) to every record it logs."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs

    def bind(self, **context) -> "ContextLogger":
        """Copy of this logger with extra context fields."""
        return ContextLogger(self.logger, {**self.extra, **context})


def get_logger(name: str, **context) -> ContextLogger:
    """Logger for ``name`` tagging each record with ``context`` (e.g. user_id='u1')."""
    return ContextLogger(logging.getLogger(name), context)

"""Structured JSON logging configuration."""
import logging
import sys
from pythonjsonlogger import jsonlogger
from userdir.core.config import settings
from userdir.middleware.request_id import current_request_id

_FORMAT = "%(asctime)s %(name)s %(levelname)s %(request_id)s %(message)s"


class RequestIdFilter(logging.Filter):
    """Stamp every record with the id of the request being served, if any."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = current_request_id() or "-"
        return True


def setup_logging() -> None:
    """Configure JSON structured logging for production, human-readable for dev."""
    if settings.APP_ENV == "production":
        handler = logging.StreamHandler(sys.stdout)
        formatter = jsonlogger.JsonFormatter(
            _FORMAT,
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
        handler.setFormatter(formatter)
        handler.addFilter(RequestIdFilter())
        logging.root.handlers = [handler]
        logging.root.setLevel(logging.INFO)
    else:
        logging.basicConfig(level=logging.INFO, format=_FORMAT)
        for handler in logging.root.handlers:
            handler.addFilter(RequestIdFilter())

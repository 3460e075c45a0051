import logging
import logging.handlers
import os
import sys

from transplantflow.config import get_settings


class RequestIDFilter(logging.Filter):
    """Stamp a request_id on every record so the format string never fails."""

    def filter(self, record):
        record.request_id = getattr(record, "request_id", "N/A")
        return True


def setup_logging() -> logging.Logger:
    """Configure logging for the application."""
    settings = get_settings()

    formatter = logging.Formatter(settings.log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.INFO)
    root_logger.addHandler(console_handler)

    # File handler for production
    if not settings.debug:
        log_dir = os.path.dirname(settings.log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            settings.log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(getattr(logging, settings.log_level.upper()))
        root_logger.addHandler(file_handler)

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)  # Suppress HTTP request logs from httpx

    request_id_filter = RequestIDFilter()
    for handler in root_logger.handlers:
        handler.addFilter(request_id_filter)

    return root_logger

"""
Logging configuration for channel adapter processes.

- Cloud Run (K_SERVICE set): google-cloud-logging handler
- Anywhere else: one stdout handler emitting JSON lines

Library modules only call ``logging.getLogger(__name__)``; configuring
handlers is left to the process that embeds the adapter.
"""

import json
import logging
import os
from datetime import UTC, datetime

DEFAULT_LOG_LEVEL = "INFO"


class JsonFormatter(logging.Formatter):
    """
    Formats records as single-line JSON, with the same field names
    Cloud Logging uses so local output reads the same as production.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_object = {
            "timestamp": datetime.now(UTC).isoformat(),
            "severity": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        # Structured context passed as extra={"extra_fields": {...}}
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            log_object.update(record.extra_fields)

        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, default=str)


def setup_global_logging(level: str | None = None) -> None:
    """
    Configure root logging based on environment.

    Args:
        level: Log level name (defaults to LOG_LEVEL env var, then INFO)
    """
    level_name = (level or os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL)).upper()
    is_cloud_run = os.getenv("K_SERVICE") is not None

    if is_cloud_run:
        try:
            import google.cloud.logging

            client = google.cloud.logging.Client()
            client.setup_logging(log_level=getattr(logging, level_name, logging.INFO))
            logging.info("Cloud Logging initialized for Cloud Run.")
            return
        except Exception as e:
            logging.basicConfig(
                level=level_name,
                format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            )
            logging.warning(f"Cloud Logging setup failed, using basic config: {e}")
            return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    # Replace existing handlers so repeated setup does not duplicate output
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level_name)

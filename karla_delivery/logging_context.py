"""Logging setup that stamps a Karla namespace on every record."""

from __future__ import annotations

import logging

APP_NAME = "karla_delivery"

_FORMAT = "%(asctime)s %(levelname)s [%(namespace)s] %(name)s: %(message)s"


class KarlaContextFilter(logging.Filter):
    """Adds ``namespace`` and ``app`` attributes to log records.

    The namespace is hierarchical: a record logged with
    ``extra={"component": "webhook.receiver"}`` gets
    ``namespace="karla.webhook.receiver"``; records without a component get
    ``namespace="karla"``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        component = getattr(record, "component", None)
        record.namespace = f"karla.{component}" if component else "karla"
        record.app = APP_NAME
        return True


def configure_logging(debug: bool = False) -> logging.Logger:
    """Install a stream handler with the context filter on the package logger."""
    logger = logging.getLogger(APP_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    if not any(isinstance(f, KarlaContextFilter) for h in logger.handlers for f in h.filters):
        handler = logging.StreamHandler()
        handler.addFilter(KarlaContextFilter())
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    return logger

"""Logging setup driven by `logging` config section (level + json|text)."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from chatcore.config.schemas.observability import LoggingConfig

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

ROOT_LOGGER = "gemrelay"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra={"fields": {...}}`` is merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            payload.update(fields)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(cfg: LoggingConfig | None = None) -> logging.Logger:
    """Install a single stream handler on the ``gemrelay`` logger tree.

    Idempotent: repeated calls replace the handler instead of stacking.
    """
    cfg = cfg or LoggingConfig()
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_LEVELS.get(cfg.level, logging.INFO))
    for h in list(logger.handlers):
        if getattr(h, "_gemrelay_handler", False):
            logger.removeHandler(h)
    handler = logging.StreamHandler()
    handler._gemrelay_handler = True  # type: ignore[attr-defined]
    if cfg.format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s: %(message)s"
            )
        )
    logger.addHandler(handler)
    logger.propagate = False
    return logger


__all__ = ["configure_logging", "JsonFormatter", "ROOT_LOGGER"]

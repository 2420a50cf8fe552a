"""JSON logging configuration for Quizline API."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Configure JSON logging for the application."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the quizline namespace."""
    return logging.getLogger(f"quizline.{name}")


class TenantLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that merges tenant/channel-user context into every record."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = kwargs.pop("context", None)
        extra = kwargs.get("extra") or {}
        extra_context = extra.get("context") if isinstance(extra, dict) else None
        if context or extra_context or self.extra:
            combined_context = {**self.extra, **(extra_context or {}), **(context or {})}
            kwargs["extra"] = {"context": combined_context}
        return msg, kwargs


def tenant_logger(logger: logging.Logger, tenant_id: Any, channel_user_id: str | None = None) -> TenantLoggerAdapter:
    """Bind tenant (and optionally channel-user) ids to a logger."""
    context: dict[str, Any] = {"tenant_id": str(tenant_id)}
    if channel_user_id:
        context["channel_user_id"] = channel_user_id
    return TenantLoggerAdapter(logger, context)

"""
Structured Logging Setup

Consistent logging configuration across all tracker services.
Uses JSON format for structured logs in production.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service", "unknown"),
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields
        for key, value in record.__dict__.items():
            if key not in (
                "name", "msg", "args", "levelname", "levelno", "pathname",
                "filename", "module", "exc_info", "exc_text", "stack_info",
                "lineno", "funcName", "created", "msecs", "relativeCreated",
                "thread", "threadName", "processName", "process", "service",
                "message", "taskName",
            ):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ServiceLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds service name to all logs"""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs.setdefault("extra", {})
        kwargs["extra"]["service"] = self.extra.get("service", "unknown")
        return msg, kwargs


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    json_format: bool = True,
) -> logging.Logger:
    """
    Set up structured logging for a service.

    Args:
        service_name: Name of the service (e.g., "location.worker")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format (True for production, False for dev)

    Returns:
        Configured logger instance
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(f"smallbasket.{service_name}")
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)

    if json_format:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Don't propagate to root logger
    logger.propagate = False

    return logger


def get_service_logger(service_name: str) -> ServiceLoggerAdapter:
    """
    Get a logger adapter with service context.

    TRACKER_LOG_LEVEL and TRACKER_LOG_FORMAT override the defaults.
    """
    log_level = os.environ.get("TRACKER_LOG_LEVEL", "INFO")
    json_format = os.environ.get("TRACKER_LOG_FORMAT", "json").lower() == "json"

    logger = setup_logging(service_name, log_level, json_format)
    return ServiceLoggerAdapter(logger, {"service": service_name})


def set_log_level(log_level: str) -> None:
    """Apply a log level to every tracker logger created so far"""
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith("smallbasket.") and isinstance(logger, logging.Logger):
            logger.setLevel(numeric_level)
            for handler in logger.handlers:
                handler.setLevel(numeric_level)


class LogContext:
    """
    Context manager for adding temporary context to logs.

    Usage:
        with LogContext(logger, work_name="location_tracking_work"):
            logger.info("Polling")
    """

    def __init__(self, logger: logging.Logger, **context: Any):
        self.logger = logger
        self.context = context
        self._original_factory = None

    def __enter__(self):
        self._original_factory = logging.getLogRecordFactory()

        def record_factory(*args, **kwargs):
            record = self._original_factory(*args, **kwargs)
            for key, value in self.context.items():
                setattr(record, key, value)
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        logging.setLogRecordFactory(self._original_factory)
        return False


def log_location_sample(logger: logging.Logger, sample: Any) -> None:
    """Log a saved location sample"""
    logger.debug(
        f"Location saved: {sample.source.value} at {sample.timestamp} "
        f"({sample.latitude:.6f}, {sample.longitude:.6f}) ±{sample.accuracy:.0f}m",
        extra={
            "source": sample.source.value,
            "sample_timestamp": sample.timestamp,
            "accuracy": sample.accuracy,
        },
    )


def log_work_result(
    logger: logging.Logger,
    work_name: str,
    status: str,
    reason: str = "",
    duration_ms: float | None = None,
) -> None:
    """Log the outcome of a scheduled work run"""
    log_method = {
        "success": logger.debug,
        "no_sample": logger.info,
        "retry": logger.warning,
        "failure": logger.error,
    }.get(status, logger.info)

    timing = f" in {duration_ms:.0f}ms" if duration_ms is not None else ""
    detail = f" ({reason})" if reason else ""
    log_method(
        f"Work '{work_name}' finished: {status.upper()}{detail}{timing}",
        extra={
            "work_name": work_name,
            "work_status": status,
            "reason": reason,
            "duration_ms": duration_ms,
        },
    )


def log_motion_transition(
    logger: logging.Logger,
    activity_name: str,
    transition: str,
) -> None:
    """Log a motion transition event"""
    logger.debug(
        f"Activity transition: {activity_name} {transition}",
        extra={"activity": activity_name, "transition": transition},
    )

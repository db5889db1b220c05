"""
Structured logging configuration for the reminders backend.

Provides JSON-formatted logging with file rotation for production environments
and human-readable console logging for development.

Loggers:
- api: HTTP requests, responses, exception handlers
- services: Notification store and subscription registry operations
- scheduler: Reminder scans and per-session timers
- push: Web Push delivery attempts and subscription deactivation
- db: Database operations
- websocket: Live notification feed connections
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional


LOGGER_NAMES = ["api", "services", "scheduler", "push", "db", "websocket"]

# Attributes present on every LogRecord; anything else came from extra={...}
_RESERVED_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """
    Custom formatter that outputs logs as JSON for structured logging.

    Each log record includes:
    - timestamp: ISO 8601 format
    - level: Log level (INFO, ERROR, etc.)
    - logger: Logger name
    - message: Log message
    - module, function, line: Call site
    - Additional fields: exception info, fields passed via extra={...}
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable formatter for console output in development.

    Format: [TIMESTAMP] LEVEL - LOGGER - MESSAGE
    Example: [2026-01-05 10:30:45] INFO - reminders.scheduler - Reminder scan completed
    """

    def __init__(self):
        super().__init__(
            fmt="[%(asctime)s] %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )


def _get_log_level() -> int:
    """
    Get log level from environment variable.

    Environment Variables:
        REMINDERS_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default INFO)
    """
    level_str = os.environ.get("REMINDERS_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def _get_log_dir() -> Path:
    """
    Get log directory path from environment variable or use default.

    Environment Variables:
        REMINDERS_LOG_DIR: Custom log directory path (default ./logs)
    """
    log_dir = Path(os.environ.get("REMINDERS_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _is_production() -> bool:
    """
    Check if running in production environment.

    Environment Variables:
        REMINDERS_ENV: production, development, test (default development)
    """
    env = os.environ.get("REMINDERS_ENV", "development").lower()
    return env == "production"


def configure_logging() -> Dict[str, logging.Logger]:
    """
    Configure structured logging for the reminders backend.

    Behavior:
    - Production (REMINDERS_ENV=production):
      * JSON-formatted logs to files with rotation
      * One file per logger (api.log, scheduler.log, push.log, ...)
      * File rotation: 10MB max size, 5 backup files

    - Development (default):
      * Human-readable console output
      * No file logging

    Returns:
        Dictionary mapping logger names to configured Logger instances
    """
    log_level = _get_log_level()
    is_prod = _is_production()
    log_dir = _get_log_dir() if is_prod else None

    loggers = {}

    for logger_name in LOGGER_NAMES:
        logger = logging.getLogger(f"reminders.{logger_name}")
        logger.setLevel(log_level)
        logger.propagate = False

        logger.handlers.clear()

        if is_prod:
            log_file = log_dir / f"{logger_name}.log"
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding="utf-8"
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(JSONFormatter())
            logger.addHandler(file_handler)
        else:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(log_level)
            console_handler.setFormatter(ConsoleFormatter())
            logger.addHandler(console_handler)

        loggers[logger_name] = logger

    return loggers


# Singleton logger instances
_loggers: Optional[Dict[str, logging.Logger]] = None


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger by name.

    Args:
        name: Logger name (api, services, scheduler, push, db, websocket)

    Returns:
        Configured Logger instance

    Raises:
        ValueError: If logger name is not recognized

    Example:
        >>> logger = get_logger("push")
        >>> logger.info("Push delivered", extra={"user_id": "u-1"})
    """
    global _loggers

    if _loggers is None:
        _loggers = configure_logging()

    if name not in _loggers:
        raise ValueError(
            f"Unknown logger name: {name}. "
            f"Valid names: {', '.join(_loggers.keys())}"
        )

    return _loggers[name]


def init_logging() -> Dict[str, logging.Logger]:
    """
    Initialize logging configuration (called on application startup).

    Returns:
        Dictionary of configured loggers
    """
    global _loggers
    _loggers = configure_logging()
    return _loggers

# -*- coding: utf-8 -*-
"""
Centralized logging configuration for the bootstrap engine.

This module provides structured logging for every engine component. Console
output is human readable; the optional run log file is JSON, one record per
line, so runs can be audited after the fact.

Features:
- JSON-structured file logging
- Consistent console formatting
- Environment-aware configuration
- Artifact events with consistent metadata
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_RESERVED_RECORD_KEYS = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
        "asctime",
    ]
)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Formats log records as JSON with consistent structure including:
    - timestamp (ISO format, UTC)
    - level
    - service name
    - message
    - additional metadata passed through ``extra``
    """

    def __init__(self, service_name: str = "bootstrap-engine"):
        super().__init__()
        self.service_name = service_name
        self.hostname = os.environ.get("HOSTNAME", "unknown")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "hostname": self.hostname,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(
    service_name: str,
    log_level: Optional[str] = None,
    enable_console: bool = True,
    enable_file: bool = False,
    log_file_path: Optional[str] = None,
) -> logging.Logger:
    """
    Set up centralized logging.

    Args:
        service_name: Name of the logger to return (e.g., "bootstrap-engine")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_console: Whether to enable console logging
        enable_file: Whether to enable file logging
        log_file_path: Path to log file (if file logging enabled)

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
        log_level = "INFO"

    json_formatter = JSONFormatter(service_name)
    console_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    if enable_file and log_file_path:
        file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(json_formatter)
        root_logger.addHandler(file_handler)

    logger = logging.getLogger(service_name)
    logger.debug(
        "Logging initialized",
        extra={
            "log_level": log_level,
            "console_enabled": enable_console,
            "file_enabled": enable_file,
        },
    )

    return logger


def log_artifact_event(
    action: str,
    path: str,
    script_id: str,
    note: Optional[str] = None,
) -> None:
    """
    Log an artifact action with consistent metadata.

    Args:
        action: created, modified, skipped, deleted or warned
        path: Project-relative artifact path
        script_id: Owning unit id
        note: Optional free-text detail
    """
    logger = logging.getLogger("bootstrap.artifacts")
    logger.info(
        f"{script_id}: {action} {path}{f' ({note})' if note else ''}",
        extra={
            "artifact_action": action,
            "artifact_path": path,
            "script_id": script_id,
            "component": "tracker",
        },
    )


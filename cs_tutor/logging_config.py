"""
Structured Logging Configuration for the CS Tutor API

This module sets up structured JSON logging with request tracking, component
tags, and console/file output.

Features:
- JSON structured logging format
- Request ID tracking across the tutor pipeline
- Component-level log tags (tutor, agent, tool, llm, delivery, ratelimit)
- Duration tracking for model calls
- Console and file output support

Usage:
    from cs_tutor.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger("tutor")
    logger.info("Reply generated", extra={"request_id": "req_ab12", "user_id": "u1"})
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional
from pathlib import Path

from cs_tutor.config import settings


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.

    Output format:
    {
        "timestamp": "2025-01-14T10:23:45.123Z",
        "level": "INFO",
        "component": "agent",
        "event": "tool_executed",
        "message": "...",
        "request_id": "req_ab12cd34",
        "user_id": "user_1",
        "data": {...},
        "duration_ms": 1234
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        optional_fields = [
            "component",
            "event",
            "request_id",
            "user_id",
            "data",
            "duration_ms",
            "step",
            "status",
            "model",
            "params",
            "output",
            "error",
            "attempts",
        ]

        for field in optional_fields:
            if hasattr(record, field):
                value = getattr(record, field)
                if value is not None:
                    log_entry[field] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    """
    Human-readable text formatter for development.

    Outputs logs in a readable format with color support for terminals.
    """

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as text."""
        color = self.COLORS.get(record.levelname, "")
        reset = self.COLORS["RESET"]

        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        component = getattr(record, "component", record.name)

        parts = [
            f"{color}[{timestamp}]",
            f"[{record.levelname:>8}]",
            f"[{component}]{reset}",
            record.getMessage(),
        ]

        if hasattr(record, "request_id"):
            parts.insert(3, f"({record.request_id})")

        if hasattr(record, "duration_ms"):
            parts.append(f"[{record.duration_ms}ms]")

        if hasattr(record, "data") and record.data:
            data_summary = json.dumps(record.data, default=str)
            if len(data_summary) > 100:
                data_summary = data_summary[:100] + "..."
            parts.append(f"\n  Data: {data_summary}")

        return " ".join(parts)


def setup_logging() -> None:
    """
    Configure logging for the application.

    Sets up both console and file handlers based on configuration.
    Should be called once at application startup.
    """
    if settings.log_to_file:
        log_dir = Path(settings.log_file_path).parent
        log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level))
    root_logger.handlers.clear()

    if settings.log_format == "json":
        formatter = JSONFormatter()
    else:
        formatter = TextFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(getattr(logging, settings.log_level))
    root_logger.addHandler(console_handler)

    if settings.log_to_file:
        file_handler = logging.FileHandler(
            settings.log_file_path,
            mode="a",
            encoding="utf-8",
        )
        # File logs are always JSON
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific component.

    Args:
        name: Component name (e.g., "tutor", "agent", "llm")

    Returns:
        Configured logger instance
    """
    return logging.getLogger(f"cs_tutor.{name}")


def log_tool_event(
    logger: logging.Logger,
    tool_name: str,
    event: str,
    request_id: str,
    step: Optional[int] = None,
    data: Optional[dict] = None,
    level: int = logging.INFO,
) -> None:
    """
    Log a tool execution event with consistent formatting.

    Args:
        logger: Logger instance
        tool_name: Registered tool name (or the unknown name requested)
        event: Event type (e.g., "tool_executed", "tool_failed")
        request_id: Current request ID
        step: Agent loop step that requested the call
        data: Optional event data
        level: Log level
    """
    extra = {
        "component": f"tool:{tool_name}",
        "event": event,
        "request_id": request_id,
    }

    if step is not None:
        extra["step"] = step
    if data:
        extra["data"] = data

    logger.log(level, f"Tool {tool_name} {event}", extra=extra)


def log_llm_event(
    logger: logging.Logger,
    model: str,
    status: str,
    caller: str,
    request_id: str,
    params: Optional[dict] = None,
    output: Optional[dict] = None,
    error: Optional[str] = None,
    duration_ms: Optional[int] = None,
    attempts: Optional[int] = None,
) -> None:
    """
    Log an LLM call event with consistent formatting.

    Args:
        logger: Logger instance
        model: Model name (e.g., "gpt-4o-mini")
        status: Status (starting, complete, failed)
        caller: Caller component
        request_id: Current request ID
        params: Optional call parameters
        output: Optional output summary
        error: Optional error message
        duration_ms: Optional duration in milliseconds
        attempts: Optional number of attempts
    """
    extra = {
        "step": "LLM_CALL",
        "status": status,
        "model": model,
        "component": caller,
        "request_id": request_id,
    }

    if params:
        extra["params"] = params
    if output:
        extra["output"] = output
    if error:
        extra["error"] = error
    if duration_ms is not None:
        extra["duration_ms"] = duration_ms
    if attempts is not None:
        extra["attempts"] = attempts

    level = logging.ERROR if status == "failed" else logging.INFO
    logger.log(level, f"LLM call {status}: {model}", extra=extra)

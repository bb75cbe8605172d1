"""
Logging configuration for pgsearchpath.

Provides centralized structured logging setup with JSON output for production
and human-readable output for development.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import structlog


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = True,
) -> None:
    """
    Configure structured logging for pgsearchpath.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If None, logs only to stderr.
        json_format: If True, use JSON format. If False, use human-readable format.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(numeric_level)
        stderr_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(stderr_handler)

    processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Structured logger instance.
    """
    if name.startswith("pgsearchpath."):
        return structlog.get_logger(name)
    return structlog.get_logger(f"pgsearchpath.{name}")


def log_search_path_change(
    logger: structlog.stdlib.BoundLogger,
    search_path: str,
    previous: Optional[str],
    applied: bool,
    **kwargs: Any,
) -> None:
    """
    Log a change of the stored search path.

    Args:
        logger: Logger instance
        search_path: The search path now stored on the schema handle
        previous: The search path stored before the change
        applied: Whether the SET statement was issued on a live connection
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "search_path_change",
        "search_path": search_path,
        "previous": previous,
        "applied": applied,
    }
    log_data.update(kwargs)

    logger.info("search_path_change", **log_data)


def log_search_path_ddl(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    search_path: str,
    success: bool,
    reason: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """
    Log a CREATE SCHEMA / DROP SCHEMA statement.

    Args:
        logger: Logger instance
        operation: "create" or "drop"
        search_path: Name of the PostgreSQL schema
        success: Whether the statement succeeded
        reason: Failure reason if the statement failed
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "search_path_ddl",
        "operation": operation,
        "search_path": search_path,
        "success": success,
    }

    if reason is not None:
        log_data["reason"] = reason

    log_data.update(kwargs)

    if success:
        logger.info("search_path_ddl", **log_data)
    else:
        logger.warning("search_path_ddl", **log_data)

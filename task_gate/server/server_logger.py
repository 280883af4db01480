"""
Server logging infrastructure for task-gate.
Captures crashes, errors, storage operations, and task lifecycle events.

stdout carries the stdio MCP transport, so nothing here ever writes to it.
"""

import os
import sys
import json
import logging
import traceback
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from logging.handlers import RotatingFileHandler
from contextlib import contextmanager


DEFAULT_LOG_BASE = Path.home() / ".task-gate" / "logs"


def get_log_directory(base: Optional[Path] = None) -> Path:
    """Get or create the server logs directory."""
    server_logs = Path(base or DEFAULT_LOG_BASE) / "server"
    server_logs.mkdir(parents=True, exist_ok=True)
    return server_logs


def get_crash_log_directory(base: Optional[Path] = None) -> Path:
    """Get or create the crash logs directory."""
    crash_logs = Path(base or DEFAULT_LOG_BASE) / "crashes"
    crash_logs.mkdir(parents=True, exist_ok=True)
    return crash_logs


def setup_server_logger(debug: bool = False, level: str = "INFO", log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Set up server logging with rotation.

    Creates two log files:
    - server.log: Main server operations
    - error.log: Errors and exceptions
    """
    directory = get_log_directory(log_dir)

    logger = logging.getLogger("task_gate")
    logger.setLevel(logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        handler.flush()
        handler.close()
        logger.removeHandler(handler)

    # Main server log (10MB max, keep 5 backups)
    server_handler = RotatingFileHandler(directory / "server.log", maxBytes=10 * 1024 * 1024, backupCount=5)
    server_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    server_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    server_handler.setFormatter(server_formatter)
    logger.addHandler(server_handler)

    # Error log (5MB max, keep 10 backups)
    error_handler = RotatingFileHandler(directory / "error.log", maxBytes=5 * 1024 * 1024, backupCount=10)
    error_handler.setLevel(logging.ERROR)
    error_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    error_handler.setFormatter(error_formatter)
    logger.addHandler(error_handler)

    # Console handler for development (stderr)
    if debug or os.getenv("TASK_GATE_DEBUG"):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(server_formatter)
        logger.addHandler(console_handler)

    return logger


def log_crash(error: Exception, context: Optional[Dict[str, Any]] = None, log_dir: Optional[Path] = None) -> str:
    """
    Log a crash with full context and stack trace.
    Writes a crash report file and an entry in error.log.
    """
    crash_dir = get_crash_log_directory(log_dir)
    timestamp = datetime.now(timezone.utc)

    crash_id = timestamp.strftime("%Y%m%d_%H%M%S_%f")
    crash_file = crash_dir / f"crash_{crash_id}.json"

    crash_info = {
        "timestamp": timestamp.isoformat(),
        "error_type": type(error).__name__,
        "error_message": str(error),
        "stack_trace": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        "python_version": sys.version,
        "platform": sys.platform,
        "context": context or {},
        "environment": {k: v for k, v in os.environ.items() if k.startswith("TASK_GATE_") or k == "TASK_MANAGER_FILE_PATH"},
    }

    with open(crash_file, "w") as f:
        json.dump(crash_info, f, indent=2, default=str)

    logger = logging.getLogger("task_gate.server")
    logger.critical(f"CRASH: {error}", exc_info=error, extra={"crash_id": crash_id})

    return crash_id


def setup_exception_handler(log_dir: Optional[Path] = None):
    """Set up global exception handler for uncaught exceptions."""

    def handle_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        logger = logging.getLogger("task_gate.server")
        logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

        log_crash(exc_value, {"type": "uncaught_exception"}, log_dir)

    sys.excepthook = handle_exception


@contextmanager
def log_lifecycle(app_name: str = "task-gate", document: Optional[Path] = None):
    """Context manager for logging server lifecycle events."""
    logger = logging.getLogger("task_gate.server")

    startup_time = datetime.now(timezone.utc)
    logger.info(f"{'='*60}")
    logger.info(f"Starting {app_name} server")
    logger.info(f"Timestamp: {startup_time.isoformat()}")
    logger.info(f"Python: {sys.version}")
    logger.info(f"PID: {os.getpid()}")
    if document is not None:
        logger.info(f"Task document: {document}")
    logger.info(f"{'='*60}")

    try:
        yield
    finally:
        uptime = (datetime.now(timezone.utc) - startup_time).total_seconds()
        logger.info(f"Shutting down {app_name} server after {uptime:.2f} seconds")


def log_storage_operation(operation: str, details: Dict[str, Any], error: Optional[Exception] = None):
    """Log task document reads and writes for debugging."""
    logger = logging.getLogger("task_gate.server.db")

    if error:
        logger.error(
            f"Storage {operation} failed: {error}",
            extra={"operation": operation, "details": details},
        )
    else:
        logger.debug(
            f"Storage {operation} completed - {json.dumps(details, default=str)}",
            extra={"operation": operation, "details": details},
        )


def log_task_event(entity_id: str, event: str, details: Optional[Dict[str, Any]] = None):
    """Log request/task/subtask lifecycle events."""
    logger = logging.getLogger("task_gate.server.tasks")

    log_message = f"{entity_id}: {event}"
    if details:
        log_message += f" - {json.dumps(details, default=str)}"

    logger.info(log_message)


def initialize_logging(debug: bool = False, level: str = "INFO", log_dir: Optional[Path] = None) -> logging.Logger:
    """Initialize all logging systems."""
    setup_server_logger(debug, level, log_dir)
    setup_exception_handler(log_dir)

    logging.getLogger("task_gate.server.tasks").setLevel(logging.INFO)
    logging.getLogger("task_gate.server.db").setLevel(logging.DEBUG if debug else logging.INFO)

    logger = logging.getLogger("task_gate.server")
    logger.info("Logging system initialized")

    return logger

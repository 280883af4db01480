"""
Core shared functionality for task-gate.
This module contains the lifecycle engine used by both the MCP server and the CLI.
"""

from .error_codes import ErrorCategory, ErrorCode, error_result
from .manager import TaskManager
from .models import (
    RequestEntry,
    Subtask,
    SubtaskAction,
    SubtaskStatus,
    Task,
    TaskManagerFile,
)
from .storage import TaskStore
from .transaction import SnapshotGuard

__all__ = [
    # Engine
    "TaskManager",
    # Persistence
    "TaskStore",
    "SnapshotGuard",
    # Models
    "RequestEntry",
    "Task",
    "Subtask",
    "SubtaskStatus",
    "SubtaskAction",
    "TaskManagerFile",
    # Errors
    "ErrorCode",
    "ErrorCategory",
    "error_result",
]

"""
SOLE RESPONSIBILITY: Centralized error codes and categories for task-gate.
Provides the machine-readable error taxonomy and the failure envelope every operation returns.
"""

from enum import Enum
from typing import Any, Dict


class ErrorCategory(Enum):
    """High-level error classification."""

    NOT_FOUND = "not_found"  # Request/task/subtask absent
    PRECONDITION = "precondition"  # Wrong lifecycle state
    VALIDATION = "validation"  # Content, format, size, duplicates
    TRANSITION = "transition"  # Illegal subtask status change
    INTERNAL = "internal"  # Unexpected exception, rolled back where possible


class ErrorCode(str, Enum):
    """Trackable error identifiers returned in the `code` field."""

    # Not found
    REQUEST_NOT_FOUND = "REQUEST_NOT_FOUND"
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    SUBTASK_NOT_FOUND = "SUBTASK_NOT_FOUND"
    NO_SUBTASKS = "NO_SUBTASKS"

    # Preconditions
    REQUEST_COMPLETED = "REQUEST_COMPLETED"
    REQUEST_ALREADY_COMPLETED = "REQUEST_ALREADY_COMPLETED"
    TASK_ALREADY_DONE = "TASK_ALREADY_DONE"
    TASK_NOT_DONE = "TASK_NOT_DONE"
    TASK_ALREADY_APPROVED = "TASK_ALREADY_APPROVED"
    SUBTASKS_INCOMPLETE = "SUBTASKS_INCOMPLETE"
    NOT_ALL_DONE = "NOT_ALL_DONE"
    NOT_ALL_APPROVED = "NOT_ALL_APPROVED"
    CANNOT_DELETE_COMPLETED = "CANNOT_DELETE_COMPLETED"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"

    # Validation
    EMPTY_TASK_LIST = "EMPTY_TASK_LIST"
    MISSING_SUBTASKS = "MISSING_SUBTASKS"
    MISSING_SUBTASK_ID = "MISSING_SUBTASK_ID"
    MISSING_UPDATES = "MISSING_UPDATES"
    TOO_MANY_SUBTASKS = "TOO_MANY_SUBTASKS"
    DUPLICATE_CONTENT = "DUPLICATE_CONTENT"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    UPDATE_VALIDATION_FAILED = "UPDATE_VALIDATION_FAILED"
    UNKNOWN_ACTION = "UNKNOWN_ACTION"
    SCHEMA_VALIDATION_FAILED = "SCHEMA_VALIDATION_FAILED"

    # Transitions
    INVALID_TRANSITION = "INVALID_TRANSITION"

    # Internal
    INTERNAL_ERROR = "INTERNAL_ERROR"


CODE_CATEGORIES: Dict[ErrorCode, ErrorCategory] = {
    ErrorCode.REQUEST_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.TASK_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.SUBTASK_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.NO_SUBTASKS: ErrorCategory.NOT_FOUND,
    ErrorCode.REQUEST_COMPLETED: ErrorCategory.PRECONDITION,
    ErrorCode.REQUEST_ALREADY_COMPLETED: ErrorCategory.PRECONDITION,
    ErrorCode.TASK_ALREADY_DONE: ErrorCategory.PRECONDITION,
    ErrorCode.TASK_NOT_DONE: ErrorCategory.PRECONDITION,
    ErrorCode.TASK_ALREADY_APPROVED: ErrorCategory.PRECONDITION,
    ErrorCode.SUBTASKS_INCOMPLETE: ErrorCategory.PRECONDITION,
    ErrorCode.NOT_ALL_DONE: ErrorCategory.PRECONDITION,
    ErrorCode.NOT_ALL_APPROVED: ErrorCategory.PRECONDITION,
    ErrorCode.CANNOT_DELETE_COMPLETED: ErrorCategory.PRECONDITION,
    ErrorCode.ALREADY_COMPLETED: ErrorCategory.PRECONDITION,
    ErrorCode.EMPTY_TASK_LIST: ErrorCategory.VALIDATION,
    ErrorCode.MISSING_SUBTASKS: ErrorCategory.VALIDATION,
    ErrorCode.MISSING_SUBTASK_ID: ErrorCategory.VALIDATION,
    ErrorCode.MISSING_UPDATES: ErrorCategory.VALIDATION,
    ErrorCode.TOO_MANY_SUBTASKS: ErrorCategory.VALIDATION,
    ErrorCode.DUPLICATE_CONTENT: ErrorCategory.VALIDATION,
    ErrorCode.VALIDATION_FAILED: ErrorCategory.VALIDATION,
    ErrorCode.UPDATE_VALIDATION_FAILED: ErrorCategory.VALIDATION,
    ErrorCode.UNKNOWN_ACTION: ErrorCategory.VALIDATION,
    ErrorCode.SCHEMA_VALIDATION_FAILED: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_TRANSITION: ErrorCategory.TRANSITION,
    ErrorCode.INTERNAL_ERROR: ErrorCategory.INTERNAL,
}


def categorize(code: ErrorCode) -> ErrorCategory:
    """Category of an error code; unmapped codes count as internal."""
    return CODE_CATEGORIES.get(code, ErrorCategory.INTERNAL)


def is_recoverable(code: ErrorCode) -> bool:
    """Everything except internal errors can be fixed by the caller."""
    return categorize(code) != ErrorCategory.INTERNAL


def error_result(code: ErrorCode, message: str, **extra: Any) -> Dict[str, Any]:
    """Failure envelope: status discriminator, machine code, human message, payload."""
    result: Dict[str, Any] = {"status": "error", "code": code.value, "message": message}
    result.update(extra)
    return result


def outcome_result(status: str, code: ErrorCode, message: str, **extra: Any) -> Dict[str, Any]:
    """Business-rule outcome with its own discriminator (e.g. already_done)."""
    result: Dict[str, Any] = {"status": status, "code": code.value, "message": message}
    result.update(extra)
    return result

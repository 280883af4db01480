"""
SOLE RESPONSIBILITY: Pure validation rules consulted by every mutating subtask operation.
Rules collect every violation instead of stopping at the first one.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional

from .lifecycle import is_valid_transition, valid_transitions
from .models import MAX_BATCH_SIZE, MAX_CONTENT_LENGTH, Subtask, SubtaskStatus

VALID_STATUSES = frozenset(s.value for s in SubtaskStatus)


@dataclass
class ValidationResult:
    """Outcome of a validation rule."""

    errors: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def normalize_content(content: str) -> str:
    """Comparison form of subtask content: trimmed and case-folded."""
    return content.strip().lower()


def validate_content(content: Any) -> ValidationResult:
    result = ValidationResult()

    if content is None:
        result.errors.append("Subtask content is required")
        return result
    if not isinstance(content, str):
        result.errors.append("Subtask content must be a string")
        return result

    if len(content) == 0:
        result.errors.append("Subtask content cannot be empty")
    elif not content.strip():
        result.errors.append("Subtask content cannot be only whitespace")
    if len(content.strip()) > MAX_CONTENT_LENGTH:
        result.errors.append(f"Subtask content cannot exceed {MAX_CONTENT_LENGTH} characters")

    return result


def validate_status_value(status: Any) -> bool:
    value = status.value if isinstance(status, SubtaskStatus) else status
    return value in VALID_STATUSES


def validate_subtask_data(spec: Mapping[str, Any]) -> ValidationResult:
    """Content and status checks for one create/break_down item."""
    result = validate_content(spec.get("content"))

    status = spec.get("status")
    if status is not None and not validate_status_value(status):
        result.errors.append("Invalid status value")

    return result


def is_unique_content(siblings: Iterable[Subtask], content: str, exclude_id: Optional[str] = None) -> bool:
    """Case-insensitive uniqueness of content among siblings, ignoring exclude_id."""
    target = normalize_content(content)
    return not any(normalize_content(st.content) == target and st.id != exclude_id for st in siblings)


def find_duplicate_contents(contents: Iterable[str]) -> List[str]:
    """Contents that repeat an earlier entry of the same batch, in batch order."""
    seen = set()
    duplicates = []
    for content in contents:
        key = normalize_content(content)
        if key in seen:
            duplicates.append(content)
        seen.add(key)
    return duplicates


def validate_batch_size(count: int) -> Optional[str]:
    if count > MAX_BATCH_SIZE:
        return f"Too many subtasks ({count}). Maximum allowed is {MAX_BATCH_SIZE}."
    return None


def check_transition(current: Any, new: Any) -> Optional[str]:
    """Error message for an illegal transition, or None when it is allowed."""
    if is_valid_transition(current, new):
        return None
    current_value = current.value if isinstance(current, SubtaskStatus) else current
    new_value = new.value if isinstance(new, SubtaskStatus) else new
    allowed = valid_transitions(current) or ["none"]
    return (
        f'Cannot change status from "{current_value}" to "{new_value}". '
        f"Valid transitions: {', '.join(allowed)}"
    )

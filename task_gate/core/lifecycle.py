"""
SOLE RESPONSIBILITY: The subtask status state machine, completion-percentage aggregation,
and the done/approved gating predicates for tasks and requests.
"""

from typing import Dict, FrozenSet, Iterable, List, Optional

from .identifiers import now_timestamp
from .models import RequestEntry, Subtask, SubtaskStatus, Task

# Source status -> legal destinations. Identity transitions are never legal.
VALID_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    SubtaskStatus.PENDING.value: frozenset({SubtaskStatus.IN_PROGRESS.value, SubtaskStatus.CANCELLED.value}),
    SubtaskStatus.IN_PROGRESS.value: frozenset(
        {SubtaskStatus.COMPLETED.value, SubtaskStatus.PENDING.value, SubtaskStatus.CANCELLED.value}
    ),
    SubtaskStatus.COMPLETED.value: frozenset({SubtaskStatus.PENDING.value}),  # reopening
    SubtaskStatus.CANCELLED.value: frozenset({SubtaskStatus.PENDING.value}),  # restarting
}

# Stable order for messages shown to callers
_STATUS_ORDER = [s.value for s in SubtaskStatus]


def _status_value(status) -> str:
    return status.value if isinstance(status, SubtaskStatus) else str(status)


def is_valid_transition(current, new) -> bool:
    return _status_value(new) in VALID_TRANSITIONS.get(_status_value(current), frozenset())


def valid_transitions(current) -> List[str]:
    allowed = VALID_TRANSITIONS.get(_status_value(current), frozenset())
    return [s for s in _STATUS_ORDER if s in allowed]


def apply_status(subtask: Subtask, new_status, timestamp: Optional[str] = None) -> None:
    """
    Moves a subtask to new_status and keeps completedAt in step with it.
    Callers check legality first; this only performs the bookkeeping.
    """
    old_status = _status_value(subtask.status)
    new_status = _status_value(new_status)
    subtask.status = new_status

    if new_status == SubtaskStatus.COMPLETED.value and old_status != SubtaskStatus.COMPLETED.value:
        subtask.completed_at = timestamp or now_timestamp()
    elif new_status != SubtaskStatus.COMPLETED.value:
        subtask.completed_at = None


def is_completed(subtask: Subtask) -> bool:
    return _status_value(subtask.status) == SubtaskStatus.COMPLETED.value


def completion_percentage(subtasks: Optional[Iterable[Subtask]]) -> int:
    subtasks = list(subtasks or [])
    if not subtasks:
        return 0
    completed = sum(1 for st in subtasks if is_completed(st))
    # Round half up (12.5 -> 13)
    return int(100 * completed / len(subtasks) + 0.5)


def remaining_subtasks(task: Task) -> int:
    return sum(1 for st in task.subtasks or [] if not is_completed(st))


def recompute_progress(task: Task) -> None:
    """Refreshes completionPercentage; both it and subtasks vanish when the list is empty."""
    if task.subtasks:
        task.completion_percentage = completion_percentage(task.subtasks)
    else:
        task.subtasks = None
        task.completion_percentage = None


def can_mark_done(task: Task) -> bool:
    """A task with subtasks may become done only when every subtask is completed."""
    return all(is_completed(st) for st in task.subtasks or [])


def all_tasks_done(request: RequestEntry) -> bool:
    return all(t.done for t in request.tasks)


def all_tasks_approved(request: RequestEntry) -> bool:
    return all(t.done and t.approved for t in request.tasks)

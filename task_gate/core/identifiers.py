"""
SOLE RESPONSIBILITY: Builds and parses hierarchical identifiers, rebuilds counters from a
loaded document, and derives user-facing display numbers that are never persisted.
"""

import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from .models import Subtask, Task, TaskManagerFile

REQUEST_ID_PATTERN = re.compile(r"^req-(\d+)$")
TASK_NUMBER_PATTERN = re.compile(r"-task-(\d+)$")
SUBTASK_NUMBER_PATTERN = re.compile(r"-subtask-(\d+)$")
REQUEST_PREFIX_PATTERN = re.compile(r"^req-(?:req-)?(\d+)-")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def make_request_id(counter: int) -> str:
    return f"req-{counter}"


def make_task_id(request_id: str, task_number: int) -> str:
    return f"req-{request_id}-task-{task_number}"


def make_subtask_id(task_id: str, counter: int) -> str:
    return f"{task_id}-subtask-{counter}"


def parse_request_number(request_id: str) -> Optional[int]:
    match = REQUEST_ID_PATTERN.match(request_id or "")
    return int(match.group(1)) if match else None


def parse_task_number(task_id: str) -> Optional[int]:
    """Display number of a task: the trailing -task-<k> suffix of its id."""
    match = TASK_NUMBER_PATTERN.search(task_id or "")
    return int(match.group(1)) if match else None


def parse_subtask_number(subtask_id: str) -> Optional[int]:
    match = SUBTASK_NUMBER_PATTERN.search(subtask_id or "")
    return int(match.group(1)) if match else None


def request_id_from_task_id(task_id: str) -> Optional[str]:
    """Best-effort owning request id for a task id, used only in error messages."""
    match = REQUEST_PREFIX_PATTERN.match(task_id or "")
    return make_request_id(int(match.group(1))) if match else None


def next_task_number(tasks: Iterable[Task], high_water: Optional[int] = None) -> int:
    """
    Next per-request task number: one past the highest number ever used in the request.
    The surviving ids are scanned as well as the stored high-water mark, so a hand-edited
    document cannot push the sequence backwards and deleting the last task frees nothing.
    """
    numbers = [parse_task_number(t.id) or 0 for t in tasks]
    return max(numbers + [high_water or 0], default=0) + 1


def rebuild_counters(document: TaskManagerFile) -> Tuple[int, int]:
    """
    Derives (request_counter, subtask_counter) as the maximum value seen in the document.
    The subtask counter also honours the persisted lastSubtaskNumber, so ids of deleted
    subtasks are never handed out again.
    Counters are a pure function of the data so hand edits cannot leave them behind it.
    """
    request_numbers: List[int] = []
    subtask_numbers: List[int] = []

    for request in document.requests:
        number = parse_request_number(request.request_id)
        if number is not None:
            request_numbers.append(number)
        for task in request.tasks:
            for subtask in task.subtasks or []:
                number = parse_subtask_number(subtask.id)
                if number is not None:
                    subtask_numbers.append(number)

    subtask_numbers.append(document.last_subtask_number or 0)
    return max(request_numbers, default=0), max(subtask_numbers)


def now_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_timestamp(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def subtask_sort_key(subtask: Subtask):
    """Ordering key: createdAt, then numeric -subtask-<n> suffix, then id."""
    number = parse_subtask_number(subtask.id)
    return (
        _parse_timestamp(subtask.created_at),
        0 if number is not None else 1,
        number or 0,
        subtask.id,
    )


def ordered_subtasks(subtasks: Optional[Iterable[Subtask]]) -> List[Subtask]:
    return sorted(subtasks or [], key=subtask_sort_key)


def subtask_display_number(subtask_id: str, siblings: Iterable[Subtask]) -> int:
    """1-based rank of a subtask among its siblings; 0 when it is not among them."""
    for position, subtask in enumerate(ordered_subtasks(siblings), start=1):
        if subtask.id == subtask_id:
            return position
    return 0

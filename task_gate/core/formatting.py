"""
Markdown renderings of request progress embedded in operation messages.
Built only from fields the results already expose.
"""

from typing import Iterable

from .identifiers import ordered_subtasks, parse_task_number
from .models import RequestEntry, SubtaskStatus

SUBTASK_ICONS = {
    SubtaskStatus.COMPLETED.value: "✅",
    SubtaskStatus.IN_PROGRESS.value: "🔄",
    SubtaskStatus.CANCELLED.value: "❌",
    SubtaskStatus.PENDING.value: "⏳",
}


def truncate(text: str, limit: int = 30) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def format_task_progress_table(request: RequestEntry) -> str:
    lines = [
        "",
        "Progress Status:",
        "| Task # | Title | Description | Status | Progress | Approval |",
        "|--------|-------|-------------|--------|----------|----------|",
    ]

    for task in request.tasks:
        status = "✅ Done" if task.done else "🔄 In Progress"
        approval = "✅ Approved" if task.approved else "⏳ Pending"
        number = parse_task_number(task.id)
        label = f"Task {number}" if number is not None else task.id

        if task.subtasks:
            percentage = task.completion_percentage or 0
            progress = f"{percentage}%" + (" ✅" if percentage == 100 else "")
        else:
            progress = "N/A"

        lines.append(f"| {label} | {task.title} | {task.description} | {status} | {progress} | {approval} |")

        for position, subtask in enumerate(ordered_subtasks(task.subtasks), start=1):
            icon = SUBTASK_ICONS.get(subtask.status, "⏳")
            lines.append(f"| └─ Subtask {position} | {truncate(subtask.content)} | | {icon} {subtask.status} | | |")

    return "\n".join(lines) + "\n"


def format_requests_list(requests: Iterable[RequestEntry]) -> str:
    lines = [
        "",
        "Requests List:",
        "| Request ID | Original Request | Total Tasks | Completed | Approved |",
        "|------------|------------------|-------------|-----------|----------|",
    ]
    for request in requests:
        completed = sum(1 for t in request.tasks if t.done)
        approved = sum(1 for t in request.tasks if t.approved)
        lines.append(
            f"| {request.request_id} | {truncate(request.original_request)} | "
            f"{len(request.tasks)} | {completed} | {approved} |"
        )
    return "\n".join(lines) + "\n"

"""
SOLE RESPONSIBILITY: The lifecycle engine. Every public method is one named operation that
reloads the document, mutates it under the lifecycle rules, saves it, and returns a result
envelope. Operations never raise: unexpected exceptions become INTERNAL_ERROR results, and
subtask mutations are rolled back to their pre-operation snapshot first.
"""

import functools
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..server.server_logger import log_task_event
from .error_codes import ErrorCode, error_result, outcome_result
from .formatting import format_requests_list, format_task_progress_table
from .identifiers import (
    make_task_id,
    next_task_number,
    now_timestamp,
    ordered_subtasks,
    parse_task_number,
    request_id_from_task_id,
    subtask_display_number,
)
from .lifecycle import (
    all_tasks_approved,
    all_tasks_done,
    apply_status,
    can_mark_done,
    completion_percentage,
    is_completed,
    recompute_progress,
    remaining_subtasks,
    valid_transitions,
)
from .models import (
    RequestEntry,
    Subtask,
    SubtaskAction,
    SubtaskStatus,
    Task,
    TaskDefinition,
)
from .storage import TaskStore
from .transaction import SnapshotGuard
from .validation import (
    check_transition,
    find_duplicate_contents,
    is_unique_content,
    validate_batch_size,
    validate_content,
    validate_status_value,
    validate_subtask_data,
)

logger = logging.getLogger(__name__)

Result = Dict[str, Any]
TaskInput = Union[TaskDefinition, Mapping[str, Any]]


def operation(activity: str, transactional: bool = False):
    """
    Outermost boundary of an operation: converts unexpected exceptions into an
    INTERNAL_ERROR envelope. Transactional operations run inside a SnapshotGuard.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self: "TaskManager", *args, **kwargs) -> Result:
            guard = None
            if transactional:
                guard = SnapshotGuard(self.store, enabled=self.backups_enabled)
                guard.take()

            try:
                result = func(self, *args, **kwargs)
            except Exception as e:
                logger.error(f"Unexpected error while {activity}: {e}", exc_info=True)
                rolled_back = guard.rollback() if guard is not None else False
                extra = {"rolledBack": rolled_back} if guard is not None else {}
                return error_result(
                    ErrorCode.INTERNAL_ERROR,
                    f"An unexpected error occurred while {activity}: {e}",
                    originalError=str(e),
                    **extra,
                )

            if guard is not None:
                guard.discard()
            return result

        return wrapper

    return decorator


def _task_fields(task_def: TaskInput) -> Dict[str, str]:
    if isinstance(task_def, TaskDefinition):
        return {"title": task_def.title, "description": task_def.description}
    return {"title": str(task_def.get("title", "")), "description": str(task_def.get("description", ""))}


def _spec_dict(spec: Any) -> Dict[str, Any]:
    if hasattr(spec, "model_dump"):
        return spec.model_dump(exclude_none=True)
    return dict(spec)


def _status_value(status: Any) -> Any:
    return status.value if isinstance(status, SubtaskStatus) else status


def task_summary(task: Task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "displayNumber": parse_task_number(task.id),
        "title": task.title,
        "description": task.description,
    }


def subtask_view(subtask: Subtask, siblings: Iterable[Subtask]) -> Dict[str, Any]:
    view = subtask.to_document()
    view["displayNumber"] = subtask_display_number(subtask.id, siblings)
    return view


def subtask_views(task: Task) -> Optional[List[Dict[str, Any]]]:
    if task.subtasks is None:
        return None
    return [subtask_view(st, task.subtasks) for st in ordered_subtasks(task.subtasks)]


def task_detail(task: Task) -> Dict[str, Any]:
    detail = task_summary(task)
    detail.update(
        {
            "done": task.done,
            "approved": task.approved,
            "completedDetails": task.completed_details,
            "completionPercentage": task.completion_percentage,
            "subtasks": subtask_views(task),
        }
    )
    return detail


class TaskManager:
    """Request/task/subtask lifecycle operations over a single persisted document."""

    def __init__(self, file_path: Union[str, Path], backups_enabled: bool = True, quarantine_corrupt: bool = True):
        self.store = TaskStore(file_path, quarantine_corrupt=quarantine_corrupt)
        self.backups_enabled = backups_enabled
        self.store.load()

    @property
    def file_path(self) -> Path:
        return self.store.file_path

    # Request level

    @operation("planning the request")
    def request_planning(
        self,
        original_request: str,
        tasks: List[TaskInput],
        split_details: Optional[str] = None,
    ) -> Result:
        """Registers a new request and its tasks; task numbers start at 1."""
        if not tasks:
            return error_result(ErrorCode.EMPTY_TASK_LIST, "At least one task is required to plan a request")

        self.store.load()
        request_id = self.store.next_request_id()

        new_tasks = []
        for number, task_def in enumerate(tasks, start=1):
            self.store.advance_counter()
            new_tasks.append(Task(id=make_task_id(request_id, number), **_task_fields(task_def)))

        request = RequestEntry(
            request_id=request_id,
            original_request=original_request,
            split_details=split_details or original_request,
            tasks=new_tasks,
            last_task_number=len(new_tasks),
        )
        self.store.data.requests.append(request)
        self.store.save()
        log_task_event(request_id, "planned", {"tasks": len(new_tasks)})

        return {
            "status": "planned",
            "requestId": request_id,
            "totalTasks": len(new_tasks),
            "tasks": [task_summary(t) for t in new_tasks],
            "message": (
                "Tasks have been successfully added. Please use 'get_next_task' to retrieve the first task.\n"
                f"{format_task_progress_table(request)}"
            ),
        }

    @operation("fetching the next task")
    def get_next_task(self, request_id: str) -> Result:
        self.store.load()
        request = self.store.find_request(request_id)
        if request is None:
            return error_result(ErrorCode.REQUEST_NOT_FOUND, "Request not found", requestId=request_id)
        if request.completed:
            return outcome_result(
                "already_completed", ErrorCode.REQUEST_ALREADY_COMPLETED, "Request already completed."
            )
        if not request.tasks:
            return {"status": "no_next_task", "message": "No undone tasks found."}

        next_task = next((t for t in request.tasks if not t.done), None)
        progress = format_task_progress_table(request)
        if next_task is None:
            return {
                "status": "all_tasks_done",
                "message": f"All tasks have been completed. Awaiting request completion approval.\n{progress}",
            }

        summary = task_summary(next_task)
        number = summary["displayNumber"]
        label = f"({number}) " if number is not None else ""
        return {
            "status": "next_task",
            "task": summary,
            "message": f"Next task {label}is ready. Task approval will be required after completion.\n{progress}",
        }

    @operation("approving the request")
    def approve_request_completion(self, request_id: str) -> Result:
        """Marks a request completed; done and approved are re-checked on every task each time."""
        self.store.load()
        request = self.store.find_request(request_id)
        if request is None:
            return error_result(ErrorCode.REQUEST_NOT_FOUND, "Request not found", requestId=request_id)
        if request.completed:
            return outcome_result(
                "already_completed", ErrorCode.REQUEST_ALREADY_COMPLETED, "Request already completed."
            )
        if not all_tasks_done(request):
            return error_result(ErrorCode.NOT_ALL_DONE, "Not all tasks are done.")
        if not all_tasks_approved(request):
            return error_result(ErrorCode.NOT_ALL_APPROVED, "Not all done tasks are approved.")

        request.completed = True
        self.store.save()
        log_task_event(request_id, "request_completed")

        return {
            "status": "request_approved_complete",
            "requestId": request.request_id,
            "message": "Request is fully completed and approved.",
        }

    @operation("listing requests")
    def list_requests(self) -> Result:
        self.store.load()
        requests = self.store.data.requests
        return {
            "status": "requests_listed",
            "message": f"Current requests in the system:\n{format_requests_list(requests)}",
            "requests": [
                {
                    "requestId": r.request_id,
                    "originalRequest": r.original_request,
                    "totalTasks": len(r.tasks),
                    "completedTasks": sum(1 for t in r.tasks if t.done),
                    "approvedTasks": sum(1 for t in r.tasks if t.approved),
                    "completed": r.completed,
                }
                for r in requests
            ],
        }

    @operation("clearing all tasks")
    def clear_all_tasks(self) -> Result:
        """Empties the document and resets both counters. Cannot be undone."""
        self.store.load()
        total_requests = len(self.store.data.requests)
        total_tasks = sum(len(r.tasks) for r in self.store.data.requests)

        self.store.reset()
        self.store.save()
        logger.warning(f"Cleared {total_requests} requests and {total_tasks} tasks from {self.file_path}")

        return {
            "status": "all_tasks_cleared",
            "message": (
                "Successfully cleared all tasks from the task manager. "
                f"Removed {total_requests} requests and {total_tasks} tasks."
            ),
            "clearedRequests": total_requests,
            "clearedTasks": total_tasks,
        }

    # Task level

    def _locate(self, request_id: str, task_id: str):
        """(request, task, error) for a task addressed through its request."""
        request = self.store.find_request(request_id)
        if request is None:
            return None, None, error_result(ErrorCode.REQUEST_NOT_FOUND, "Request not found", requestId=request_id)
        task = next((t for t in request.tasks if t.id == task_id), None)
        if task is None:
            return request, None, error_result(ErrorCode.TASK_NOT_FOUND, "Task not found", taskId=task_id)
        return request, task, None

    @operation("adding tasks")
    def add_tasks_to_request(self, request_id: str, tasks: List[TaskInput]) -> Result:
        """Appends tasks; numbering continues from the highest number already in the request."""
        if not tasks:
            return error_result(ErrorCode.EMPTY_TASK_LIST, "At least one task is required")

        self.store.load()
        request = self.store.find_request(request_id)
        if request is None:
            return error_result(ErrorCode.REQUEST_NOT_FOUND, "Request not found", requestId=request_id)
        if request.completed:
            return error_result(ErrorCode.REQUEST_COMPLETED, "Cannot add tasks to completed request")

        number = next_task_number(request.tasks, request.last_task_number)
        new_tasks = []
        for task_def in tasks:
            self.store.advance_counter()
            new_tasks.append(Task(id=make_task_id(request_id, number), **_task_fields(task_def)))
            number += 1

        request.tasks.extend(new_tasks)
        request.last_task_number = number - 1
        self.store.save()
        log_task_event(request_id, "tasks_added", {"tasks": [t.id for t in new_tasks]})

        return {
            "status": "tasks_added",
            "message": f"Added {len(new_tasks)} new tasks to request.\n{format_task_progress_table(request)}",
            "newTasks": [task_summary(t) for t in new_tasks],
        }

    @operation("updating the task")
    def update_task(
        self,
        request_id: str,
        task_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Result:
        self.store.load()
        request, task, error = self._locate(request_id, task_id)
        if error:
            return error
        if task.done:
            return error_result(ErrorCode.TASK_ALREADY_DONE, "Cannot update completed task")

        if title:
            task.title = title
        if description:
            task.description = description

        self.store.save()
        log_task_event(task_id, "updated")

        return {
            "status": "task_updated",
            "message": f"Task {task_id} has been updated.\n{format_task_progress_table(request)}",
            "task": task_summary(task),
        }

    @operation("deleting the task")
    def delete_task(self, request_id: str, task_id: str) -> Result:
        self.store.load()
        request, task, error = self._locate(request_id, task_id)
        if error:
            return error
        if task.done:
            return error_result(ErrorCode.TASK_ALREADY_DONE, "Cannot delete completed task")

        request.tasks.remove(task)
        self.store.save()
        log_task_event(task_id, "deleted")

        return {
            "status": "task_deleted",
            "message": f"Task {task_id} has been deleted.\n{format_task_progress_table(request)}",
        }

    @operation("marking the task done")
    def mark_task_done(self, request_id: str, task_id: str, completed_details: Optional[str] = None) -> Result:
        """
        Moves a task to done. Rejected while any subtask is not completed; the rejection
        reports the current percentage and how many subtasks remain, and changes nothing.
        """
        self.store.load()
        request, task, error = self._locate(request_id, task_id)
        if error:
            return error
        if task.done:
            return outcome_result("already_done", ErrorCode.TASK_ALREADY_DONE, "Task is already marked done.")

        if not can_mark_done(task):
            percentage = completion_percentage(task.subtasks)
            return outcome_result(
                "subtasks_incomplete",
                ErrorCode.SUBTASKS_INCOMPLETE,
                f"Cannot mark task as done. {percentage}% of subtasks completed. Complete all subtasks first.",
                completionPercentage=percentage,
                remainingSubtasks=remaining_subtasks(task),
            )

        task.done = True
        task.completed_details = completed_details or ""
        self.store.save()
        log_task_event(task_id, "marked_done")

        detail = task_detail(task)
        detail.pop("done")
        return {
            "status": "task_marked_done",
            "requestId": request.request_id,
            "task": detail,
            "message": f"Task marked done. Awaiting user approval.\n{format_task_progress_table(request)}",
        }

    @operation("approving the task")
    def approve_task_completion(self, request_id: str, task_id: str) -> Result:
        self.store.load()
        request, task, error = self._locate(request_id, task_id)
        if error:
            return error
        if not task.done:
            return error_result(ErrorCode.TASK_NOT_DONE, "Task not done yet.")
        if task.approved:
            return outcome_result("already_approved", ErrorCode.TASK_ALREADY_APPROVED, "Task already approved.")

        task.approved = True
        self.store.save()
        log_task_event(task_id, "approved")

        return {
            "status": "task_approved",
            "requestId": request.request_id,
            "task": {
                "id": task.id,
                "displayNumber": parse_task_number(task.id),
                "title": task.title,
                "description": task.description,
                "completedDetails": task.completed_details,
                "approved": task.approved,
            },
        }

    @operation("opening task details")
    def open_task_details(self, task_id: str) -> Result:
        self.store.load()
        request, task = self.store.find_task(task_id)
        if task is None:
            return outcome_result("task_not_found", ErrorCode.TASK_NOT_FOUND, "No such task found")

        return {
            "status": "task_details",
            "requestId": request.request_id,
            "originalRequest": request.original_request,
            "splitDetails": request.split_details,
            "completed": request.completed,
            "task": task_detail(task),
        }

    # Subtask level

    @operation("managing subtasks", transactional=True)
    def manage_subtasks(
        self,
        task_id: str,
        action: Union[SubtaskAction, str],
        subtasks: Optional[List[Any]] = None,
        subtask_id: Optional[str] = None,
        updates: Optional[Mapping[str, Any]] = None,
    ) -> Result:
        """
        Dispatches one of create, update, complete, delete, break_down.
        break_down replaces the whole subtask set; create appends to it.
        """
        self.store.load()
        _, task = self.store.find_task(task_id)
        if task is None:
            number = parse_task_number(task_id)
            owner = request_id_from_task_id(task_id) or "unknown"
            return error_result(
                ErrorCode.TASK_NOT_FOUND,
                f"Task {number if number is not None else 'unknown'} not found in request {owner}. "
                "Please check the task number and try again.",
                providedTaskId=task_id,
            )

        try:
            action = SubtaskAction(action)
        except ValueError:
            return error_result(
                ErrorCode.UNKNOWN_ACTION,
                f'Unknown action "{action}". Valid actions are: {", ".join(a.value for a in SubtaskAction)}',
                validActions=[a.value for a in SubtaskAction],
            )

        if task.done:
            return error_result(
                ErrorCode.TASK_ALREADY_DONE,
                f'Cannot modify subtasks of task "{task.title}" because it is already marked done',
            )

        if action == SubtaskAction.CREATE:
            return self._create_subtasks(task, subtasks)
        if action == SubtaskAction.UPDATE:
            return self._update_subtask(task, subtask_id, updates)
        if action == SubtaskAction.COMPLETE:
            return self._complete_subtask(task, subtask_id)
        if action == SubtaskAction.DELETE:
            return self._delete_subtask(task, subtask_id)
        return self._break_down(task, subtasks)

    def _new_subtask(self, task: Task, spec: Mapping[str, Any]) -> Subtask:
        status = _status_value(spec.get("status")) or SubtaskStatus.PENDING.value
        created_at = now_timestamp()
        return Subtask(
            id=spec.get("id") or self.store.next_subtask_id(task.id),
            content=spec["content"].strip(),
            status=status,
            created_at=created_at,
            completed_at=created_at if status == SubtaskStatus.COMPLETED.value else None,
        )

    def _find_subtask(self, task: Task, subtask_id: Optional[str], verb: str):
        """(subtask, error) with the not-found error listing the available subtasks."""
        if not subtask_id:
            return None, error_result(ErrorCode.MISSING_SUBTASK_ID, f"Subtask ID is required to {verb} a subtask")
        if not task.subtasks:
            return None, error_result(ErrorCode.NO_SUBTASKS, f'Task "{task.title}" has no subtasks to {verb}')

        subtask = next((st for st in task.subtasks if st.id == subtask_id), None)
        if subtask is None:
            return None, error_result(
                ErrorCode.SUBTASK_NOT_FOUND,
                f'Subtask "{subtask_id}" not found in task "{task.title}". '
                "Please check the subtask ID and try again.",
                availableSubtasks=[
                    {"id": st.id, "displayNumber": subtask_display_number(st.id, task.subtasks), "content": st.content}
                    for st in ordered_subtasks(task.subtasks)
                ],
            )
        return subtask, None

    def _validate_batch(self, task: Task, specs: Optional[List[Any]], against: Optional[List[Subtask]]):
        """
        Validates a create/break_down batch, collecting every per-item error.
        When `against` is given, each item must also be unique among those siblings and
        the items accepted before it. Returns (accepted subtasks, error result or None).
        """
        if not specs:
            return None, error_result(ErrorCode.MISSING_SUBTASKS, "No subtasks provided")

        size_error = validate_batch_size(len(specs))
        if size_error:
            return None, error_result(ErrorCode.TOO_MANY_SUBTASKS, size_error)

        errors: List[str] = []
        accepted: List[Subtask] = []
        for position, raw in enumerate(specs, start=1):
            spec = _spec_dict(raw)
            validation = validate_subtask_data(spec)
            if not validation.valid:
                errors.append(f"Subtask {position}: {', '.join(validation.errors)}")
                continue
            content = spec["content"].strip()
            if against is not None and not is_unique_content(against + accepted, content):
                errors.append(f'Subtask {position}: Duplicate content "{content}"')
                continue
            accepted.append(self._new_subtask(task, spec))

        if errors:
            return None, error_result(
                ErrorCode.VALIDATION_FAILED,
                "Validation failed:\n" + "\n".join(errors),
                errors=errors,
            )
        return accepted, None

    def _create_subtasks(self, task: Task, specs: Optional[List[Any]]) -> Result:
        existing = list(task.subtasks or [])
        accepted, error = self._validate_batch(task, specs, against=existing)
        if error:
            return error

        task.subtasks = existing + accepted
        recompute_progress(task)
        self.store.save()
        log_task_event(task.id, "subtasks_created", {"count": len(accepted)})

        return {
            "status": "subtasks_created",
            "message": f'Successfully added {len(accepted)} subtasks to task "{task.title}"',
            "subtasks": [subtask_view(st, task.subtasks) for st in accepted],
            "completionPercentage": task.completion_percentage,
            "totalSubtasks": len(task.subtasks),
        }

    def _update_subtask(self, task: Task, subtask_id: Optional[str], updates: Optional[Mapping[str, Any]]) -> Result:
        if not subtask_id:
            return error_result(ErrorCode.MISSING_SUBTASK_ID, "Subtask ID is required for update operation")

        updates = _spec_dict(updates) if updates else {}
        content = updates.get("content")
        status = _status_value(updates.get("status"))
        if not content and not status:
            return error_result(
                ErrorCode.MISSING_UPDATES, "At least one update field (content or status) must be provided"
            )

        subtask, error = self._find_subtask(task, subtask_id, "update")
        if error:
            return error

        errors: List[str] = []
        transition_error = None
        if content:
            validation = validate_content(content)
            if not validation.valid:
                errors.extend(validation.errors)
            elif not is_unique_content(task.subtasks, content, exclude_id=subtask.id):
                errors.append(f'Content "{content.strip()}" already exists in another subtask')

        if status:
            if not validate_status_value(status):
                errors.append("Invalid status value")
            else:
                transition_error = check_transition(subtask.status, status)
                if transition_error:
                    errors.append(transition_error)

        if errors:
            code = (
                ErrorCode.INVALID_TRANSITION
                if transition_error and len(errors) == 1
                else ErrorCode.UPDATE_VALIDATION_FAILED
            )
            extra = {"validTransitions": valid_transitions(subtask.status)} if transition_error else {}
            return error_result(code, "Update validation failed:\n" + "\n".join(errors), errors=errors, **extra)

        if content:
            subtask.content = content.strip()
        if status:
            apply_status(subtask, status)

        recompute_progress(task)
        self.store.save()
        log_task_event(subtask.id, "subtask_updated", {"status": subtask.status})

        number = subtask_display_number(subtask.id, task.subtasks)
        return {
            "status": "subtask_updated",
            "message": f'Successfully updated subtask {number} "{subtask.content}"',
            "subtask": {
                "id": subtask.id,
                "displayNumber": number,
                "content": subtask.content,
                "status": subtask.status,
                "completedAt": subtask.completed_at,
            },
            "completionPercentage": task.completion_percentage,
            "taskTitle": task.title,
        }

    def _complete_subtask(self, task: Task, subtask_id: Optional[str]) -> Result:
        subtask, error = self._find_subtask(task, subtask_id, "complete")
        if error:
            return error

        if is_completed(subtask):
            return error_result(ErrorCode.ALREADY_COMPLETED, f'Subtask "{subtask.content}" is already completed')

        if check_transition(subtask.status, SubtaskStatus.COMPLETED):
            allowed = valid_transitions(subtask.status)
            return error_result(
                ErrorCode.INVALID_TRANSITION,
                f'Cannot complete subtask "{subtask.content}" with status "{subtask.status}". '
                f"Valid transitions: {', '.join(allowed)}",
                validTransitions=allowed,
            )

        apply_status(subtask, SubtaskStatus.COMPLETED)
        recompute_progress(task)
        self.store.save()
        log_task_event(subtask.id, "subtask_completed")

        number = subtask_display_number(subtask.id, task.subtasks)
        return {
            "status": "subtask_completed",
            "message": f'Successfully marked subtask {number} "{subtask.content}" as completed',
            "subtask": {
                "id": subtask.id,
                "displayNumber": number,
                "content": subtask.content,
                "status": subtask.status,
                "completedAt": subtask.completed_at,
            },
            "completionPercentage": task.completion_percentage,
            "taskTitle": task.title,
            "remainingSubtasks": remaining_subtasks(task),
        }

    def _delete_subtask(self, task: Task, subtask_id: Optional[str]) -> Result:
        subtask, error = self._find_subtask(task, subtask_id, "delete")
        if error:
            return error

        if is_completed(subtask):
            return error_result(
                ErrorCode.CANNOT_DELETE_COMPLETED,
                f'Cannot delete completed subtask "{subtask.content}". '
                "Only pending, in_progress, or cancelled subtasks can be deleted.",
            )

        number = subtask_display_number(subtask.id, task.subtasks)
        task.subtasks.remove(subtask)
        recompute_progress(task)
        self.store.save()
        log_task_event(subtask.id, "subtask_deleted")

        return {
            "status": "subtask_deleted",
            "message": f'Successfully deleted subtask {number} "{subtask.content}" from task "{task.title}"',
            "deletedSubtask": {
                "id": subtask.id,
                "displayNumber": number,
                "content": subtask.content,
                "status": subtask.status,
            },
            "completionPercentage": task.completion_percentage,
            "remainingSubtasks": len(task.subtasks or []),
        }

    def _break_down(self, task: Task, specs: Optional[List[Any]]) -> Result:
        accepted, error = self._validate_batch(task, specs, against=None)
        if error:
            return error

        duplicates = find_duplicate_contents(st.content for st in accepted)
        if duplicates:
            return error_result(
                ErrorCode.DUPLICATE_CONTENT,
                f'Duplicate subtask content found: "{duplicates[0]}". All subtasks must have unique content.',
                duplicates=duplicates,
            )

        replaced = len(task.subtasks or [])
        task.subtasks = accepted
        recompute_progress(task)
        self.store.save()
        log_task_event(task.id, "broken_down", {"subtasks": len(accepted), "replaced": replaced})

        return {
            "status": "task_broken_down",
            "message": f'Successfully converted task "{task.title}" into {len(accepted)} subtasks',
            "subtasks": subtask_views(task),
            "completionPercentage": task.completion_percentage,
            "taskTitle": task.title,
            "replacedSubtasks": replaced,
        }

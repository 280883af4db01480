"""
MCP server exposing the task lifecycle as tools over stdio.
Arguments are validated with pydantic before they reach the TaskManager; every tool
returns the manager's result envelope unchanged.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from fastmcp import FastMCP
from pydantic import ValidationError

from task_gate import __version__
from task_gate.core.error_codes import ErrorCode, error_result
from task_gate.core.manager import TaskManager
from task_gate.core.models import AddTasksPayload, ManageSubtasksPayload, RequestPlanningPayload
from task_gate.server.config import get_config

logger = logging.getLogger(__name__)


def schema_error(tool: str, error: ValidationError) -> Dict[str, Any]:
    """Converts a pydantic ValidationError into a SCHEMA_VALIDATION_FAILED envelope."""
    messages = []
    for issue in error.errors():
        path = ".".join(str(part) for part in issue.get("loc", ()))
        messages.append(f"{path}: {issue.get('msg')}" if path else str(issue.get("msg")))
    return error_result(
        ErrorCode.SCHEMA_VALIDATION_FAILED,
        f"Invalid {tool} arguments:\n" + "\n".join(messages),
        validationErrors=messages,
    )


def run_request_planning(manager: TaskManager, arguments: Dict[str, Any]) -> Dict[str, Any]:
    try:
        payload = RequestPlanningPayload.model_validate(arguments)
    except ValidationError as e:
        return schema_error("request_planning", e)
    return manager.request_planning(payload.original_request, payload.tasks, payload.split_details)


def run_add_tasks(manager: TaskManager, arguments: Dict[str, Any]) -> Dict[str, Any]:
    try:
        payload = AddTasksPayload.model_validate(arguments)
    except ValidationError as e:
        return schema_error("add_tasks_to_request", e)
    return manager.add_tasks_to_request(payload.request_id, payload.tasks)


def run_manage_subtasks(manager: TaskManager, arguments: Dict[str, Any]) -> Dict[str, Any]:
    try:
        payload = ManageSubtasksPayload.model_validate(arguments)
    except ValidationError as e:
        return schema_error("manage_subtasks", e)
    return manager.manage_subtasks(
        payload.task_id,
        payload.action,
        subtasks=payload.subtasks,
        subtask_id=payload.subtask_id,
        updates=payload.updates.model_dump(exclude_none=True) if payload.updates else None,
    )


def create_task_server(
    file_path: Optional[Union[str, Path]] = None,
    backups_enabled: Optional[bool] = None,
) -> FastMCP:
    """
    Create the task-gate MCP server.

    Args:
        file_path: Optional path to the task document (defaults to configuration)
        backups_enabled: Optional override for snapshots around subtask mutations

    Returns:
        FastMCP server instance
    """
    config = get_config()
    manager = TaskManager(
        file_path or config.file_path,
        backups_enabled=config.storage.backups_enabled if backups_enabled is None else backups_enabled,
        quarantine_corrupt=config.storage.quarantine_corrupt,
    )
    logger.info(f"Task manager using document {manager.file_path}")

    mcp = FastMCP(name="task-gate")

    @mcp.tool()
    async def request_planning(
        original_request: str,
        tasks: List[Dict[str, str]],
        split_details: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Register a new user request and plan its associated tasks.

        Workflow:
        1. Use 'request_planning' to register a request and its tasks.
        2. Use 'get_next_task' to retrieve the first task. A progress table is displayed.
        3. After marking a task done, you MUST NOT proceed to another task until the user
           approves it with 'approve_task_completion'.
        4. Once approved, call 'get_next_task' again for the next pending task.
        5. When every task is done and approved, the user must approve the whole request with
           'approve_request_completion'. Do not proceed automatically.

        Args:
            original_request: The request as the user phrased it
            tasks: List of {"title": str, "description": str}
            split_details: Optional explanation of how the request was split (defaults to original_request)

        Returns:
            Request id, the planned tasks with display numbers, and a progress table
        """
        return run_request_planning(
            manager,
            {"original_request": original_request, "tasks": tasks, "split_details": split_details},
        )

    @mcp.tool()
    async def get_next_task(request_id: str) -> Dict[str, Any]:
        """
        Return the next task of a request that is not done yet.

        If the same task comes back, or nothing new is returned after 'mark_task_done', you
        MUST NOT proceed: ask the user to call 'approve_task_completion' first. When the status
        is 'all_tasks_done', wait for 'approve_request_completion' or for new tasks.

        Args:
            request_id: Request id returned by request_planning (e.g. "req-1")
        """
        return manager.get_next_task(request_id)

    @mcp.tool()
    async def mark_task_done(request_id: str, task_id: str, completed_details: Optional[str] = None) -> Dict[str, Any]:
        """
        Mark a task as done after completing it. Tasks with subtasks can only be marked done
        once every subtask is completed.

        After this, DO NOT call 'get_next_task' until the user has approved the task with
        'approve_task_completion'.

        Args:
            request_id: Owning request id
            task_id: Task id
            completed_details: Optional summary of what was done
        """
        return manager.mark_task_done(request_id, task_id, completed_details)

    @mcp.tool()
    async def approve_task_completion(request_id: str, task_id: str) -> Dict[str, Any]:
        """
        User approval of a task that was marked done. Only after approval may the assistant
        move on with 'get_next_task'.

        Args:
            request_id: Owning request id
            task_id: Task id
        """
        return manager.approve_task_completion(request_id, task_id)

    @mcp.tool()
    async def approve_request_completion(request_id: str) -> Dict[str, Any]:
        """
        Finalize a request once all of its tasks are done and approved. If not approved, the
        user can add tasks with 'add_tasks_to_request' and continue.

        Args:
            request_id: Request id
        """
        return manager.approve_request_completion(request_id)

    @mcp.tool()
    async def open_task_details(task_id: str) -> Dict[str, Any]:
        """
        Get details of a task, including its subtasks and completion percentage.

        Args:
            task_id: Task id
        """
        return manager.open_task_details(task_id)

    @mcp.tool()
    async def list_requests() -> Dict[str, Any]:
        """List all requests with a summary of their tasks."""
        return manager.list_requests()

    @mcp.tool()
    async def add_tasks_to_request(request_id: str, tasks: List[Dict[str, str]]) -> Dict[str, Any]:
        """
        Add new tasks to an existing, not yet completed request.

        Args:
            request_id: Request id
            tasks: List of {"title": str, "description": str}
        """
        return run_add_tasks(manager, {"request_id": request_id, "tasks": tasks})

    @mcp.tool()
    async def update_task(
        request_id: str,
        task_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Update a task's title and/or description. Only tasks that are not done can be updated.

        Args:
            request_id: Owning request id
            task_id: Task id
            title: New title
            description: New description
        """
        return manager.update_task(request_id, task_id, title=title, description=description)

    @mcp.tool()
    async def delete_task(request_id: str, task_id: str) -> Dict[str, Any]:
        """
        Delete a task from a request. Only tasks that are not done can be deleted.

        Args:
            request_id: Owning request id
            task_id: Task id
        """
        return manager.delete_task(request_id, task_id)

    @mcp.tool()
    async def clear_all_tasks() -> Dict[str, Any]:
        """
        Remove every request and task, including completed ones. This cannot be undone.
        """
        return manager.clear_all_tasks()

    @mcp.tool()
    async def manage_subtasks(
        task_id: str,
        action: str,
        subtasks: Optional[List[Dict[str, Any]]] = None,
        subtask_id: Optional[str] = None,
        updates: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Create and manage subtasks for complex tasks. Subtasks of a task already marked done cannot be changed.

        Actions:
        - 'create': Add new subtasks to a task (up to 50 per call)
        - 'update': Modify a subtask's content and/or status
        - 'complete': Mark a subtask as completed (it must be in_progress)
        - 'delete': Remove a subtask that is not completed
        - 'break_down': REPLACE the task's subtasks with the given list (up to 50)

        Status transitions: pending -> in_progress|cancelled; in_progress -> completed|pending|cancelled;
        completed -> pending; cancelled -> pending.

        Args:
            task_id: ID of the parent task
            action: One of create, update, complete, delete, break_down
            subtasks: List of {"content": str, "status"?: str, "id"?: str} for create/break_down
            subtask_id: ID of the subtask for update/complete/delete
            updates: {"content"?: str, "status"?: str} for update
        """
        return run_manage_subtasks(
            manager,
            {
                "task_id": task_id,
                "action": action,
                "subtasks": subtasks,
                "subtask_id": subtask_id,
                "updates": updates,
            },
        )

    @mcp.tool()
    async def get_version() -> Dict[str, Any]:
        """Get MCP server version information."""
        return {
            "version": __version__,
            "task_file": str(manager.file_path),
            "backups_enabled": manager.backups_enabled,
        }

    return mcp


def main():
    """Run the MCP server over stdio with logging configured from settings."""
    from task_gate.server.server_logger import initialize_logging, log_lifecycle

    config = get_config()
    initialize_logging(config.log.debug, config.log.level, Path(config.log.log_dir))
    mcp = create_task_server()
    with log_lifecycle("task-gate", config.file_path):
        mcp.run()


if __name__ == "__main__":
    main()

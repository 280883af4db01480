"""
Tests for the MCP adapter's argument validation helpers.
"""

from fastmcp import FastMCP

from task_gate.mcp.server import (
    create_task_server,
    run_add_tasks,
    run_manage_subtasks,
    run_request_planning,
)

from tests.fixtures.sample_data import read_document


class TestRequestPlanningArguments:
    def test_accepts_camel_case_arguments(self, manager):
        result = run_request_planning(
            manager,
            {"originalRequest": "Write docs", "tasks": [{"title": "Outline", "description": "Sections"}]},
        )
        assert result["status"] == "planned"
        assert result["requestId"] == "req-1"

    def test_empty_tasks_is_schema_error(self, manager):
        result = run_request_planning(manager, {"original_request": "Nothing", "tasks": []})
        assert result["code"] == "SCHEMA_VALIDATION_FAILED"
        assert result["validationErrors"][0].startswith("tasks:")

    def test_task_without_description(self, manager):
        result = run_request_planning(manager, {"original_request": "x", "tasks": [{"title": "Only title"}]})
        assert result["code"] == "SCHEMA_VALIDATION_FAILED"
        assert result["validationErrors"][0].startswith("tasks.0.description:")


class TestAddTasksArguments:
    def test_adds_tasks(self, manager, planned_request):
        result = run_add_tasks(
            manager, {"requestId": planned_request["requestId"], "tasks": [{"title": "More", "description": "d"}]}
        )
        assert result["status"] == "tasks_added"

    def test_missing_request_id(self, manager):
        result = run_add_tasks(manager, {"tasks": [{"title": "More", "description": "d"}]})
        assert result["code"] == "SCHEMA_VALIDATION_FAILED"


class TestManageSubtasksArguments:
    def test_create(self, manager, planned_request):
        result = run_manage_subtasks(
            manager,
            {"taskId": planned_request["tasks"][0]["id"], "action": "create", "subtasks": [{"content": " Trimmed "}]},
        )
        assert result["status"] == "subtasks_created"
        assert result["subtasks"][0]["content"] == "Trimmed"

    def test_update_status(self, manager, task_with_subtasks):
        result = run_manage_subtasks(
            manager,
            {
                "taskId": task_with_subtasks["task_id"],
                "action": "update",
                "subtaskId": task_with_subtasks["subtasks"][0]["id"],
                "updates": {"status": "in_progress"},
            },
        )
        assert result["status"] == "subtask_updated"
        assert result["subtask"]["status"] == "in_progress"

    def test_missing_action_arguments(self, manager, planned_request):
        result = run_manage_subtasks(manager, {"taskId": planned_request["tasks"][0]["id"], "action": "update"})
        assert result["code"] == "SCHEMA_VALIDATION_FAILED"
        assert "Missing required parameters for this action" in result["message"]

    def test_invalid_action(self, manager, planned_request):
        result = run_manage_subtasks(manager, {"taskId": planned_request["tasks"][0]["id"], "action": "explode"})
        assert result["code"] == "SCHEMA_VALIDATION_FAILED"
        assert result["validationErrors"][0].startswith("action:")

    def test_field_errors_carry_paths(self, manager, planned_request):
        result = run_manage_subtasks(
            manager,
            {
                "taskId": planned_request["tasks"][0]["id"],
                "action": "create",
                "subtasks": [{"content": "fine"}, {"content": "   "}, {"content": "ok", "status": "done"}],
            },
        )
        assert result["code"] == "SCHEMA_VALIDATION_FAILED"
        paths = [line.split(":")[0] for line in result["validationErrors"]]
        assert paths == ["subtasks.1.content", "subtasks.2.status"]

    def test_whitespace_only_update_content_rejected(self, manager, task_with_subtasks, document_path):
        before = read_document(document_path)
        result = run_manage_subtasks(
            manager,
            {
                "taskId": task_with_subtasks["task_id"],
                "action": "update",
                "subtaskId": task_with_subtasks["subtasks"][0]["id"],
                "updates": {"content": "   ", "status": "in_progress"},
            },
        )
        assert result["code"] == "SCHEMA_VALIDATION_FAILED"
        assert result["validationErrors"][0].startswith("updates.content:")
        assert read_document(document_path) == before

    def test_length_limit_applies_after_trimming(self, manager, planned_request):
        task_id = planned_request["tasks"][0]["id"]
        result = run_manage_subtasks(
            manager, {"taskId": task_id, "action": "create", "subtasks": [{"content": "x" * 500 + "  "}]}
        )
        assert result["status"] == "subtasks_created"

        too_long = run_manage_subtasks(
            manager, {"taskId": task_id, "action": "create", "subtasks": [{"content": "y" * 501}]}
        )
        assert too_long["code"] == "SCHEMA_VALIDATION_FAILED"

    def test_batch_limit(self, manager, planned_request):
        specs = [{"content": f"Step {i}"} for i in range(51)]
        result = run_manage_subtasks(
            manager, {"taskId": planned_request["tasks"][0]["id"], "action": "break_down", "subtasks": specs}
        )
        assert result["code"] == "SCHEMA_VALIDATION_FAILED"


def test_create_task_server(document_path):
    server = create_task_server(file_path=document_path, backups_enabled=False)
    assert isinstance(server, FastMCP)

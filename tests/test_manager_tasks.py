"""
Tests for task-level operations: adding, updating, deleting, marking done and approving.
"""

from tests.fixtures.sample_data import read_document


class TestAddTasks:
    def test_numbering_continues(self, manager, planned_request, sample_data):
        result = manager.add_tasks_to_request(planned_request["requestId"], sample_data.create_task_definitions(2, "Extra"))
        assert result["status"] == "tasks_added"
        assert [t["id"] for t in result["newTasks"]] == ["req-req-1-task-4", "req-req-1-task-5"]

    def test_task_ids_never_reused_after_delete(self, manager, planned_request, sample_data):
        request_id = planned_request["requestId"]
        manager.delete_task(request_id, "req-req-1-task-3")
        result = manager.add_tasks_to_request(request_id, sample_data.create_task_definitions(1))
        assert result["newTasks"][0]["id"] == "req-req-1-task-4"

    def test_deleting_middle_task_keeps_numbers_above_max(self, manager, planned_request, sample_data):
        request_id = planned_request["requestId"]
        manager.delete_task(request_id, "req-req-1-task-2")
        result = manager.add_tasks_to_request(request_id, sample_data.create_task_definitions(1))
        assert result["newTasks"][0]["id"] == "req-req-1-task-4"

    def test_unknown_request(self, manager, sample_data):
        result = manager.add_tasks_to_request("req-5", sample_data.create_task_definitions(1))
        assert result["code"] == "REQUEST_NOT_FOUND"

    def test_empty_list(self, manager, planned_request):
        assert manager.add_tasks_to_request(planned_request["requestId"], [])["code"] == "EMPTY_TASK_LIST"


class TestUpdateTask:
    def test_updates_fields(self, manager, planned_request):
        request_id = planned_request["requestId"]
        result = manager.update_task(request_id, "req-req-1-task-1", title="Renamed")
        assert result["status"] == "task_updated"
        assert result["task"]["title"] == "Renamed"
        assert result["task"]["description"] == "Description for task 1"

    def test_done_task_cannot_be_updated(self, manager, planned_request):
        request_id = planned_request["requestId"]
        manager.mark_task_done(request_id, "req-req-1-task-1")
        result = manager.update_task(request_id, "req-req-1-task-1", title="Too late")
        assert result["code"] == "TASK_ALREADY_DONE"

    def test_unknown_task(self, manager, planned_request):
        result = manager.update_task(planned_request["requestId"], "req-req-1-task-9", title="x")
        assert result["code"] == "TASK_NOT_FOUND"


class TestDeleteTask:
    def test_deletes_open_task(self, manager, planned_request, document_path):
        result = manager.delete_task(planned_request["requestId"], "req-req-1-task-2")
        assert result["status"] == "task_deleted"
        ids = [t["id"] for t in read_document(document_path)["requests"][0]["tasks"]]
        assert ids == ["req-req-1-task-1", "req-req-1-task-3"]

    def test_done_task_cannot_be_deleted(self, manager, planned_request):
        request_id = planned_request["requestId"]
        manager.mark_task_done(request_id, "req-req-1-task-1")
        assert manager.delete_task(request_id, "req-req-1-task-1")["code"] == "TASK_ALREADY_DONE"


class TestMarkTaskDone:
    def test_marks_done_with_details(self, manager, planned_request, document_path):
        result = manager.mark_task_done(planned_request["requestId"], "req-req-1-task-1", "Shipped it")
        assert result["status"] == "task_marked_done"
        assert result["task"]["completedDetails"] == "Shipped it"
        raw_task = read_document(document_path)["requests"][0]["tasks"][0]
        assert raw_task["done"] is True
        assert raw_task["approved"] is False

    def test_already_done(self, manager, planned_request):
        request_id = planned_request["requestId"]
        manager.mark_task_done(request_id, "req-req-1-task-1")
        assert manager.mark_task_done(request_id, "req-req-1-task-1")["status"] == "already_done"

    def test_blocked_by_incomplete_subtasks(self, manager, task_with_subtasks, document_path):
        before = read_document(document_path)
        result = manager.mark_task_done(task_with_subtasks["request_id"], task_with_subtasks["task_id"])
        assert result["status"] == "subtasks_incomplete"
        assert result["code"] == "SUBTASKS_INCOMPLETE"
        assert result["completionPercentage"] == 0
        assert result["remainingSubtasks"] == 3
        assert read_document(document_path) == before

    def test_unknown_request(self, manager):
        assert manager.mark_task_done("req-3", "req-req-3-task-1")["code"] == "REQUEST_NOT_FOUND"


class TestApproveTask:
    def test_requires_done(self, manager, planned_request):
        result = manager.approve_task_completion(planned_request["requestId"], "req-req-1-task-1")
        assert result["code"] == "TASK_NOT_DONE"

    def test_approves_once(self, manager, planned_request):
        request_id = planned_request["requestId"]
        manager.mark_task_done(request_id, "req-req-1-task-1", "details")
        result = manager.approve_task_completion(request_id, "req-req-1-task-1")
        assert result["status"] == "task_approved"
        assert result["task"]["approved"] is True
        assert result["task"]["completedDetails"] == "details"
        assert manager.approve_task_completion(request_id, "req-req-1-task-1")["status"] == "already_approved"


class TestOpenTaskDetails:
    def test_details_include_subtasks(self, manager, task_with_subtasks):
        result = manager.open_task_details(task_with_subtasks["task_id"])
        assert result["status"] == "task_details"
        assert result["requestId"] == "req-1"
        assert result["originalRequest"] == "Ship the release"
        task = result["task"]
        assert task["displayNumber"] == 1
        assert task["completionPercentage"] == 0
        assert [s["displayNumber"] for s in task["subtasks"]] == [1, 2, 3]
        assert [s["content"] for s in task["subtasks"]] == ["Set up project", "Write tests", "Implement feature"]

    def test_task_without_subtasks(self, manager, planned_request):
        task = manager.open_task_details("req-req-1-task-2")["task"]
        assert task["subtasks"] is None
        assert task["completionPercentage"] is None

    def test_unknown_task(self, manager):
        result = manager.open_task_details("req-req-1-task-1")
        assert result["status"] == "task_not_found"
        assert result["code"] == "TASK_NOT_FOUND"

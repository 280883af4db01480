"""
Tests for snapshot/rollback around subtask mutations.
"""

import shutil

from task_gate.core.manager import TaskManager
from task_gate.core.transaction import SnapshotGuard

from tests.fixtures.sample_data import SampleDataGenerator, read_document, write_document


def backups(document_path):
    return list(document_path.parent.glob("tasks.json.backup.*"))


class TestSnapshotGuard:
    def test_rollback_restores_previous_document(self, store, document_path):
        write_document(document_path, SampleDataGenerator.create_document())
        store.load()
        guard = SnapshotGuard(store)
        assert guard.take() is not None

        write_document(document_path, {"requests": []})
        assert guard.rollback() is True

        assert len(read_document(document_path)["requests"]) == 2
        assert len(store.data.requests) == 2
        assert backups(document_path) == []

    def test_rollback_without_prior_file_removes_new_file(self, store, document_path):
        store.load()
        guard = SnapshotGuard(store)
        guard.take()
        assert guard.has_snapshot

        write_document(document_path, SampleDataGenerator.create_document())
        assert guard.rollback() is True
        assert not document_path.exists()

    def test_discard_removes_backup(self, store, document_path):
        write_document(document_path, SampleDataGenerator.create_document())
        guard = SnapshotGuard(store)
        guard.take()
        assert len(backups(document_path)) == 1
        guard.discard()
        assert backups(document_path) == []

    def test_snapshot_failure_is_not_fatal(self, store, document_path, monkeypatch):
        write_document(document_path, SampleDataGenerator.create_document())

        def fail(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(shutil, "copyfile", fail)
        guard = SnapshotGuard(store)
        assert guard.take() is None
        assert not guard.has_snapshot

    def test_disabled_guard_takes_nothing(self, store, document_path):
        write_document(document_path, SampleDataGenerator.create_document())
        guard = SnapshotGuard(store, enabled=False)
        assert guard.take() is None
        assert guard.rollback() is False


class TestOperationRollback:
    def test_unexpected_error_rolls_back_and_reports_internal_error(self, manager, task_with_subtasks, document_path, monkeypatch):
        before = read_document(document_path)
        original_save = manager.store.save

        def save_then_fail():
            original_save()
            raise RuntimeError("boom")

        monkeypatch.setattr(manager.store, "save", save_then_fail)
        result = manager.manage_subtasks(
            task_with_subtasks["task_id"], "create", subtasks=[{"content": "Half written"}]
        )

        assert result["status"] == "error"
        assert result["code"] == "INTERNAL_ERROR"
        assert result["originalError"] == "boom"
        assert result["rolledBack"] is True
        assert read_document(document_path) == before
        assert backups(document_path) == []

    def test_successful_operation_leaves_no_backup(self, manager, task_with_subtasks, document_path):
        result = manager.manage_subtasks(task_with_subtasks["task_id"], "create", subtasks=[{"content": "Another"}])
        assert result["status"] == "subtasks_created"
        assert backups(document_path) == []

    def test_operations_with_backups_disabled(self, document_path, sample_data):
        manager = TaskManager(document_path, backups_enabled=False)
        planned = manager.request_planning("No backups", sample_data.create_task_definitions(1))
        result = manager.manage_subtasks(planned["tasks"][0]["id"], "create", subtasks=[{"content": "One"}])
        assert result["status"] == "subtasks_created"
        assert backups(document_path) == []

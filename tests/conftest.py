"""
Global pytest configuration and fixtures for task-gate testing.
"""

import pytest
from pathlib import Path
from typing import Any, Dict

from task_gate.core.manager import TaskManager
from task_gate.core.storage import TaskStore
from task_gate.server import config as config_module

from tests.fixtures.sample_data import SampleDataGenerator


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point configuration at temp locations and drop the cached singleton."""
    monkeypatch.setattr(config_module, "APP_DIR", tmp_path / "app")
    monkeypatch.chdir(tmp_path)
    for name in ("TASK_MANAGER_FILE_PATH", "TASK_GATE_LOG_LEVEL", "TASK_GATE_DEBUG", "TASK_GATE_BACKUPS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "_config", None)
    yield
    config_module._config = None


@pytest.fixture
def document_path(tmp_path) -> Path:
    """Location of the task document for a test."""
    return tmp_path / "data" / "tasks.json"


@pytest.fixture
def store(document_path) -> TaskStore:
    return TaskStore(document_path)


@pytest.fixture
def manager(document_path) -> TaskManager:
    return TaskManager(document_path)


@pytest.fixture
def sample_data():
    return SampleDataGenerator()


@pytest.fixture
def planned_request(manager, sample_data) -> Dict[str, Any]:
    """A request planned with three tasks."""
    result = manager.request_planning("Ship the release", sample_data.create_task_definitions(3))
    assert result["status"] == "planned"
    return result


@pytest.fixture
def task_with_subtasks(manager, planned_request, sample_data) -> Dict[str, Any]:
    """First task of the planned request broken into three subtasks."""
    task_id = planned_request["tasks"][0]["id"]
    result = manager.manage_subtasks(task_id, "break_down", subtasks=sample_data.create_subtask_specs())
    assert result["status"] == "task_broken_down"
    return {"request_id": planned_request["requestId"], "task_id": task_id, "subtasks": result["subtasks"]}



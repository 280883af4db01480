"""
Tests for the subtask state machine, progress aggregation and gating predicates.
"""

import pytest

from task_gate.core.lifecycle import (
    all_tasks_approved,
    all_tasks_done,
    apply_status,
    can_mark_done,
    completion_percentage,
    is_valid_transition,
    recompute_progress,
    valid_transitions,
)
from task_gate.core.models import RequestEntry, Subtask, Task


def make_subtasks(*statuses):
    return [
        Subtask(id=f"t-subtask-{i}", content=f"step {i}", status=status, created_at="2024-01-01T00:00:00Z")
        for i, status in enumerate(statuses, start=1)
    ]


class TestTransitions:
    @pytest.mark.parametrize(
        "current, new",
        [
            ("pending", "in_progress"),
            ("pending", "cancelled"),
            ("in_progress", "completed"),
            ("in_progress", "pending"),
            ("in_progress", "cancelled"),
            ("completed", "pending"),
            ("cancelled", "pending"),
        ],
    )
    def test_legal(self, current, new):
        assert is_valid_transition(current, new)

    @pytest.mark.parametrize(
        "current, new",
        [
            ("pending", "completed"),
            ("completed", "in_progress"),
            ("completed", "cancelled"),
            ("cancelled", "in_progress"),
            ("pending", "pending"),
            ("completed", "completed"),
        ],
    )
    def test_illegal(self, current, new):
        assert not is_valid_transition(current, new)

    def test_valid_transitions_in_stable_order(self):
        assert valid_transitions("in_progress") == ["pending", "completed", "cancelled"]


class TestApplyStatus:
    def test_completing_sets_completed_at(self):
        subtask = make_subtasks("in_progress")[0]
        apply_status(subtask, "completed", timestamp="2024-02-01T00:00:00+00:00")
        assert subtask.status == "completed"
        assert subtask.completed_at == "2024-02-01T00:00:00+00:00"

    def test_reopening_clears_completed_at(self):
        subtask = make_subtasks("in_progress")[0]
        apply_status(subtask, "completed")
        apply_status(subtask, "pending")
        assert subtask.completed_at is None


class TestProgress:
    def test_rounds_half_up(self):
        statuses = ["completed"] + ["pending"] * 7
        assert completion_percentage(make_subtasks(*statuses)) == 13

    def test_two_thirds(self):
        assert completion_percentage(make_subtasks("completed", "completed", "pending")) == 67

    def test_cancelled_counts_against_completion(self):
        assert completion_percentage(make_subtasks("completed", "cancelled")) == 50

    def test_empty(self):
        assert completion_percentage([]) == 0

    def test_recompute_removes_fields_when_empty(self):
        task = Task(id="t", title="t", subtasks=[], completion_percentage=50)
        recompute_progress(task)
        assert task.subtasks is None
        assert task.completion_percentage is None


class TestGates:
    def test_task_without_subtasks_can_be_done(self):
        assert can_mark_done(Task(id="t", title="t"))

    def test_cancelled_subtask_blocks_done(self):
        task = Task(id="t", title="t", subtasks=make_subtasks("completed", "cancelled"))
        assert not can_mark_done(task)

    def test_request_predicates(self):
        request = RequestEntry(
            request_id="req-1",
            original_request="r",
            tasks=[Task(id="a", title="a", done=True, approved=True), Task(id="b", title="b", done=True)],
        )
        assert all_tasks_done(request)
        assert not all_tasks_approved(request)

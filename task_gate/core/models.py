"""
SOLE RESPONSIBILITY: Defines all Pydantic data contracts for the persisted task document
and for the arguments accepted by task operations.
"""

from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


MAX_CONTENT_LENGTH = 500
MAX_BATCH_SIZE = 50


class SubtaskStatus(str, Enum):
    """Subtask status enumeration."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SubtaskAction(str, Enum):
    """Actions accepted by manage_subtasks."""

    CREATE = "create"
    UPDATE = "update"
    COMPLETE = "complete"
    DELETE = "delete"
    BREAK_DOWN = "break_down"


class DocumentModel(BaseModel):
    """Base for persisted models: camelCase on disk, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Subtask(DocumentModel):
    """Finest-grained unit of work, owned by exactly one Task."""

    id: str
    content: str
    status: SubtaskStatus = SubtaskStatus.PENDING
    created_at: str = Field(alias="createdAt")
    completed_at: Optional[str] = Field(default=None, alias="completedAt")


class Task(DocumentModel):
    """Unit of work within a Request; optionally decomposed into subtasks."""

    id: str
    title: str
    description: str = ""
    done: bool = False
    approved: bool = False
    completed_details: str = Field(default="", alias="completedDetails")
    subtasks: Optional[List[Subtask]] = None
    completion_percentage: Optional[int] = Field(default=None, alias="completionPercentage", ge=0, le=100)


class RequestEntry(DocumentModel):
    """Top-level unit of work submitted by a caller."""

    request_id: str = Field(alias="requestId")
    original_request: str = Field(alias="originalRequest")
    split_details: str = Field(default="", alias="splitDetails")
    tasks: List[Task] = Field(default_factory=list)
    completed: bool = False
    last_task_number: Optional[int] = Field(default=None, alias="lastTaskNumber")


class TaskManagerFile(DocumentModel):
    """The whole persisted document."""

    requests: List[RequestEntry] = Field(default_factory=list)
    last_subtask_number: Optional[int] = Field(default=None, alias="lastSubtaskNumber")


# Tool argument payloads


class TaskDefinition(BaseModel):
    """Title and description for a task being planned or added."""

    title: str
    description: str


class RequestPlanningPayload(BaseModel):
    """Arguments for request_planning."""

    model_config = ConfigDict(populate_by_name=True)

    original_request: str = Field(alias="originalRequest")
    split_details: Optional[str] = Field(default=None, alias="splitDetails")
    tasks: List[TaskDefinition] = Field(..., min_length=1)


class AddTasksPayload(BaseModel):
    """Arguments for add_tasks_to_request."""

    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(alias="requestId")
    tasks: List[TaskDefinition] = Field(..., min_length=1)


def strip_content(value):
    """Trims string content before the length limits apply; whitespace-only text is rejected."""
    if not isinstance(value, str):
        return value
    if value and not value.strip():
        raise ValueError("Subtask content cannot be only whitespace")
    return value.strip()


class SubtaskSpec(BaseModel):
    """A single subtask supplied to create/break_down."""

    id: Optional[str] = None
    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
    status: SubtaskStatus = SubtaskStatus.PENDING

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, v):
        return strip_content(v)


class SubtaskUpdates(BaseModel):
    """Fields that an update action may change."""

    content: Optional[str] = Field(None, min_length=1, max_length=MAX_CONTENT_LENGTH)
    status: Optional[SubtaskStatus] = None

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, v):
        return strip_content(v)


class ManageSubtasksPayload(BaseModel):
    """Arguments for manage_subtasks, with action-specific requirements."""

    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(..., alias="taskId", min_length=1)
    action: SubtaskAction
    subtasks: Optional[List[SubtaskSpec]] = Field(None, max_length=MAX_BATCH_SIZE)
    subtask_id: Optional[str] = Field(None, alias="subtaskId")
    updates: Optional[SubtaskUpdates] = None

    @model_validator(mode="after")
    def validate_action_arguments(self) -> "ManageSubtasksPayload":
        if self.action in (SubtaskAction.CREATE, SubtaskAction.BREAK_DOWN):
            if not self.subtasks:
                raise ValueError("Missing required parameters for this action")
        elif self.action == SubtaskAction.UPDATE:
            if not self.subtask_id or not self.updates or (not self.updates.content and not self.updates.status):
                raise ValueError("Missing required parameters for this action")
        elif not self.subtask_id:
            raise ValueError("Missing required parameters for this action")
        return self

"""
SOLE RESPONSIBILITY: Persistence gateway for the single task document.
Loads and saves the whole document as JSON and rebuilds counters on every load.

Known limitation: there is no cross-process locking. Two processes writing the same
document get last-writer-wins semantics; run one active caller per document.
"""

import json
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple, Union

from pydantic import ValidationError

from ..server.server_logger import log_storage_operation
from .identifiers import make_request_id, make_subtask_id, rebuild_counters
from .models import RequestEntry, Task, TaskManagerFile

logger = logging.getLogger(__name__)


class TaskStore:
    """In-memory cache of the task document, refreshed from disk at the start of each operation."""

    def __init__(self, file_path: Union[str, Path], quarantine_corrupt: bool = True):
        self.file_path = Path(file_path).expanduser()
        self.quarantine_corrupt = quarantine_corrupt
        self.data = TaskManagerFile()
        self.request_counter = 0
        self.subtask_counter = 0

    def load(self) -> TaskManagerFile:
        """
        Reloads the document and derives both counters from it.
        Absent file -> empty document. Unparsable file -> empty document, with the broken
        file copied aside first when quarantine is enabled.
        """
        if not self.file_path.exists():
            self.data = TaskManagerFile()
        else:
            try:
                raw = self.file_path.read_text(encoding="utf-8")
                self.data = TaskManagerFile.model_validate(json.loads(raw))
            except (json.JSONDecodeError, ValidationError, UnicodeDecodeError) as e:
                logger.warning(f"Task document {self.file_path} is unreadable, starting empty: {e}")
                self._quarantine()
                self.data = TaskManagerFile()

        self.request_counter, self.subtask_counter = rebuild_counters(self.data)
        log_storage_operation(
            "load",
            {
                "path": str(self.file_path),
                "requests": len(self.data.requests),
                "request_counter": self.request_counter,
                "subtask_counter": self.subtask_counter,
            },
        )
        return self.data

    def save(self) -> None:
        """Writes the whole document through a temp file and an atomic rename."""
        payload = json.dumps(self.data.to_document(), indent=2, ensure_ascii=False)
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.file_path.with_name(self.file_path.name + ".tmp")
            temp_path.write_text(payload, encoding="utf-8")
            temp_path.replace(self.file_path)
        except OSError as e:
            log_storage_operation("save", {"path": str(self.file_path)}, error=e)
            raise
        log_storage_operation("save", {"path": str(self.file_path), "requests": len(self.data.requests)})

    def _quarantine(self) -> Optional[Path]:
        if not self.quarantine_corrupt:
            return None
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        target = self.file_path.with_name(f"{self.file_path.name}.corrupt.{stamp}")
        try:
            shutil.copyfile(self.file_path, target)
        except OSError as e:
            logger.error(f"Failed to preserve corrupt task document: {e}")
            return None
        logger.warning(f"Preserved corrupt task document as {target}")
        return target

    # Counters

    def next_request_id(self) -> str:
        self.request_counter += 1
        return make_request_id(self.request_counter)

    def advance_counter(self) -> int:
        """Bumps the document-wide task/subtask counter; it is never reset except by clear."""
        self.subtask_counter += 1
        self.data.last_subtask_number = self.subtask_counter
        return self.subtask_counter

    def next_subtask_id(self, task_id: str) -> str:
        return make_subtask_id(task_id, self.advance_counter())

    # Lookups

    def find_request(self, request_id: str) -> Optional[RequestEntry]:
        return next((r for r in self.data.requests if r.request_id == request_id), None)

    def find_task(self, task_id: str) -> Tuple[Optional[RequestEntry], Optional[Task]]:
        for request in self.data.requests:
            for task in request.tasks:
                if task.id == task_id:
                    return request, task
        return None, None

    def reset(self) -> None:
        self.data = TaskManagerFile()
        self.request_counter = 0
        self.subtask_counter = 0

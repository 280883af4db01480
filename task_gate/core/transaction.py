"""
SOLE RESPONSIBILITY: Best-effort snapshot/rollback around multi-step mutations of the task document.

This approximates atomicity for the whole-document model and is not a guarantee:
a snapshot that cannot be taken is logged and the operation proceeds without one.
"""

import logging
import shutil
import time
from pathlib import Path
from typing import Optional

from .storage import TaskStore

logger = logging.getLogger(__name__)


class SnapshotGuard:
    """
    Snapshot, attempt, restore-on-failure.

    take() copies the document to <path>.backup.<ms>; rollback() copies it back and
    reloads the store; discard() removes the copy after a successful operation.
    """

    def __init__(self, store: TaskStore, enabled: bool = True):
        self.store = store
        self.enabled = enabled
        self.backup_path: Optional[Path] = None
        self.file_existed = False

    def take(self) -> Optional[Path]:
        """Creates the snapshot. Failure is non-fatal and leaves backup_path as None."""
        self.backup_path = None
        if not self.enabled:
            return None

        source = self.store.file_path
        self.file_existed = source.exists()
        if not self.file_existed:
            # Nothing to copy; rollback restores the "no document" state instead
            return None

        target = source.with_name(f"{source.name}.backup.{int(time.time() * 1000)}")
        try:
            shutil.copyfile(source, target)
        except OSError as e:
            logger.warning(f"Failed to create backup of {source}: {e}")
            return None

        self.backup_path = target
        logger.debug(f"Created snapshot {target}")
        return target

    @property
    def has_snapshot(self) -> bool:
        return self.backup_path is not None or (self.enabled and not self.file_existed)

    def rollback(self) -> bool:
        """
        Restores the pre-operation document and refreshes the in-memory cache.
        Returns True when the on-disk state was restored.
        """
        source = self.store.file_path
        restored = False

        try:
            if self.backup_path is not None:
                shutil.copyfile(self.backup_path, source)
                self.backup_path.unlink()
                self.backup_path = None
                restored = True
            elif self.enabled and not self.file_existed:
                if source.exists():
                    source.unlink()
                restored = True
            else:
                logger.warning("No snapshot available, cannot roll back task document")
        except OSError as e:
            logger.error(f"Failed to rollback task document: {e}")

        try:
            self.store.load()
        except OSError as e:
            logger.error(f"Failed to reload task document after rollback: {e}")

        if restored:
            logger.info(f"Rolled back task document {source}")
        return restored

    def discard(self) -> None:
        if self.backup_path is None:
            return
        try:
            self.backup_path.unlink()
        except OSError as e:
            logger.warning(f"Failed to remove backup {self.backup_path}: {e}")
        self.backup_path = None

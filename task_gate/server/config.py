"""
SOLE RESPONSIBILITY: Configuration management with defaults and validation.
Decides where the task document lives and how logging and backups behave.
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Optional
import logging

logger = logging.getLogger(__name__)

APP_DIR = Path.home() / ".task-gate"
DEFAULT_FILE_PATH = Path.home() / "Documents" / "tasks.json"


@dataclass
class StorageConfig:
    """Task document configuration."""
    file_path: str = str(DEFAULT_FILE_PATH)
    backups_enabled: bool = True  # Snapshot before subtask mutations
    quarantine_corrupt: bool = True  # Keep a copy of unparsable documents


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    debug: bool = False
    log_dir: str = str(APP_DIR / "logs")


@dataclass
class Config:
    """Complete configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    log: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls) -> "Config":
        """
        Load configuration from multiple sources in priority order:
        1. Environment variables (highest)
        2. Local config file (project)
        3. User config file (~/.task-gate/config.json)
        4. Default values (lowest)
        """
        config = cls()

        for path in (APP_DIR / "config.json", Path.cwd() / ".task-gate.json"):
            if not path.exists():
                continue
            try:
                with open(path) as f:
                    config._merge_dict(json.load(f))
                logger.info(f"Loaded config from {path}")
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Error loading config {path}: {e}")

        config._load_env_vars()
        return config

    def _merge_dict(self, config_dict: dict):
        """Merge dictionary into config, ignoring unknown keys."""
        for section_name in ("storage", "log"):
            section = getattr(self, section_name)
            for key, value in config_dict.get(section_name, {}).items():
                if hasattr(section, key):
                    setattr(section, key, value)

    def _load_env_vars(self):
        """Load configuration from environment variables."""
        if val := os.environ.get("TASK_MANAGER_FILE_PATH"):
            self.storage.file_path = val
        if val := os.environ.get("TASK_GATE_BACKUPS"):
            self.storage.backups_enabled = val.lower() == "true"
        if val := os.environ.get("TASK_GATE_LOG_LEVEL"):
            self.log.level = val.upper()
        if val := os.environ.get("TASK_GATE_DEBUG"):
            self.log.debug = val.lower() in ("1", "true", "yes")

    @property
    def file_path(self) -> Path:
        return Path(self.storage.file_path).expanduser()

    def to_dict(self) -> dict:
        return asdict(self)


# Global singleton
_config: Optional[Config] = None


def get_config() -> Config:
    """Get global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def reload_config() -> Config:
    """Reload configuration from sources."""
    global _config
    _config = Config.load()
    logger.info("Configuration reloaded")
    return _config

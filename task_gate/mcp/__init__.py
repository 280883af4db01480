"""
MCP tool surface for task-gate.
"""

from .server import create_task_server

__all__ = ["create_task_server"]

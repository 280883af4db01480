"""Task Gate - an approval-gated task and subtask tracker for MCP agents.

This package keeps a request/task/subtask document on disk and refuses to let
an agent advance past work the user has not approved.
"""

__version__ = "0.4.0"

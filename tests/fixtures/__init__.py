"""
Test fixtures and utilities for task-gate testing.
"""

from .sample_data import *

__all__ = [
    "SampleDataGenerator",
    "ErrorScenarios",
    "read_document",
    "write_document",
]

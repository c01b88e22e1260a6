"""
Storage package - In-memory storage for workflow runs.
"""

from tinyflow.storage.memory import RunStorage, StoredRun, run_storage

__all__ = [
    "RunStorage",
    "StoredRun",
    "run_storage",
]

"""
In-Memory Storage for workflow runs.

Keeps the summaries of executed runs so they can be queried after the
request that started them has returned.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import asyncio
from dataclasses import dataclass, field


@dataclass
class StoredRun:
    """A stored execution run."""
    run_id: str
    workflow_id: str
    summary: Dict[str, Any]
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def status(self) -> str:
        return self.summary.get("status", "pending")

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.summary)


class RunStorage:
    """
    Async-safe in-memory storage for execution runs.
    """

    def __init__(self):
        self._runs: Dict[str, StoredRun] = {}
        self._lock = asyncio.Lock()

    async def save(self, run_id: str, workflow_id: str, summary: Dict[str, Any]) -> StoredRun:
        """
        Save (or replace) the summary of a run.

        Args:
            run_id: Unique run identifier
            workflow_id: Workflow the run belongs to
            summary: ExecutionResult.to_dict() of the run

        Returns:
            The stored run
        """
        async with self._lock:
            stored = StoredRun(run_id=run_id, workflow_id=workflow_id, summary=summary)
            self._runs[run_id] = stored
            return stored

    async def get(self, run_id: str) -> Optional[StoredRun]:
        """Get a run by ID."""
        async with self._lock:
            return self._runs.get(run_id)

    async def list_all(self) -> List[StoredRun]:
        """List all runs."""
        async with self._lock:
            return list(self._runs.values())

    async def list_by_workflow(self, workflow_id: str) -> List[StoredRun]:
        """List all runs for a specific workflow."""
        async with self._lock:
            return [r for r in self._runs.values() if r.workflow_id == workflow_id]

    async def delete(self, run_id: str) -> bool:
        """Delete a run."""
        async with self._lock:
            if run_id in self._runs:
                del self._runs[run_id]
                return True
            return False

    def __len__(self) -> int:
        return len(self._runs)


# Global storage instance
run_storage = RunStorage()

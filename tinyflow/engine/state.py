"""
Run State Management for the TinyFlow engine.

A run owns exactly one store. Every node of the run mutates that store
in place through its ExecutionContext; the StateManager owns the store
for the lifetime of the run and records snapshots after each step for
debugging.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from copy import deepcopy
import logging
import uuid

from tinyflow.engine.context import Store


logger = logging.getLogger(__name__)


class StateSnapshot(BaseModel):
    """A snapshot of the store after one executed node."""

    timestamp: datetime = Field(default_factory=datetime.now)
    step: int
    node_id: str
    action: Optional[str] = None
    store: Dict[str, Any]


def snapshot_store(store: Store) -> Dict[str, Any]:
    """Deep-copy a store, falling back to a shallow copy for uncopyable values."""
    try:
        return deepcopy(store)
    except Exception as e:
        logger.debug(f"Store snapshot fell back to shallow copy: {e}")
        return dict(store)


class StateManager:
    """
    Owns the store and the log lines of a single run.

    Attributes:
        run_id: Identifier of the run
        store: The run's shared store
        logs: Log lines emitted by nodes during the run
        history: Snapshots recorded after each step
    """

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id or str(uuid.uuid4())
        self.store: Store = {}
        self.logs: List[str] = []
        self.history: List[StateSnapshot] = []
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None

    def initialize(self, initial_data: Optional[Dict[str, Any]] = None) -> Store:
        """Create the run store from initial data."""
        self.store = dict(initial_data or {})
        self.started_at = datetime.now()
        return self.store

    def log(self, message: str) -> None:
        """Append a line to the run log."""
        self.logs.append(message)

    def record(self, step: int, node_id: str, action: Optional[str] = None) -> StateSnapshot:
        """Record a snapshot of the store after a node completed."""
        snapshot = StateSnapshot(
            step=step,
            node_id=node_id,
            action=action,
            store=snapshot_store(self.store),
        )
        self.history.append(snapshot)
        return snapshot

    def finalize(self) -> Store:
        """Mark the run as complete and return the final store."""
        self.completed_at = datetime.now()
        return self.store

    def get_history(self) -> List[Dict[str, Any]]:
        """Get the snapshot history as a list of dictionaries."""
        return [
            {
                "timestamp": s.timestamp.isoformat(),
                "step": s.step,
                "node": s.node_id,
                "action": s.action,
                "store": s.store,
            }
            for s in self.history
        ]

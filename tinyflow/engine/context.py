"""
Execution Context and Result Protocol.

Every registered function is invoked with a parameter dict and an
ExecutionContext, and answers with a FunctionResult. The context carries
the run's shared store; the result's action tells the runtime which edge
to follow next.
"""

from typing import Any, Callable, Dict, Mapping, Optional
from dataclasses import dataclass, field
from types import MappingProxyType
import logging


logger = logging.getLogger(__name__)

# Shared per-run key/value state
Store = Dict[str, Any]

LogFunction = Callable[[str], None]


def _default_log(message: str) -> None:
    logger.info(message)


@dataclass
class FunctionResult:
    """
    Uniform result returned by every executable function.

    Attributes:
        output: Output data produced by the function
        success: Whether execution succeeded
        error: Error message if failed
        action: Routing signal for the runtime (None means default edge)
    """
    output: Any = None
    success: bool = True
    error: Optional[str] = None
    action: Optional[str] = None

    @classmethod
    def ok(cls, output: Any = None, action: Optional[str] = None) -> "FunctionResult":
        return cls(output=output, success=True, action=action)

    @classmethod
    def fail(cls, error: str, output: Any = None) -> "FunctionResult":
        return cls(output=output, success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        data = {"output": self.output, "success": self.success}
        if self.error is not None:
            data["error"] = self.error
        if self.action is not None:
            data["action"] = self.action
        return data


@dataclass
class ExecutionContext:
    """
    Per-invocation bundle passed to every function.

    Attributes:
        node_id: Identity of the node being executed
        store: Shared store for the run (mutated in place)
        env: Read-only environment values (credentials, secrets)
        log: Logging sink for node messages
    """
    node_id: str
    store: Store = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)
    log: LogFunction = _default_log

    def __post_init__(self):
        if not isinstance(self.env, MappingProxyType):
            self.env = MappingProxyType(dict(self.env))

    def isolated(self, index: int, seed: Optional[Dict[str, Any]] = None) -> "ExecutionContext":
        """
        Create a child context for one logically isolated item.

        The child gets a shallow copy of the store, so its writes are
        invisible to siblings and to this context. Log messages are
        prefixed with the item index.

        Args:
            index: Global index of the item
            seed: Keys written into the copied store before use

        Returns:
            A new ExecutionContext sharing node identity and env
        """
        store = dict(self.store)
        if seed:
            store.update(seed)

        parent_log = self.log

        def item_log(message: str) -> None:
            parent_log(f"[Item {index}] {message}")

        return ExecutionContext(
            node_id=self.node_id,
            store=store,
            env=self.env,
            log=item_log,
        )

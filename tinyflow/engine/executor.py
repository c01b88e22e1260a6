"""
Async Workflow Executor.

The executor is the graph runtime: it walks a workflow from its start
node, resolves each node's function through the registry, invokes it
with a context bound to the run's store, and follows the edge selected
by the returned action.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import asyncio
import uuid
import time
import logging

from tinyflow.config import settings
from tinyflow.engine.context import ExecutionContext, FunctionResult, Store
from tinyflow.engine.graph import DEFAULT_ACTION, ERROR_ACTION, Workflow, WorkflowNode
from tinyflow.engine.state import StateManager


# Configure logging
logger = logging.getLogger(__name__)

LAST_ERROR_KEY = "lastError"


class ExecutionStatus(str, Enum):
    """Status of a workflow execution."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ExecutionStep:
    """A single node execution in the run log."""
    step: int
    node: str
    function_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None
    success: bool = True
    action: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 1
    next_node: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "node": self.node,
            "function_id": self.function_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "success": self.success,
            "action": self.action,
            "error": self.error,
            "attempts": self.attempts,
            "next_node": self.next_node,
        }


@dataclass
class ExecutionError:
    """Where and why a run failed."""
    node_id: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"node_id": self.node_id, "message": self.message}


@dataclass
class ExecutionResult:
    """Result of a workflow execution."""
    run_id: str
    workflow_id: str
    status: ExecutionStatus
    store: Store
    logs: List[str] = field(default_factory=list)
    execution_log: List[ExecutionStep] = field(default_factory=list)
    node_results: Dict[str, FunctionResult] = field(default_factory=dict)
    error: Optional[ExecutionError] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None
    steps: int = 0

    @property
    def success(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "workflow_id": self.workflow_id,
            "status": self.status.value,
            "store": self.store,
            "logs": self.logs,
            "execution_log": [step.to_dict() for step in self.execution_log],
            "node_results": {k: r.to_dict() for k, r in self.node_results.items()},
            "error": self.error.to_dict() if self.error else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "steps": self.steps,
        }


class Executor:
    """
    Async workflow executor.

    Executes a workflow against a fresh store, handling:
    - Action-based routing between nodes
    - Failure routing through "error" edges
    - Retries of nodes whose function raises
    - A step limit against runaway loops
    - Detailed execution logging

    Usage:
        executor = Executor(workflow)
        result = await executor.run({"input": "data"})
    """

    def __init__(
        self,
        workflow: Workflow,
        registry=None,
        env: Optional[Mapping[str, str]] = None,
        run_id: Optional[str] = None,
        on_step: Optional[Callable[[ExecutionStep, Store], None]] = None,
    ):
        """
        Initialize the executor.

        Args:
            workflow: The workflow to execute
            registry: FunctionRegistry to resolve functions (global registry if omitted)
            env: Global environment values (overridden by flow and node envs)
            run_id: Optional run ID (generated if not provided)
            on_step: Optional callback after each executed node
        """
        if registry is None:
            from tinyflow.registry import function_registry
            registry = function_registry

        self.workflow = workflow
        self.registry = registry
        self.env = dict(env or {})
        self.run_id = run_id or str(uuid.uuid4())
        self.on_step = on_step

        self._state_manager = StateManager(self.run_id)
        self._execution_log: List[ExecutionStep] = []
        self._node_results: Dict[str, FunctionResult] = {}
        self._step_counter = 0
        self._status = ExecutionStatus.PENDING
        self._cancelled = False
        self._current_node: Optional[str] = None

    @property
    def status(self) -> ExecutionStatus:
        return self._status

    @property
    def current_node(self) -> Optional[str]:
        return self._current_node

    @property
    def history(self) -> List[Dict[str, Any]]:
        return self._state_manager.get_history()

    def cancel(self) -> None:
        """Stop the run before its next node."""
        self._cancelled = True

    async def run(self, initial_data: Optional[Dict[str, Any]] = None) -> ExecutionResult:
        """
        Execute the workflow with the given initial store data.

        Never raises: failures are reported on the returned result.
        """
        start_time = time.time()
        self._status = ExecutionStatus.RUNNING
        store = self._state_manager.initialize(initial_data)

        report = self.workflow.validate(self.registry)
        if not report.valid:
            return self._finish(
                ExecutionStatus.FAILED,
                start_time,
                ExecutionError("", f"Workflow validation failed: {'; '.join(report.errors)}"),
            )
        for warning in report.warnings:
            logger.warning(f"[{self.workflow.name}] {warning}")

        max_steps = self.workflow.max_steps or settings.MAX_STEPS
        current = self.workflow.start_node

        try:
            while current is not None:
                if self._cancelled:
                    logger.info(f"Execution cancelled before node '{current}'")
                    return self._finish(ExecutionStatus.CANCELLED, start_time)

                if self._step_counter >= max_steps:
                    return self._finish(
                        ExecutionStatus.FAILED,
                        start_time,
                        ExecutionError(current, f"Max steps ({max_steps}) exceeded"),
                    )

                node = self.workflow.nodes[current]
                self._current_node = current
                step, result = await self._execute_node(node, store)

                action = result.action or (DEFAULT_ACTION if result.success else ERROR_ACTION)
                next_node = self.workflow.get_next_node(current, action)
                step.action = action
                step.next_node = next_node

                if not result.success:
                    message = result.error or "Unknown error"
                    store[LAST_ERROR_KEY] = {"nodeId": current, "error": message}
                    if next_node is None:
                        self._notify(step, store)
                        return self._finish(
                            ExecutionStatus.FAILED,
                            start_time,
                            ExecutionError(current, message),
                        )
                    logger.info(f"Node '{current}' failed, following '{action}' edge to '{next_node}'")

                self._notify(step, store)
                current = next_node

            return self._finish(ExecutionStatus.COMPLETED, start_time)

        except Exception as e:
            logger.exception(f"Execution failed: {e}")
            return self._finish(
                ExecutionStatus.FAILED,
                start_time,
                ExecutionError(self._current_node or "runtime", str(e)),
            )

    def _make_context(self, node: WorkflowNode, store: Store) -> ExecutionContext:
        """Build a fresh context bound to the run store."""
        env = {**self.env, **self.workflow.envs, **node.envs}
        node_id = node.node_id

        def log(message: str) -> None:
            line = f"[{node_id}] {message}"
            self._state_manager.log(line)
            logger.info(line)

        return ExecutionContext(node_id=node_id, store=store, env=env, log=log)

    async def _execute_node(self, node: WorkflowNode, store: Store):
        """Execute a single node, retrying when its function raises."""
        self._step_counter += 1
        node_start_time = time.time()
        step = ExecutionStep(
            step=self._step_counter,
            node=node.node_id,
            function_id=node.function_id,
            started_at=datetime.now(),
        )

        logger.info(f"Executing node: {node.node_id} (step {self._step_counter})")

        executable = self.registry.lookup(node.function_id)
        if executable is None:
            result = FunctionResult.fail(f'Function "{node.function_id}" is not registered')
        else:
            context = self._make_context(node, store)
            result = None
            for attempt in range(1, node.max_retries + 1):
                step.attempts = attempt
                try:
                    result = await executable(dict(node.params), context)
                    break
                except Exception as e:
                    logger.error(f"Node {node.node_id} raised on attempt {attempt}: {e}")
                    if attempt >= node.max_retries:
                        result = FunctionResult.fail(str(e) or type(e).__name__)
                    elif node.retry_delay_ms > 0:
                        await asyncio.sleep(node.retry_delay_ms / 1000)

            if not isinstance(result, FunctionResult):
                result = FunctionResult.fail(
                    f"Function '{node.function_id}' returned {type(result).__name__}, "
                    f"expected FunctionResult"
                )

        step.completed_at = datetime.now()
        step.duration_ms = (time.time() - node_start_time) * 1000
        step.success = result.success
        step.error = result.error

        status = "completed" if result.success else result.error
        self._state_manager.log(f"[{'ok' if result.success else 'failed'}] {node.node_id}: {status}")

        self._node_results[node.node_id] = result
        self._execution_log.append(step)
        return step, result

    def _notify(self, step: ExecutionStep, store: Store) -> None:
        self._state_manager.record(step.step, step.node, step.action)
        if self.on_step:
            try:
                self.on_step(step, store)
            except Exception as e:
                logger.warning(f"Step callback failed: {e}")

    def _finish(
        self,
        status: ExecutionStatus,
        start_time: float,
        error: Optional[ExecutionError] = None,
    ) -> ExecutionResult:
        self._status = status
        store = self._state_manager.finalize()
        if error:
            self._state_manager.log(f"Run failed at '{error.node_id}': {error.message}")

        return ExecutionResult(
            run_id=self.run_id,
            workflow_id=self.workflow.workflow_id,
            status=status,
            store=store,
            logs=self._state_manager.logs,
            execution_log=self._execution_log,
            node_results=self._node_results,
            error=error,
            started_at=self._state_manager.started_at,
            completed_at=self._state_manager.completed_at,
            duration_ms=(time.time() - start_time) * 1000,
            steps=self._step_counter,
        )

    def get_execution_summary(self) -> Dict[str, Any]:
        """Get a summary of the current execution."""
        return {
            "run_id": self.run_id,
            "workflow_id": self.workflow.workflow_id,
            "status": self._status.value,
            "current_node": self._current_node,
            "store": self._state_manager.store,
            "step_count": self._step_counter,
        }


async def execute_workflow(
    workflow: Workflow,
    initial_data: Optional[Dict[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
    registry=None,
    run_id: Optional[str] = None,
    on_step: Optional[Callable] = None,
) -> ExecutionResult:
    """
    Convenience function to execute a workflow.

    Args:
        workflow: The workflow graph
        initial_data: Initial store data
        env: Global environment values
        registry: FunctionRegistry (global registry if omitted)
        run_id: Optional run ID
        on_step: Optional step callback

    Returns:
        ExecutionResult
    """
    executor = Executor(workflow, registry=registry, env=env, run_id=run_id, on_step=on_step)
    return await executor.run(initial_data)

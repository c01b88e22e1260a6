"""
Engine package - Execution context, workflow graph and runtime.
"""

from tinyflow.engine.context import ExecutionContext, FunctionResult, Store
from tinyflow.engine.state import StateManager
from tinyflow.engine.graph import Workflow, WorkflowNode
from tinyflow.engine.executor import Executor, ExecutionResult, ExecutionStatus, execute_workflow

__all__ = [
    "ExecutionContext",
    "FunctionResult",
    "Store",
    "StateManager",
    "Workflow",
    "WorkflowNode",
    "Executor",
    "ExecutionResult",
    "ExecutionStatus",
    "execute_workflow",
]

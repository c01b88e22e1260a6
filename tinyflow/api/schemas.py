"""
Pydantic Schemas for API Request/Response Models.

The workflow schemas mirror the workflow JSON produced by the visual
editor (camelCase keys), so definitions can be posted as-is.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum

from tinyflow.config import settings


# ============================================================
# Enums
# ============================================================

class ExecutionStatus(str, Enum):
    """Status of a workflow execution."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ============================================================
# Workflow Definition Schemas
# ============================================================

class NodeRuntime(BaseModel):
    """Per-node runtime settings."""
    model_config = ConfigDict(populate_by_name=True)

    max_retries: int = Field(1, alias="maxRetries", ge=1, description="Attempts when the function raises")
    retry_delay: float = Field(settings.DEFAULT_RETRY_DELAY_MS, alias="retryDelay", ge=0, description="Wait between attempts in ms")


class NodeDefinition(BaseModel):
    """Definition of a node in the workflow."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "double_all",
                "functionId": "control.batchForEach",
                "params": {
                    "array": [1, 2, 3],
                    "processorFunction": "transform.double",
                    "maxConcurrency": 2,
                },
            }
        },
    )

    id: str = Field(..., description="Unique node id")
    function_id: str = Field(..., alias="functionId", description="Registered function id")
    params: Dict[str, Any] = Field(default_factory=dict, description="Parameters passed to the function")
    envs: Dict[str, str] = Field(default_factory=dict, description="Node-level environment values")
    runtime: Optional[NodeRuntime] = None
    label: Optional[str] = None


class EdgeDefinition(BaseModel):
    """An action-labelled edge between two nodes."""
    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(..., alias="from", description="Source node id")
    target: str = Field(..., alias="to", description="Target node id")
    action: str = Field("default", description="Action that selects this edge")


class FlowConfig(BaseModel):
    """Flow execution configuration."""
    model_config = ConfigDict(populate_by_name=True)

    start_node_id: str = Field(..., alias="startNodeId", description="Node where execution begins")
    envs: Dict[str, str] = Field(default_factory=dict, description="Flow-level environment values")


class WorkflowDefinition(BaseModel):
    """A complete workflow definition."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Workflow identifier")
    name: str = Field(..., description="Human-readable name")
    description: Optional[str] = None
    version: str = "1.0.0"
    nodes: List[NodeDefinition] = Field(..., description="All nodes in the workflow")
    edges: List[EdgeDefinition] = Field(default_factory=list, description="Connections between nodes")
    flow: FlowConfig


# ============================================================
# Run Schemas
# ============================================================

class WorkflowRunRequest(BaseModel):
    """Request to run a workflow definition."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "workflow": {
                    "id": "counter-loop",
                    "name": "Counter loop",
                    "version": "1.0.0",
                    "nodes": [
                        {"id": "init", "functionId": "control.counter",
                         "params": {"counterKey": "i", "operation": "init"}},
                        {"id": "check", "functionId": "control.loopCheck",
                         "params": {"counterKey": "i", "limit": 3}},
                        {"id": "inc", "functionId": "control.counter",
                         "params": {"counterKey": "i", "operation": "increment"}},
                    ],
                    "edges": [
                        {"from": "init", "to": "check", "action": "default"},
                        {"from": "check", "to": "inc", "action": "success"},
                        {"from": "inc", "to": "check", "action": "default"},
                    ],
                    "flow": {"startNodeId": "init"},
                },
                "initialData": {},
            }
        },
    )

    workflow: WorkflowDefinition
    initial_data: Dict[str, Any] = Field(default_factory=dict, alias="initialData")
    env: Dict[str, str] = Field(default_factory=dict)


class ValidationResponse(BaseModel):
    """Result of validating a workflow."""
    valid: bool
    errors: List[str]
    warnings: List[str]


class ExecutionLogEntry(BaseModel):
    """A single entry in the execution log."""
    step: int
    node: str
    function_id: str
    started_at: str
    completed_at: Optional[str]
    duration_ms: Optional[float]
    success: bool
    action: Optional[str]
    error: Optional[str]
    attempts: int
    next_node: Optional[str]


class RunError(BaseModel):
    node_id: str
    message: str


class WorkflowRunResponse(BaseModel):
    """Summary of a workflow run."""
    run_id: str
    workflow_id: str
    status: ExecutionStatus
    store: Dict[str, Any]
    logs: List[str]
    execution_log: List[ExecutionLogEntry]
    error: Optional[RunError] = None
    started_at: Optional[str]
    completed_at: Optional[str]
    duration_ms: Optional[float]
    steps: int


class RunListResponse(BaseModel):
    """Response listing runs."""
    runs: List[WorkflowRunResponse]
    total: int


# ============================================================
# Function Schemas
# ============================================================

class ParamInfo(BaseModel):
    name: str
    type: str
    required: bool
    default: Any = None
    description: str = ""


class FunctionInfo(BaseModel):
    """Information about a registered function."""
    id: str
    name: str
    description: str
    category: str
    params: List[ParamInfo]
    outputs: List[str]
    actions: List[str]
    icon: Optional[str] = None


class FunctionListResponse(BaseModel):
    """Response listing registered functions."""
    functions: List[FunctionInfo]
    total: int


class CategoryListResponse(BaseModel):
    """Registered functions grouped by category."""
    categories: Dict[str, List[FunctionInfo]]


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

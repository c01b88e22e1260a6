"""
Workflow API Routes.

Endpoints for validating and running workflow definitions and for
querying the runs they produced.
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, status
from uuid import uuid4
import logging

from tinyflow.api.schemas import (
    ErrorResponse,
    RunListResponse,
    ValidationResponse,
    WorkflowDefinition,
    WorkflowRunRequest,
    WorkflowRunResponse,
)
from tinyflow.config import settings
from tinyflow.engine.executor import Executor
from tinyflow.engine.graph import Workflow
from tinyflow.registry import function_registry
from tinyflow.storage.memory import run_storage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["Workflows"])


def build_workflow(definition: WorkflowDefinition) -> Workflow:
    """
    Build an engine Workflow from its JSON definition.

    Raises:
        HTTPException: 400 if nodes or edges are inconsistent
    """
    workflow = Workflow(
        workflow_id=definition.id,
        name=definition.name,
        description=definition.description or "",
        version=definition.version,
        envs=dict(definition.flow.envs),
    )

    try:
        for node in definition.nodes:
            runtime = node.runtime
            workflow.add_node(
                node.id,
                node.function_id,
                params=node.params,
                envs=node.envs,
                max_retries=runtime.max_retries if runtime else 1,
                retry_delay_ms=runtime.retry_delay if runtime else settings.DEFAULT_RETRY_DELAY_MS,
                label=node.label,
            )

        for edge in definition.edges:
            workflow.add_edge(edge.source, edge.target, edge.action)

        workflow.set_start_node(definition.flow.start_node_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return workflow


@router.post(
    "/validate",
    response_model=ValidationResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid workflow definition"}},
)
async def validate_workflow(definition: WorkflowDefinition) -> ValidationResponse:
    """Validate a workflow definition against the registry."""
    workflow = build_workflow(definition)
    report = workflow.validate(function_registry)
    return ValidationResponse(
        valid=report.valid,
        errors=report.errors,
        warnings=report.warnings,
    )


@router.post(
    "/run",
    response_model=WorkflowRunResponse,
    status_code=status.HTTP_200_OK,
    responses={400: {"model": ErrorResponse, "description": "Invalid workflow definition"}},
)
async def run_workflow(request: WorkflowRunRequest) -> WorkflowRunResponse:
    """
    Run a workflow definition to completion.

    Failed runs are still returned with status "failed" and the node
    and message that ended them.
    """
    workflow = build_workflow(request.workflow)
    run_id = str(uuid4())

    logger.info(f"Starting run {run_id} of workflow '{workflow.workflow_id}'")
    executor = Executor(workflow, registry=function_registry, env=request.env, run_id=run_id)
    result = await executor.run(request.initial_data)

    summary = result.to_dict()
    await run_storage.save(run_id, workflow.workflow_id, summary)
    logger.info(f"Run {run_id} finished with status {result.status.value}")

    return WorkflowRunResponse(**summary)


@router.get(
    "/runs",
    response_model=RunListResponse,
)
async def list_runs(workflow_id: Optional[str] = None) -> RunListResponse:
    """List stored runs, optionally for a single workflow."""
    if workflow_id:
        runs = await run_storage.list_by_workflow(workflow_id)
    else:
        runs = await run_storage.list_all()

    return RunListResponse(
        runs=[WorkflowRunResponse(**r.to_dict()) for r in runs],
        total=len(runs),
    )


@router.get(
    "/runs/{run_id}",
    response_model=WorkflowRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_run(run_id: str) -> WorkflowRunResponse:
    """Get the summary of a stored run."""
    stored = await run_storage.get(run_id)
    if stored is None:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")
    return WorkflowRunResponse(**stored.to_dict())

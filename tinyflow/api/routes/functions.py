"""
Function API Routes.

Discovery endpoints for the registered functions: the editor builds its
palette and each node's parameter form from these definitions.
"""

from typing import Optional
from fastapi import APIRouter, HTTPException
import logging

from tinyflow.api.schemas import (
    CategoryListResponse,
    ErrorResponse,
    FunctionInfo,
    FunctionListResponse,
)
from tinyflow.registry import FunctionDefinition, function_registry


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["Functions"])


def _to_info(definition: FunctionDefinition) -> FunctionInfo:
    return FunctionInfo(**definition.to_dict())


@router.get(
    "/",
    response_model=FunctionListResponse,
)
async def list_functions(category: Optional[str] = None) -> FunctionListResponse:
    """
    List all registered functions.

    Optionally filter by category (e.g. "Control", "Core", "Transform").
    """
    definitions = function_registry.definitions()
    if category:
        definitions = [d for d in definitions if d.category.lower() == category.lower()]

    infos = [_to_info(d) for d in definitions]
    return FunctionListResponse(functions=infos, total=len(infos))


@router.get(
    "/categories",
    response_model=CategoryListResponse,
)
async def list_categories() -> CategoryListResponse:
    """List registered functions grouped by category."""
    grouped = function_registry.by_category()
    return CategoryListResponse(
        categories={
            name: [_to_info(d) for d in definitions]
            for name, definitions in grouped.items()
        }
    )


@router.get(
    "/{function_id}",
    response_model=FunctionInfo,
    responses={404: {"model": ErrorResponse}},
)
async def get_function(function_id: str) -> FunctionInfo:
    """Get the definition of a specific function."""
    entry = function_registry.get(function_id)
    if entry is None:
        raise HTTPException(
            status_code=404,
            detail=f"Function '{function_id}' not found",
        )
    return _to_info(entry.definition)

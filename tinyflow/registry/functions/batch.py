"""
Built-in Functions: Batch Processing.

Batch, Parallel and Batch ForEach apply a processor function, resolved
from the registry at run time, to every element of an array.

- control.batch runs items one after another against the caller's
  context, so each item sees the store writes of the items before it.
- control.parallel runs all items concurrently against the caller's
  context. Store writes race; only the output order is guaranteed.
- control.batchForEach runs items concurrently in chunks of at most
  maxConcurrency, each item against its own copy of the store.

A failing item never aborts its siblings: an explicit failure or a raised
exception becomes a None slot in the output and is logged.
"""

from typing import Any, Dict, List, Optional, Tuple
import asyncio
import logging

from tinyflow.config import settings
from tinyflow.engine.context import ExecutionContext, FunctionResult
from tinyflow.registry.registry import FunctionDefinition, function_registry, param, register_function


logger = logging.getLogger(__name__)


def _processor_params(params: Dict[str, Any]) -> Dict[str, Any]:
    extra = params.get("processorParams")
    return dict(extra) if isinstance(extra, dict) else {}


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _describe(value: Any) -> str:
    text = repr(value)
    return text if len(text) <= 80 else text[:77] + "..."


async def _invoke_item(
    processor,
    params: Dict[str, Any],
    context: ExecutionContext,
    label: str,
    index: int,
) -> Tuple[Any, bool]:
    """
    Invoke the processor for one item behind a catch-all boundary.

    Returns:
        (output slot, succeeded)
    """
    try:
        result = await processor(params, context)
        if not isinstance(result, FunctionResult):
            raise TypeError(
                f"processor returned {type(result).__name__}, expected FunctionResult"
            )
        if not result.success:
            message = result.error or "Unknown error"
            context.log(f"{label}: Item {index} failed: {message}")
            logger.warning(f"{label} item {index} failed: {message}")
            return None, False
        return result.output, True
    except Exception as e:
        context.log(f"{label}: Item {index} failed: {e}")
        logger.warning(f"{label} item {index} raised: {e!r}")
        return None, False


# ============================================================
# Batch (sequential)
# ============================================================

@register_function(
    FunctionDefinition(
        id="control.batch",
        name="Batch (Sequential)",
        description="Processes an array sequentially. Use for ordered, data-intensive operations.",
        category="Control",
        params=[
            param("array", "array", description="Array to process sequentially"),
            param("processorFunction", "string", description="Function ID to call for each item"),
            param("processorParams", "object", required=False,
                  description="Additional parameters to pass to the processor"),
            param("outputKey", "string", required=False, default="batchResults",
                  description="Key to store results"),
        ],
        outputs=["outputKey"],
        icon="ListOrdered",
    )
)
async def batch(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    array = params.get("array")
    processor_id = params.get("processorFunction")
    extra = _processor_params(params)
    output_key = params.get("outputKey") or "batchResults"

    if not _is_array(array):
        context.log(f"Batch: {_describe(array)} is not an array")
        return FunctionResult.fail("Value is not an array")

    processor = function_registry.lookup(processor_id)
    if processor is None:
        return FunctionResult.fail(f'Processor "{processor_id}" not found')

    context.log(f"Batch: Processing {len(array)} items sequentially")

    results: List[Any] = []
    failures = 0

    for index, item in enumerate(array):
        merged = {**extra, "currentItem": item, "currentIndex": index}
        output, succeeded = await _invoke_item(processor, merged, context, "Batch", index)
        results.append(output)
        if not succeeded:
            failures += 1

    context.store[output_key] = results
    context.log(f"Batch: Completed {len(array) - failures}/{len(array)} items")

    return FunctionResult(output=results, success=failures == 0)


# ============================================================
# Parallel (unbounded fan-out)
# ============================================================

@register_function(
    FunctionDefinition(
        id="control.parallel",
        name="Parallel",
        description=(
            "Processes an array concurrently. Use for I/O-bound operations. "
            "All items share the node's store, so their writes are unordered."
        ),
        category="Control",
        params=[
            param("array", "array", description="Array to process in parallel"),
            param("processorFunction", "string", description="Function ID to call for each item"),
            param("processorParams", "object", required=False,
                  description="Additional parameters to pass to the processor"),
            param("outputKey", "string", required=False, default="parallelResults",
                  description="Key to store results"),
        ],
        outputs=["outputKey"],
        icon="Zap",
    )
)
async def parallel(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    array = params.get("array")
    processor_id = params.get("processorFunction")
    extra = _processor_params(params)
    output_key = params.get("outputKey") or "parallelResults"

    if not _is_array(array):
        context.log(f"Parallel: {_describe(array)} is not an array")
        return FunctionResult.fail("Value is not an array")

    processor = function_registry.lookup(processor_id)
    if processor is None:
        return FunctionResult.fail(f'Processor "{processor_id}" not found')

    context.log(f"Parallel: Processing {len(array)} items concurrently")

    # gather keeps input order regardless of completion order
    outcomes = await asyncio.gather(*(
        _invoke_item(
            processor,
            {**extra, "currentItem": item, "currentIndex": index},
            context,
            "Parallel",
            index,
        )
        for index, item in enumerate(array)
    ))

    results = [output for output, _ in outcomes]
    failures = sum(1 for _, succeeded in outcomes if not succeeded)

    context.store[output_key] = results
    context.log(f"Parallel: Completed {len(array) - failures}/{len(array)} items")

    return FunctionResult(output=results, success=failures == 0)


# ============================================================
# Batch ForEach (bounded concurrency, isolated items)
# ============================================================

def _chunk_size(value: Optional[Any]) -> int:
    if value is None:
        return settings.DEFAULT_MAX_CONCURRENCY
    try:
        size = int(value)
    except (TypeError, ValueError):
        return settings.DEFAULT_MAX_CONCURRENCY
    return max(1, size)


@register_function(
    FunctionDefinition(
        id="control.batchForEach",
        name="Batch ForEach",
        description=(
            "Processes an array in concurrent chunks of at most maxConcurrency items. "
            "Each item runs against its own copy of the store."
        ),
        category="Control",
        params=[
            param("array", "array", description="Array to process in parallel"),
            param("processorFunction", "string", description="Function ID to call for each item"),
            param("processorParams", "object", required=False,
                  description="Additional parameters to pass to the processor function"),
            param("outputKey", "string", required=False, default="batchResults",
                  description="Key to store processing results"),
            param("maxConcurrency", "number", required=False, default=settings.DEFAULT_MAX_CONCURRENCY,
                  description="Maximum number of items to process concurrently"),
        ],
        outputs=["outputKey"],
        icon="Zap",
    )
)
async def batch_for_each(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    array = params.get("array")
    processor_id = params.get("processorFunction")
    extra = _processor_params(params)
    output_key = params.get("outputKey") or "batchResults"
    max_concurrency = _chunk_size(params.get("maxConcurrency"))

    if not _is_array(array):
        context.log(f"BatchForEach: {_describe(array)} is not an array")
        return FunctionResult.fail("Value is not an array")

    # Empty input short-circuits before the processor is resolved
    if len(array) == 0:
        context.log("BatchForEach: Empty array, nothing to process")
        context.store[output_key] = []
        return FunctionResult.ok([])

    processor = function_registry.lookup(processor_id)
    if processor is None:
        return FunctionResult.fail(f'Processor function "{processor_id}" is not registered')

    context.log(
        f"BatchForEach: Processing {len(array)} items with max concurrency {max_concurrency}"
    )

    results: List[Any] = []
    chunks = [array[i:i + max_concurrency] for i in range(0, len(array), max_concurrency)]

    for chunk in chunks:
        offset = len(results)
        tasks = []
        for position, item in enumerate(chunk):
            index = offset + position
            item_context = context.isolated(
                index, seed={"currentItem": item, "currentIndex": index}
            )
            merged = {**extra, "currentItem": item, "currentIndex": index}
            tasks.append(_invoke_item(processor, merged, item_context, "BatchForEach", index))

        outcomes = await asyncio.gather(*tasks)
        results.extend(output for output, _ in outcomes)

    context.store[output_key] = results

    # A successful item whose output is None counts as a failure here
    success_count = sum(1 for r in results if r is not None)
    context.log(f"BatchForEach: Completed {success_count}/{len(array)} items successfully")

    return FunctionResult(output=results, success=success_count == len(array))

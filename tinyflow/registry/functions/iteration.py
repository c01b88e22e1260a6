"""
Built-in Functions: ForEach iteration.

ForEach keeps no memory between invocations. The runtime calls it again
through a loop edge, and it rebuilds its position from the index stored
under indexKey. ForEach Advance, placed after the per-item nodes, moves
the index forward and collects the item's result.

    forEach --next--> (process item) --> forEachAdvance --> forEach
    forEach --complete--> (continue with the collected results)
"""

from typing import Any, Dict, List

from tinyflow.engine.context import ExecutionContext, FunctionResult
from tinyflow.registry.registry import FunctionDefinition, param, register_function


def _read_index(context: ExecutionContext, index_key: str) -> int:
    """Stored loop index; missing means 0 and negative values clamp to 0."""
    value = context.store.get(index_key)
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError(f'Index "{index_key}" is not a number: {value!r}')
    try:
        index = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f'Index "{index_key}" is not a number: {value!r}')
    return max(0, index)


@register_function(
    FunctionDefinition(
        id="control.forEach",
        name="ForEach",
        description=(
            "Iterates over an array, setting current item and index for each iteration. "
            "Use with loop edges to process each item."
        ),
        category="Control",
        params=[
            param("array", "array", description="Array to iterate over"),
            param("itemKey", "string", required=False, default="currentItem",
                  description="Key to store current item"),
            param("indexKey", "string", required=False, default="currentIndex",
                  description="Key to store current index"),
            param("outputKey", "string", required=False, default="forEachResults",
                  description="Key to store collected results"),
        ],
        outputs=["itemKey", "indexKey", "outputKey"],
        actions=["next", "complete"],
        icon="Repeat",
    )
)
async def for_each(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    array = params.get("array")
    item_key = params.get("itemKey") or "currentItem"
    index_key = params.get("indexKey") or "currentIndex"
    output_key = params.get("outputKey") or "forEachResults"

    if not isinstance(array, (list, tuple)):
        context.log(f"ForEach: {array!r} is not an array")
        return FunctionResult.fail("Value is not an array")

    try:
        current_index = _read_index(context, index_key)
    except ValueError as e:
        return FunctionResult.fail(str(e))

    if current_index >= len(array):
        results = context.store.get(output_key)
        if results is None:
            results = []
        context.log(f"ForEach: Completed iteration over {len(array)} items")

        # Reset so the same loop can run again
        context.store[index_key] = 0

        return FunctionResult.ok(results, action="complete")

    current_item = array[current_index]
    context.store[item_key] = current_item
    context.store[index_key] = current_index

    context.log(f"ForEach: Processing item {current_index + 1}/{len(array)}")
    return FunctionResult.ok(current_item, action="next")


@register_function(
    FunctionDefinition(
        id="control.forEachAdvance",
        name="ForEach Advance",
        description="Advances the forEach iterator to the next item. Call after processing each item.",
        category="Control",
        params=[
            param("indexKey", "string", required=False, default="currentIndex",
                  description="Key containing current index"),
            param("resultKey", "string", required=False,
                  description="Key containing result from current iteration"),
            param("outputKey", "string", required=False, default="forEachResults",
                  description="Key to accumulate results"),
        ],
        outputs=["indexKey", "outputKey"],
        icon="ArrowRight",
    )
)
async def for_each_advance(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    index_key = params.get("indexKey") or "currentIndex"
    result_key = params.get("resultKey")
    output_key = params.get("outputKey") or "forEachResults"

    try:
        current_index = _read_index(context, index_key) + 1
    except ValueError as e:
        return FunctionResult.fail(str(e))

    context.store[index_key] = current_index

    if result_key:
        results: List[Any] = list(context.store.get(output_key) or [])
        results.append(context.store.get(result_key))
        context.store[output_key] = results

    context.log(f"ForEach: Advanced to index {current_index}")
    return FunctionResult.ok(current_index)

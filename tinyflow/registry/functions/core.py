"""
Built-in Functions: Core.

Start/end markers and small store utilities.
"""

from typing import Any, Dict, Optional
import asyncio
import json

from tinyflow.engine.context import ExecutionContext, FunctionResult
from tinyflow.registry.registry import FunctionDefinition, param, register_function


def _dumps(value: Any, indent: Optional[int] = None) -> str:
    return json.dumps(value, indent=indent, default=str)


@register_function(
    FunctionDefinition(
        id="core.start",
        name="Start",
        description="Entry point for the workflow. Passes through input data.",
        category="Core",
        params=[
            param("input", "object", required=False, default={}, description="Initial input data"),
        ],
        outputs=["input"],
        icon="Play",
    )
)
async def start(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    data = params.get("input")
    if data is None:
        data = {}
    context.store["input"] = data
    context.log(f"Start node initialized with: {_dumps(data)}")
    return FunctionResult.ok(data)


@register_function(
    FunctionDefinition(
        id="core.end",
        name="End",
        description="Terminal node for the workflow. Collects final output.",
        category="Core",
        params=[
            param("outputKey", "string", required=False, default="result",
                  description="Key to read from store as final output"),
        ],
        outputs=["result"],
        icon="Square",
    )
)
async def end(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    output_key = params.get("outputKey") or "result"
    result = context.store.get(output_key)
    context.log(f"Workflow complete. Result: {_dumps(result)}")
    return FunctionResult.ok(result)


@register_function(
    FunctionDefinition(
        id="core.log",
        name="Log",
        description="Logs a value from the store for debugging.",
        category="Core",
        params=[
            param("key", "string", description="Key to read and log"),
            param("message", "string", required=False, description="Optional prefix message"),
        ],
        icon="MessageSquare",
    )
)
async def log(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    key = params.get("key")
    message = params.get("message")
    value = context.store.get(key)
    prefix = f"{message}: " if message else ""
    context.log(f"{prefix}{key} = {_dumps(value, indent=2)}")
    return FunctionResult.ok(value)


@register_function(
    FunctionDefinition(
        id="core.setValue",
        name="Set Value",
        description="Sets a static value in the store.",
        category="Core",
        params=[
            param("key", "string", description="Key to set in store"),
            param("value", "object", description="Value to set"),
        ],
        outputs=["key"],
        icon="PenLine",
    )
)
async def set_value(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    key = params.get("key")
    if not key:
        return FunctionResult.fail("Missing key")
    value = params.get("value")
    context.store[key] = value
    context.log(f'Set "{key}" = {_dumps(value)}')
    return FunctionResult.ok(value)


@register_function(
    FunctionDefinition(
        id="core.passthrough",
        name="Pass Through",
        description="Passes data from one key to another without modification.",
        category="Core",
        params=[
            param("fromKey", "string", description="Source key in store"),
            param("toKey", "string", description="Destination key in store"),
        ],
        outputs=["toKey"],
        icon="ArrowRight",
    )
)
async def passthrough(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    from_key = params.get("fromKey")
    to_key = params.get("toKey")
    value = context.store.get(from_key)
    context.store[to_key] = value
    context.log(f'Passed "{from_key}" -> "{to_key}"')
    return FunctionResult.ok(value)


@register_function(
    FunctionDefinition(
        id="core.delay",
        name="Delay",
        description="Pauses execution for a specified duration.",
        category="Core",
        params=[
            param("ms", "number", description="Delay in milliseconds"),
        ],
        icon="Clock",
    )
)
async def delay(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    try:
        ms = float(params.get("ms") or 0)
    except (TypeError, ValueError):
        return FunctionResult.fail(f"Invalid delay: {params.get('ms')!r}")
    context.log(f"Delaying for {ms:g}ms")
    await asyncio.sleep(max(0.0, ms) / 1000)
    return FunctionResult.ok(None)

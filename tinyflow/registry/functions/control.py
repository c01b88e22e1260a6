"""
Built-in Functions: Control Flow.

Branching and counting functions. Each one reads the store and emits an
action for the runtime to route on; none of them fails on its own
comparison result.
"""

from typing import Any, Dict
import json
import math

from tinyflow.engine.context import ExecutionContext, FunctionResult
from tinyflow.registry.registry import FunctionDefinition, param, register_function


def _to_number(value: Any) -> float:
    """Coerce to float; missing values and values that cannot be coerced become NaN."""
    if isinstance(value, bool):
        return float(value)
    if value is None:
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _to_count(value: Any):
    """Numeric counter operand; numeric strings are accepted."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    number = _to_number(value)
    if math.isnan(number) or isinstance(value, bool):
        raise ValueError(f"{value!r} is not numeric")
    return int(number) if number.is_integer() else number


def stringify(value: Any) -> str:
    """Render a store value the way it would appear as a JSON object key."""
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    try:
        return json.dumps(value, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return str(value)


OPERATORS = {
    "eq": lambda left, right: left == right,
    "ne": lambda left, right: left != right,
    "gt": lambda left, right: _to_number(left) > _to_number(right),
    "lt": lambda left, right: _to_number(left) < _to_number(right),
    "gte": lambda left, right: _to_number(left) >= _to_number(right),
    "lte": lambda left, right: _to_number(left) <= _to_number(right),
    "truthy": lambda left, _: bool(left),
    "falsy": lambda left, _: not left,
}


# ============================================================
# Condition
# ============================================================

@register_function(
    FunctionDefinition(
        id="control.condition",
        name="Condition",
        description="Evaluates a condition and returns success or error action.",
        category="Control",
        params=[
            param("leftKey", "string", description="Key for left side value"),
            param("operator", "string",
                  description="Comparison operator (eq, ne, gt, lt, gte, lte, truthy, falsy)"),
            param("rightValue", "object", required=False,
                  description="Right side value (not needed for truthy/falsy)"),
        ],
        actions=["success", "error"],
        icon="GitFork",
    )
)
async def condition(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    left_key = params.get("leftKey")
    operator = params.get("operator")
    right_value = params.get("rightValue")
    left_value = context.store.get(left_key)

    compare = OPERATORS.get(operator)
    result = bool(compare(left_value, right_value)) if compare else False

    context.log(f"Condition: {left_key} {operator} {right_value!r} = {result}")
    return FunctionResult.ok(result, action="success" if result else "error")


# ============================================================
# Switch
# ============================================================

@register_function(
    FunctionDefinition(
        id="control.switch",
        name="Switch",
        description="Routes to different paths based on a value.",
        category="Control",
        params=[
            param("key", "string", description="Key to read value from"),
            param("cases", "object", description="Object mapping values to action names"),
            param("default", "string", required=False, default="default",
                  description="Action if no case matches"),
        ],
        icon="Route",
    )
)
async def switch(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    key = params.get("key")
    cases = params.get("cases") or {}
    default_action = params.get("default")
    if default_action is None:
        default_action = "default"

    value = stringify(context.store.get(key))
    action = cases.get(value)
    if action is None:
        action = default_action

    context.log(f'Switch on "{key}" = "{value}" -> action: {action}')
    return FunctionResult.ok(value, action=action)


# ============================================================
# Counter
# ============================================================

@register_function(
    FunctionDefinition(
        id="control.counter",
        name="Counter",
        description="Maintains a counter, useful for loops.",
        category="Control",
        params=[
            param("counterKey", "string", description="Key to store counter"),
            param("operation", "string", description="Operation: init, increment, decrement"),
            param("initialValue", "number", required=False, default=0,
                  description="Initial value for init operation"),
            param("step", "number", required=False, default=1,
                  description="Step value for increment/decrement"),
        ],
        outputs=["counterKey"],
        icon="Hash",
    )
)
async def counter(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    counter_key = params.get("counterKey")
    operation = params.get("operation")
    initial_value = params.get("initialValue")
    step = params.get("step")
    if initial_value is None:
        initial_value = 0
    if step is None:
        step = 1

    value = context.store.get(counter_key)
    if value is None:
        value = 0

    try:
        if operation == "init":
            value = _to_count(initial_value)
        elif operation == "increment":
            value = _to_count(value) + _to_count(step)
        elif operation == "decrement":
            value = _to_count(value) - _to_count(step)
    except ValueError as e:
        return FunctionResult.fail(f'Counter "{counter_key}": {e}')

    context.store[counter_key] = value
    context.log(f'Counter "{counter_key}" = {value}')
    return FunctionResult.ok(value)


# ============================================================
# Loop Check
# ============================================================

@register_function(
    FunctionDefinition(
        id="control.loopCheck",
        name="Loop Check",
        description="Checks if loop should continue based on counter and limit.",
        category="Control",
        params=[
            param("counterKey", "string", description="Key containing counter value"),
            param("limit", "number", description="Maximum iterations"),
        ],
        actions=["success", "default"],
        icon="Repeat",
    )
)
async def loop_check(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    counter_key = params.get("counterKey")
    limit = params.get("limit")
    value = context.store.get(counter_key)
    if value is None:
        value = 0

    should_continue = _to_number(value) < _to_number(limit)
    context.log(f"Loop check: {value} < {limit} = {should_continue}")
    return FunctionResult.ok(should_continue, action="success" if should_continue else "default")


# ============================================================
# Error Handler
# ============================================================

@register_function(
    FunctionDefinition(
        id="control.errorHandler",
        name="Error Handler",
        description="Catches and handles errors, optionally continuing flow.",
        category="Control",
        params=[
            param("errorKey", "string", required=False, default="lastError",
                  description="Key where error info is stored"),
            param("fallbackValue", "object", required=False,
                  description="Value to set if error occurred"),
            param("outputKey", "string", required=False,
                  description="Key to store fallback value"),
        ],
        outputs=["outputKey"],
        icon="ShieldAlert",
    )
)
async def error_handler(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    error_key = params.get("errorKey") or "lastError"
    fallback_value = params.get("fallbackValue")
    output_key = params.get("outputKey")

    error = context.store.get(error_key)
    if error:
        context.log(f"Error caught: {stringify(error)}")
        if output_key and fallback_value is not None:
            context.store[output_key] = fallback_value

    return FunctionResult.ok(error if error else None)

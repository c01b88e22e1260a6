"""
Built-in Functions: Transform.

Pure data transforms over store values. transform.double reads its input
from the currentItem parameter, which makes it usable as a processor for
the batch functions.
"""

from typing import Any, Dict, List, Optional
import json
import re

from tinyflow.engine.context import ExecutionContext, FunctionResult
from tinyflow.registry.registry import FunctionDefinition, param, register_function


_INDEX_PATTERN = re.compile(r"\[(\d+)\]")
_PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+(?:\.\w+)*)\}\}")

_MISSING = object()


def resolve_path(source: Any, path: str) -> Any:
    """
    Resolve a dot-notation path such as "data.items[0].name".

    Returns None when any segment is missing.
    """
    parts = _INDEX_PATTERN.sub(r".\1", path).split(".")
    value = source
    for part in parts:
        if value is None:
            break
        if isinstance(value, dict):
            value = value.get(part)
        elif isinstance(value, (list, tuple)) and part.isdigit():
            index = int(part)
            value = value[index] if index < len(value) else None
        else:
            value = getattr(value, part, None)
    return value


@register_function(
    FunctionDefinition(
        id="transform.double",
        name="Double Number",
        description="Doubles a number value.",
        category="Transform",
        params=[
            param("currentItem", "number", description="Number to double"),
        ],
        icon="Calculator",
    )
)
async def double(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    item = params.get("currentItem")
    if isinstance(item, bool) or not isinstance(item, (int, float)):
        return FunctionResult.fail(f"Cannot double non-numeric value {item!r}")

    result = item * 2
    context.log(f"Doubled {item} -> {result}")
    return FunctionResult.ok(result)


def _matches(item_value: Any, operator: str, compare_value: Any) -> bool:
    try:
        if operator == "eq":
            return item_value == compare_value
        if operator == "ne":
            return item_value != compare_value
        if operator == "gt":
            return item_value > compare_value
        if operator == "lt":
            return item_value < compare_value
        if operator == "gte":
            return item_value >= compare_value
        if operator == "lte":
            return item_value <= compare_value
        if operator == "contains":
            return str(compare_value) in str(item_value)
    except TypeError:
        return False
    return True


@register_function(
    FunctionDefinition(
        id="transform.filter",
        name="Filter Array",
        description="Filters an array based on a simple condition.",
        category="Transform",
        params=[
            param("inputKey", "string", description="Key containing array"),
            param("field", "string", description="Field to check on each item"),
            param("operator", "string",
                  description="Comparison operator (eq, ne, gt, lt, gte, lte, contains)"),
            param("value", "object", description="Value to compare against"),
            param("outputKey", "string", description="Key to store filtered array"),
        ],
        outputs=["outputKey"],
        icon="Filter",
    )
)
async def filter_array(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    input_key = params.get("inputKey")
    field = params.get("field")
    operator = params.get("operator")
    compare_value = params.get("value")
    output_key = params.get("outputKey")

    array = context.store.get(input_key)
    if not isinstance(array, list):
        return FunctionResult.fail(f"{input_key} is not an array", output=[])

    filtered = [
        item for item in array
        if isinstance(item, dict) and _matches(item.get(field), operator, compare_value)
    ]

    context.store[output_key] = filtered
    context.log(f"Filtered {len(array)} -> {len(filtered)} items")
    return FunctionResult.ok(filtered)


@register_function(
    FunctionDefinition(
        id="transform.map",
        name="Map",
        description="Extracts a nested value using a dot-notation path.",
        category="Transform",
        params=[
            param("inputKey", "string", description="Key containing source object"),
            param("path", "string", description='Dot-notation path (e.g., "data.items[0].name")'),
            param("outputKey", "string", description="Key to store extracted value"),
        ],
        outputs=["outputKey"],
        icon="GitBranch",
    )
)
async def map_value(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    input_key = params.get("inputKey")
    path = params.get("path") or ""
    output_key = params.get("outputKey")

    value = resolve_path(context.store.get(input_key), path)

    context.store[output_key] = value
    context.log(f'Mapped "{input_key}.{path}" to "{output_key}"')
    return FunctionResult.ok(value)


@register_function(
    FunctionDefinition(
        id="transform.merge",
        name="Merge",
        description="Merges multiple objects into one.",
        category="Transform",
        params=[
            param("keys", "array", description="Array of keys to merge"),
            param("outputKey", "string", description="Key to store merged object"),
        ],
        outputs=["outputKey"],
        icon="Merge",
    )
)
async def merge(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    keys: List[str] = params.get("keys") or []
    output_key = params.get("outputKey")

    merged: Dict[str, Any] = {}
    for key in keys:
        value = context.store.get(key)
        if isinstance(value, dict):
            merged.update(value)

    context.store[output_key] = merged
    context.log(f'Merged [{", ".join(keys)}] into "{output_key}"')
    return FunctionResult.ok(merged)


def _lookup_placeholder(store: Dict[str, Any], path: str) -> Optional[Any]:
    value = store.get(path, _MISSING)
    if value is _MISSING and "." in path:
        root, rest = path.split(".", 1)
        value = resolve_path(store.get(root), rest)
        return value
    return None if value is _MISSING else value


@register_function(
    FunctionDefinition(
        id="transform.template",
        name="Template",
        description="Interpolates values into a template string using {{key}} syntax.",
        category="Transform",
        params=[
            param("template", "string", description="Template string with {{key}} placeholders"),
            param("outputKey", "string", description="Key to store result"),
        ],
        outputs=["outputKey"],
        icon="FileText",
    )
)
async def template(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    text = params.get("template") or ""
    output_key = params.get("outputKey")

    def replace(match: re.Match) -> str:
        path = match.group(1)
        value = _lookup_placeholder(context.store, path)
        # Unresolved placeholders are left in place
        return match.group(0) if value is None else str(value)

    result = _PLACEHOLDER_PATTERN.sub(replace, text)

    context.store[output_key] = result
    context.log(f"Template result: {result}")
    return FunctionResult.ok(result)


@register_function(
    FunctionDefinition(
        id="transform.jsonParse",
        name="JSON Parse",
        description="Parses a JSON string into an object.",
        category="Transform",
        params=[
            param("inputKey", "string", description="Key containing JSON string"),
            param("outputKey", "string", description="Key to store parsed object"),
        ],
        outputs=["outputKey"],
        icon="FileJson",
    )
)
async def json_parse(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    input_key = params.get("inputKey")
    output_key = params.get("outputKey")
    raw = context.store.get(input_key)

    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as e:
        return FunctionResult.fail(f"JSON parse failed: {e}")

    context.store[output_key] = parsed
    context.log(f'Parsed JSON from "{input_key}" to "{output_key}"')
    return FunctionResult.ok(parsed)


@register_function(
    FunctionDefinition(
        id="transform.jsonStringify",
        name="JSON Stringify",
        description="Converts an object to a JSON string.",
        category="Transform",
        params=[
            param("inputKey", "string", description="Key containing object"),
            param("outputKey", "string", description="Key to store JSON string"),
            param("pretty", "boolean", required=False, default=False, description="Whether to pretty-print"),
        ],
        outputs=["outputKey"],
        icon="FileJson",
    )
)
async def json_stringify(params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
    input_key = params.get("inputKey")
    output_key = params.get("outputKey")
    pretty = bool(params.get("pretty"))
    value = context.store.get(input_key)

    try:
        text = json.dumps(value, indent=2 if pretty else None)
    except (TypeError, ValueError) as e:
        return FunctionResult.fail(f"JSON stringify failed: {e}")

    context.store[output_key] = text
    context.log(f'Stringified "{input_key}" to "{output_key}"')
    return FunctionResult.ok(text)

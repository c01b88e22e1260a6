"""
Registry package - Function registry and built-in functions.
"""

from tinyflow.registry.registry import (
    FunctionDefinition,
    FunctionRegistry,
    ParamSpec,
    RegisteredFunction,
    function_registry,
    get_function,
    param,
    register_function,
)

# Register the built-in functions
import tinyflow.registry.functions  # noqa: F401,E402

__all__ = [
    "FunctionDefinition",
    "FunctionRegistry",
    "ParamSpec",
    "RegisteredFunction",
    "function_registry",
    "get_function",
    "param",
    "register_function",
]

"""
Function Registry for the TinyFlow engine.

The registry is the process-wide table of function id -> (definition,
executable). The graph runtime resolves each node's function through it,
and control-flow functions use it to dispatch to processor functions
chosen at run time.
"""

from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Set, Tuple, Union
from dataclasses import dataclass
import asyncio
import logging

from tinyflow.engine.context import ExecutionContext, FunctionResult


logger = logging.getLogger(__name__)

PARAM_TYPES = ("string", "number", "boolean", "object", "array")

Executable = Callable[
    [Dict[str, Any], ExecutionContext],
    Union[FunctionResult, Awaitable[FunctionResult]],
]


@dataclass(frozen=True)
class ParamSpec:
    """Declared input parameter of a function."""
    name: str
    type: str
    required: bool = True
    default: Any = None
    description: str = ""

    def __post_init__(self):
        if self.type not in PARAM_TYPES:
            raise ValueError(
                f"Parameter '{self.name}' has unknown type '{self.type}'. "
                f"Expected one of {list(PARAM_TYPES)}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "required": self.required,
            "default": self.default,
            "description": self.description,
        }


def param(
    name: str,
    type: str,
    required: bool = True,
    default: Any = None,
    description: str = "",
) -> ParamSpec:
    """Shorthand for building a ParamSpec."""
    return ParamSpec(
        name=name,
        type=type,
        required=required,
        default=default,
        description=description,
    )


@dataclass(frozen=True)
class FunctionDefinition:
    """
    Static metadata describing a registered function.

    Attributes:
        id: Globally unique function identifier (e.g. "control.batch")
        name: Display name
        description: Human-readable description
        category: Category for grouping in a palette
        params: Ordered parameter specs
        outputs: Store keys (or parameter names holding keys) written
        actions: Actions the function may emit besides success/error
        icon: Icon hint for the UI
    """
    id: str
    name: str
    description: str = ""
    category: str = "General"
    params: Tuple[ParamSpec, ...] = ()
    outputs: Tuple[str, ...] = ()
    actions: Tuple[str, ...] = ()
    icon: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Function id cannot be empty")
        # Accept lists at construction, keep tuples afterwards
        object.__setattr__(self, "params", tuple(self.params))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        object.__setattr__(self, "actions", tuple(self.actions))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "params": [p.to_dict() for p in self.params],
            "outputs": list(self.outputs),
            "actions": list(self.actions),
            "icon": self.icon,
        }


@dataclass
class RegisteredFunction:
    """A definition paired with its executable."""
    definition: FunctionDefinition
    executable: Executable

    def __post_init__(self):
        if not callable(self.executable):
            raise ValueError(
                f"Executable for function '{self.definition.id}' must be callable"
            )

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def is_async(self) -> bool:
        """Check if the executable is an async function."""
        return asyncio.iscoroutinefunction(self.executable)

    async def execute(self, params: Dict[str, Any], context: ExecutionContext) -> FunctionResult:
        """
        Invoke the executable.

        Sync executables run inline on the event loop so that every
        function observes the same single-threaded store.
        """
        if self.is_async:
            return await self.executable(params, context)
        return self.executable(params, context)


class FunctionRegistry:
    """
    Registry of executable functions.

    Registration happens once at startup (importing
    tinyflow.registry.functions registers the built-ins); afterwards the
    table is only read, so no locking is used.

    Registering an id that already exists replaces the previous entry and
    logs a warning.

    Usage:
        registry = FunctionRegistry()

        @registry.register_function(FunctionDefinition(id="demo.echo", name="Echo"))
        async def echo(params, context):
            return FunctionResult.ok(params.get("value"))

        fn = registry.lookup("demo.echo")
        result = await fn({"value": 1}, context)
    """

    def __init__(self):
        self._functions: Dict[str, RegisteredFunction] = {}

    def register(self, definition: FunctionDefinition, executable: Executable) -> RegisteredFunction:
        """
        Register a function under definition.id.

        Args:
            definition: Function metadata
            executable: Callable taking (params, context)

        Returns:
            The registered entry
        """
        if definition.id in self._functions:
            logger.warning(f"Function '{definition.id}' is being overwritten")

        entry = RegisteredFunction(definition=definition, executable=executable)
        self._functions[definition.id] = entry
        logger.debug(f"Registered function: {definition.id}")
        return entry

    def register_function(self, definition: FunctionDefinition) -> Callable:
        """Decorator form of register()."""
        def decorator(func: Executable) -> Executable:
            self.register(definition, func)
            return func

        return decorator

    def lookup(self, function_id: str) -> Optional[Callable[..., Awaitable[FunctionResult]]]:
        """
        Get the executable for a function id without invoking it.

        Returns an awaitable callable (params, context) -> FunctionResult,
        or None if the id is not registered.
        """
        entry = self._functions.get(function_id)
        if entry is None:
            return None
        return entry.execute

    def get(self, function_id: str) -> Optional[RegisteredFunction]:
        """Get a registered entry by id."""
        return self._functions.get(function_id)

    def unregister(self, function_id: str) -> bool:
        """Remove a function from the registry."""
        if function_id in self._functions:
            del self._functions[function_id]
            return True
        return False

    def has(self, function_id: str) -> bool:
        return function_id in self._functions

    def ids(self) -> Set[str]:
        return set(self._functions.keys())

    def definitions(self) -> List[FunctionDefinition]:
        """All registered definitions, in registration order."""
        return [entry.definition for entry in self._functions.values()]

    def by_category(self) -> Dict[str, List[FunctionDefinition]]:
        """Group definitions by category."""
        grouped: Dict[str, List[FunctionDefinition]] = {}
        for entry in self._functions.values():
            grouped.setdefault(entry.definition.category, []).append(entry.definition)
        return grouped

    def clear(self) -> None:
        self._functions.clear()

    def __contains__(self, function_id: str) -> bool:
        return self.has(function_id)

    def __len__(self) -> int:
        return len(self._functions)

    def __iter__(self) -> Iterator[RegisteredFunction]:
        return iter(self._functions.values())


# Global function registry instance
function_registry = FunctionRegistry()


def register_function(definition: FunctionDefinition) -> Callable:
    """
    Convenience decorator to register a function in the global registry.

    Usage:
        @register_function(FunctionDefinition(id="core.noop", name="No-op"))
        async def noop(params, context):
            return FunctionResult.ok()
    """
    return function_registry.register_function(definition)


def get_function(function_id: str) -> Optional[RegisteredFunction]:
    """Get a function from the global registry."""
    return function_registry.get(function_id)

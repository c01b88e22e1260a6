"""
Shared fixtures for the TinyFlow tests.
"""

import uuid

import pytest

from tinyflow.engine.context import ExecutionContext
from tinyflow.registry import FunctionDefinition, function_registry


@pytest.fixture
def logs():
    """Collected context log lines."""
    return []


@pytest.fixture
def context(logs):
    """A fresh context over an empty store that records its log lines."""
    return ExecutionContext(node_id="test-node", store={}, log=logs.append)


@pytest.fixture
def register():
    """
    Register throwaway functions in the global registry.

    Each call returns the generated function id; everything registered is
    removed again after the test.
    """
    registered = []

    def _register(executable, function_id=None, **definition):
        function_id = function_id or f"test.{uuid.uuid4().hex[:8]}"
        function_registry.register(
            FunctionDefinition(id=function_id, name=function_id, category="Test", **definition),
            executable,
        )
        registered.append(function_id)
        return function_id

    yield _register

    for function_id in registered:
        function_registry.unregister(function_id)

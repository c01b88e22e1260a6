"""
Tests for the function registry and the context/result protocol.
"""

import logging

import pytest

from tinyflow.engine.context import ExecutionContext, FunctionResult
from tinyflow.registry import (
    FunctionDefinition,
    FunctionRegistry,
    ParamSpec,
    RegisteredFunction,
    function_registry,
    get_function,
    param,
)


# ============================================================
# Protocol Tests
# ============================================================

class TestFunctionResult:
    """Tests for FunctionResult."""

    def test_ok(self):
        result = FunctionResult.ok([1, 2], action="next")
        assert result.success is True
        assert result.output == [1, 2]
        assert result.action == "next"
        assert result.error is None

    def test_fail(self):
        result = FunctionResult.fail("boom")
        assert result.success is False
        assert result.error == "boom"
        assert result.action is None

    def test_to_dict_omits_unset_fields(self):
        assert FunctionResult.ok(1).to_dict() == {"output": 1, "success": True}
        assert FunctionResult.fail("x").to_dict() == {
            "output": None,
            "success": False,
            "error": "x",
        }


class TestExecutionContext:
    """Tests for ExecutionContext."""

    def test_env_is_read_only(self):
        context = ExecutionContext(node_id="n", env={"TOKEN": "secret"})
        assert context.env["TOKEN"] == "secret"
        with pytest.raises(TypeError):
            context.env["TOKEN"] = "other"

    def test_store_is_shared_by_reference(self):
        store = {"a": 1}
        context = ExecutionContext(node_id="n", store=store)
        context.store["b"] = 2
        assert store == {"a": 1, "b": 2}

    def test_isolated_copies_and_seeds_store(self):
        logs = []
        parent = ExecutionContext(node_id="n", store={"base": 1}, log=logs.append)

        child = parent.isolated(3, seed={"currentItem": "x"})
        child.store["written"] = True

        assert child.store["base"] == 1
        assert child.store["currentItem"] == "x"
        assert "written" not in parent.store
        assert "currentItem" not in parent.store
        assert child.node_id == "n"

    def test_isolated_prefixes_log(self):
        logs = []
        parent = ExecutionContext(node_id="n", log=logs.append)
        parent.isolated(2).log("hello")
        assert logs == ["[Item 2] hello"]


# ============================================================
# Definition Tests
# ============================================================

class TestDefinitions:
    """Tests for ParamSpec and FunctionDefinition."""

    def test_param_shorthand(self):
        spec = param("limit", "number", required=False, default=3)
        assert spec == ParamSpec(name="limit", type="number", required=False, default=3)

    def test_param_rejects_unknown_type(self):
        with pytest.raises(ValueError, match="unknown type"):
            param("x", "integer")

    def test_definition_normalizes_sequences(self):
        definition = FunctionDefinition(
            id="demo.fn",
            name="Demo",
            params=[param("a", "string")],
            outputs=["a"],
            actions=["next"],
        )
        assert isinstance(definition.params, tuple)
        assert definition.actions == ("next",)

        data = definition.to_dict()
        assert data["id"] == "demo.fn"
        assert data["category"] == "General"
        assert data["params"][0]["name"] == "a"
        assert data["actions"] == ["next"]

    def test_definition_requires_id(self):
        with pytest.raises(ValueError):
            FunctionDefinition(id="", name="Nameless")

    def test_executable_must_be_callable(self):
        with pytest.raises(ValueError, match="must be callable"):
            RegisteredFunction(FunctionDefinition(id="demo.fn", name="Demo"), "not callable")


# ============================================================
# Registry Tests
# ============================================================

class TestFunctionRegistry:
    """Tests for FunctionRegistry."""

    @pytest.mark.asyncio
    async def test_register_and_lookup(self):
        registry = FunctionRegistry()

        async def echo(params, context):
            return FunctionResult.ok(params["value"])

        registry.register(FunctionDefinition(id="demo.echo", name="Echo"), echo)

        assert "demo.echo" in registry
        assert len(registry) == 1

        fn = registry.lookup("demo.echo")
        result = await fn({"value": 42}, ExecutionContext(node_id="n"))
        assert result.output == 42

    def test_lookup_missing_returns_none(self):
        registry = FunctionRegistry()
        assert registry.lookup("missing") is None
        assert registry.get("missing") is None

    @pytest.mark.asyncio
    async def test_sync_executable(self):
        registry = FunctionRegistry()

        def add_one(params, context):
            context.store["seen"] = True
            return FunctionResult.ok(params["value"] + 1)

        registry.register(FunctionDefinition(id="demo.sync", name="Sync"), add_one)
        assert registry.get("demo.sync").is_async is False

        context = ExecutionContext(node_id="n")
        result = await registry.lookup("demo.sync")({"value": 1}, context)
        assert result.output == 2
        assert context.store["seen"] is True

    @pytest.mark.asyncio
    async def test_duplicate_registration_overwrites(self, caplog):
        registry = FunctionRegistry()

        async def first(params, context):
            return FunctionResult.ok("first")

        async def second(params, context):
            return FunctionResult.ok("second")

        registry.register(FunctionDefinition(id="demo.dup", name="One"), first)
        with caplog.at_level(logging.WARNING):
            registry.register(FunctionDefinition(id="demo.dup", name="Two"), second)

        assert len(registry) == 1
        assert registry.get("demo.dup").definition.name == "Two"
        result = await registry.lookup("demo.dup")({}, ExecutionContext(node_id="n"))
        assert result.output == "second"
        assert "overwritten" in caplog.text

    def test_decorator_registration(self):
        registry = FunctionRegistry()

        @registry.register_function(FunctionDefinition(id="demo.deco", name="Deco"))
        async def deco(params, context):
            return FunctionResult.ok()

        assert registry.get("demo.deco").executable is deco

    def test_unregister(self):
        registry = FunctionRegistry()
        registry.register(FunctionDefinition(id="demo.x", name="X"), lambda p, c: FunctionResult.ok())

        assert registry.unregister("demo.x") is True
        assert registry.unregister("demo.x") is False
        assert registry.ids() == set()

    def test_by_category(self):
        registry = FunctionRegistry()
        noop = lambda p, c: FunctionResult.ok()
        registry.register(FunctionDefinition(id="a.one", name="One", category="A"), noop)
        registry.register(FunctionDefinition(id="a.two", name="Two", category="A"), noop)
        registry.register(FunctionDefinition(id="b.one", name="Three", category="B"), noop)

        grouped = registry.by_category()
        assert [d.id for d in grouped["A"]] == ["a.one", "a.two"]
        assert [d.id for d in grouped["B"]] == ["b.one"]


class TestBuiltinRegistration:
    """The built-in functions are registered on import."""

    @pytest.mark.parametrize("function_id", [
        "control.batch",
        "control.parallel",
        "control.batchForEach",
        "control.forEach",
        "control.forEachAdvance",
        "control.loopCheck",
        "control.counter",
        "control.switch",
        "control.condition",
        "control.errorHandler",
        "core.start",
        "core.end",
        "core.log",
        "core.setValue",
        "core.passthrough",
        "core.delay",
        "transform.double",
        "transform.filter",
        "transform.map",
        "transform.merge",
        "transform.template",
        "transform.jsonParse",
        "transform.jsonStringify",
    ])
    def test_builtin_present(self, function_id):
        assert function_registry.has(function_id)
        assert get_function(function_id).is_async

    def test_for_each_declares_loop_actions(self):
        definition = get_function("control.forEach").definition
        assert definition.actions == ("next", "complete")
        assert definition.category == "Control"

    def test_batch_for_each_params(self):
        definition = get_function("control.batchForEach").definition
        names = [p.name for p in definition.params]
        assert names == ["array", "processorFunction", "processorParams", "outputKey", "maxConcurrency"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""
Tests for the batch processing functions: Batch, Parallel and Batch ForEach.
"""

import asyncio
import logging

import pytest

from tinyflow.engine.context import FunctionResult
from tinyflow.registry import function_registry
from tinyflow.registry.functions.batch import batch, batch_for_each, parallel


class InFlight:
    """Tracks how many processor invocations overlap."""

    def __init__(self):
        self.current = 0
        self.peak = 0
        self.events = []

    async def run(self, index, delay=0.01):
        self.current += 1
        self.peak = max(self.peak, self.current)
        self.events.append(("start", index))
        await asyncio.sleep(delay)
        self.events.append(("end", index))
        self.current -= 1


# ============================================================
# Batch
# ============================================================

class TestBatch:
    """Tests for control.batch."""

    @pytest.mark.asyncio
    async def test_doubles_in_order(self, context):
        result = await batch(
            {"array": [1, 2, 3], "processorFunction": "transform.double"}, context
        )
        assert result.success is True
        assert result.output == [2, 4, 6]
        assert context.store["batchResults"] == [2, 4, 6]

    @pytest.mark.asyncio
    async def test_runs_one_item_at_a_time(self, context, register):
        tracker = InFlight()

        async def slow(params, ctx):
            await tracker.run(params["currentIndex"])
            return FunctionResult.ok(params["currentItem"])

        processor = register(slow)
        result = await batch({"array": ["a", "b", "c"], "processorFunction": processor}, context)

        assert result.output == ["a", "b", "c"]
        assert tracker.peak == 1
        assert tracker.events == [
            ("start", 0), ("end", 0),
            ("start", 1), ("end", 1),
            ("start", 2), ("end", 2),
        ]

    @pytest.mark.asyncio
    async def test_items_see_earlier_store_writes(self, context, register):
        async def count(params, ctx):
            ctx.store["count"] = ctx.store.get("count", 0) + 1
            return FunctionResult.ok(ctx.store["count"])

        processor = register(count)
        result = await batch({"array": ["x", "y", "z"], "processorFunction": processor}, context)

        assert result.output == [1, 2, 3]
        assert context.store["count"] == 3

    @pytest.mark.asyncio
    async def test_failed_item_leaves_none_slot(self, context, logs, register):
        async def picky(params, ctx):
            if params["currentItem"] == 2:
                return FunctionResult.fail("no twos")
            if params["currentItem"] == 3:
                raise RuntimeError("boom")
            return FunctionResult.ok(params["currentItem"] * 10)

        processor = register(picky)
        result = await batch(
            {"array": [1, 2, 3, 4], "processorFunction": processor, "outputKey": "out"}, context
        )

        assert result.success is False
        assert result.output == [10, None, None, 40]
        assert context.store["out"] == [10, None, None, 40]
        assert "Batch: Item 1 failed: no twos" in logs
        assert "Batch: Item 2 failed: boom" in logs

    @pytest.mark.asyncio
    async def test_processor_params_are_merged(self, context, register):
        async def scale(params, ctx):
            return FunctionResult.ok(params["currentItem"] * params["factor"])

        processor = register(scale)
        result = await batch({
            "array": [1, 2],
            "processorFunction": processor,
            "processorParams": {"factor": 5},
        }, context)

        assert result.output == [5, 10]

    @pytest.mark.asyncio
    async def test_unknown_processor(self, context):
        result = await batch({"array": [1], "processorFunction": "missing.fn"}, context)
        assert result.success is False
        assert result.error == 'Processor "missing.fn" not found'
        assert "batchResults" not in context.store

    @pytest.mark.asyncio
    async def test_empty_input_still_requires_processor(self, context):
        result = await batch({"array": [], "processorFunction": "missing.fn"}, context)
        assert result.success is False
        assert result.error == 'Processor "missing.fn" not found'
        assert "batchResults" not in context.store

    @pytest.mark.asyncio
    async def test_non_result_return_becomes_none(self, context, logs, register):
        def sloppy(params, ctx):
            if params["currentIndex"] == 1:
                return None
            return FunctionResult.ok(params["currentItem"])

        processor = register(sloppy)
        result = await batch({"array": [1, 2, 3], "processorFunction": processor}, context)

        assert result.success is False
        assert result.output == [1, None, 3]
        assert context.store["batchResults"] == [1, None, 3]
        assert any(line.startswith("Batch: Item 1 failed:") for line in logs)

    @pytest.mark.asyncio
    async def test_failed_item_logged_as_warning(self, context, register, caplog):
        async def refuses(params, ctx):
            return FunctionResult.fail("rejected")

        processor = register(refuses)
        with caplog.at_level(logging.WARNING, logger="tinyflow.registry.functions.batch"):
            await batch({"array": ["x"], "processorFunction": processor}, context)

        assert "Batch item 0 failed: rejected" in caplog.text

    @pytest.mark.asyncio
    async def test_non_array_input(self, context):
        result = await batch({"array": "nope", "processorFunction": "transform.double"}, context)
        assert result.success is False
        assert result.error == "Value is not an array"


# ============================================================
# Parallel
# ============================================================

class TestParallel:
    """Tests for control.parallel."""

    @pytest.mark.asyncio
    async def test_output_keeps_input_order(self, context, register):
        finished = []

        async def reversed_delay(params, ctx):
            index = params["currentIndex"]
            await asyncio.sleep((3 - index) * 0.02)
            finished.append(index)
            return FunctionResult.ok(params["currentItem"])

        processor = register(reversed_delay)
        result = await parallel(
            {"array": ["a", "b", "c"], "processorFunction": processor}, context
        )

        assert finished == [2, 1, 0]
        assert result.output == ["a", "b", "c"]
        assert context.store["parallelResults"] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_all_items_start_together(self, context, register):
        tracker = InFlight()

        async def slow(params, ctx):
            await tracker.run(params["currentIndex"])
            return FunctionResult.ok(True)

        processor = register(slow)
        await parallel({"array": list(range(6)), "processorFunction": processor}, context)

        assert tracker.peak == 6

    @pytest.mark.asyncio
    async def test_items_share_the_store(self, context, register):
        async def write(params, ctx):
            ctx.store[f"item{params['currentIndex']}"] = params["currentItem"]
            return FunctionResult.ok(params["currentItem"])

        processor = register(write)
        await parallel({"array": ["x", "y"], "processorFunction": processor}, context)

        assert context.store["item0"] == "x"
        assert context.store["item1"] == "y"

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_siblings(self, context, register):
        async def flaky(params, ctx):
            if params["currentIndex"] == 0:
                raise ValueError("first fails")
            return FunctionResult.ok(params["currentItem"])

        processor = register(flaky)
        result = await parallel({"array": [1, 2, 3], "processorFunction": processor}, context)

        assert result.success is False
        assert result.output == [None, 2, 3]

    @pytest.mark.asyncio
    async def test_unknown_processor(self, context):
        context.store["keep"] = 1
        result = await parallel({"array": [1], "processorFunction": "missing.fn"}, context)
        assert result.success is False
        assert result.error == 'Processor "missing.fn" not found'
        assert context.store == {"keep": 1}

    @pytest.mark.asyncio
    async def test_empty_input_still_requires_processor(self, context):
        result = await parallel({"array": [], "processorFunction": "missing.fn"}, context)
        assert result.success is False
        assert result.error == 'Processor "missing.fn" not found'
        assert "parallelResults" not in context.store

    @pytest.mark.asyncio
    async def test_non_result_return_becomes_none(self, context, register):
        def sloppy(params, ctx):
            if params["currentIndex"] == 1:
                return None
            return FunctionResult.ok(params["currentItem"])

        processor = register(sloppy)
        result = await parallel({"array": [1, 2, 3], "processorFunction": processor}, context)

        assert result.success is False
        assert result.output == [1, None, 3]
        assert context.store["parallelResults"] == [1, None, 3]


# ============================================================
# Batch ForEach
# ============================================================

class TestBatchForEach:
    """Tests for control.batchForEach."""

    @pytest.mark.asyncio
    async def test_doubles_numbers(self, context):
        result = await batch_for_each({
            "array": [1, 2, 3],
            "processorFunction": "transform.double",
            "maxConcurrency": 2,
        }, context)

        assert result.success is True
        assert result.output == [2, 4, 6]
        assert context.store["batchResults"] == [2, 4, 6]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, context, register):
        tracker = InFlight()

        async def slow(params, ctx):
            await tracker.run(params["currentIndex"])
            return FunctionResult.ok(params["currentItem"])

        processor = register(slow)
        result = await batch_for_each({
            "array": list(range(7)),
            "processorFunction": processor,
            "maxConcurrency": 3,
        }, context)

        assert result.output == list(range(7))
        assert tracker.peak == 3

        # A chunk starts only after every item of the previous chunk ended
        starts = [i for kind, i in tracker.events if kind == "start"]
        assert starts[:3] == [0, 1, 2]
        fourth_start = tracker.events.index(("start", 3))
        for index in range(3):
            assert tracker.events.index(("end", index)) < fourth_start

    @pytest.mark.asyncio
    async def test_single_slot_matches_batch(self, context, register):
        tracker = InFlight()

        async def slow_double(params, ctx):
            await tracker.run(params["currentIndex"], delay=0)
            return FunctionResult.ok(params["currentItem"] * 2)

        processor = register(slow_double)
        params = {"array": [4, 5, 6], "processorFunction": processor}

        sequential = await batch(dict(params), context)
        chunked = await batch_for_each({**params, "maxConcurrency": 1}, context)

        assert chunked.output == sequential.output == [8, 10, 12]
        assert tracker.peak == 1

    @pytest.mark.asyncio
    async def test_non_positive_concurrency_is_clamped(self, context):
        result = await batch_for_each({
            "array": [1, 2],
            "processorFunction": "transform.double",
            "maxConcurrency": 0,
        }, context)
        assert result.output == [2, 4]

    @pytest.mark.asyncio
    async def test_empty_input_skips_processor_lookup(self, context):
        result = await batch_for_each({
            "array": [],
            "processorFunction": "not.registered",
            "outputKey": "out",
        }, context)

        assert result.success is True
        assert result.output == []
        assert context.store["out"] == []

    @pytest.mark.asyncio
    async def test_items_are_isolated(self, context, register):
        async def scribble(params, ctx):
            ctx.store["scribble"] = params["currentItem"]
            return FunctionResult.ok({
                "item": ctx.store["currentItem"],
                "index": ctx.store["currentIndex"],
                "base": ctx.store["base"],
            })

        processor = register(scribble)
        context.store["base"] = "parent"
        result = await batch_for_each({
            "array": ["a", "b"],
            "processorFunction": processor,
            "maxConcurrency": 2,
        }, context)

        assert result.output == [
            {"item": "a", "index": 0, "base": "parent"},
            {"item": "b", "index": 1, "base": "parent"},
        ]
        assert "scribble" not in context.store
        assert "currentItem" not in context.store
        assert "currentIndex" not in context.store

    @pytest.mark.asyncio
    async def test_item_logs_are_prefixed(self, context, logs, register):
        async def chatty(params, ctx):
            ctx.log("working")
            return FunctionResult.ok(True)

        processor = register(chatty)
        await batch_for_each({
            "array": [1, 2, 3],
            "processorFunction": processor,
            "maxConcurrency": 2,
        }, context)

        assert "[Item 0] working" in logs
        assert "[Item 2] working" in logs

    @pytest.mark.asyncio
    async def test_unregistered_processor_leaves_store_untouched(self, context):
        context.store["keep"] = 1
        result = await batch_for_each({
            "array": [1, 2],
            "processorFunction": "not.registered",
        }, context)

        assert result.success is False
        assert result.error == 'Processor function "not.registered" is not registered'
        assert context.store == {"keep": 1}

    @pytest.mark.asyncio
    async def test_failed_items_become_none(self, context, register):
        async def odd_only(params, ctx):
            if params["currentItem"] % 2 == 0:
                raise ValueError("even")
            return FunctionResult.ok(params["currentItem"])

        processor = register(odd_only)
        result = await batch_for_each({
            "array": [1, 2, 3, 4, 5],
            "processorFunction": processor,
            "maxConcurrency": 2,
        }, context)

        assert result.success is False
        assert result.output == [1, None, 3, None, 5]

    @pytest.mark.asyncio
    async def test_non_result_return_becomes_none(self, context, register):
        def sloppy(params, ctx):
            if params["currentIndex"] == 1:
                return {"output": "not a result"}
            return FunctionResult.ok(params["currentItem"])

        processor = register(sloppy)
        result = await batch_for_each({
            "array": [1, 2, 3],
            "processorFunction": processor,
            "maxConcurrency": 2,
        }, context)

        assert result.success is False
        assert result.output == [1, None, 3]
        assert context.store["batchResults"] == [1, None, 3]

    @pytest.mark.asyncio
    async def test_none_output_counts_as_failure(self, context, register):
        async def nothing(params, ctx):
            return FunctionResult.ok(None)

        processor = register(nothing)
        result = await batch_for_each({"array": [1, 2], "processorFunction": processor}, context)

        assert result.output == [None, None]
        assert result.success is False

    @pytest.mark.asyncio
    async def test_non_array_input(self, context):
        result = await batch_for_each(
            {"array": {"a": 1}, "processorFunction": "transform.double"}, context
        )
        assert result.success is False
        assert result.error == "Value is not an array"

    @pytest.mark.asyncio
    async def test_resolved_through_registry(self, context):
        fn = function_registry.lookup("control.batchForEach")
        result = await fn({"array": [10], "processorFunction": "transform.double"}, context)
        assert result.output == [20]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

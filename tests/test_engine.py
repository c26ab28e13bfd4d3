"""
Tests for the dynamic log decision engine
"""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from dynamic_logging.config import DynamicLoggerConfig
from dynamic_logging.context import AmbientContextStore, set_ambient_context
from dynamic_logging.engine import (
    DynamicLogger,
    dynamic_log,
    get_dynamic_logger,
    init_dynamic_logger,
    shutdown_dynamic_logger,
)
from dynamic_logging.exceptions import AlreadyInitializedError, NotInitializedError
from dynamic_logging.fetchers import StaticConfigFetcher
from dynamic_logging.filtering import SamplingFilter
from dynamic_logging.models import CallState

BASIC = {"variablesToLog": ["x"], "samplingRate": 1, "prefixMessage": "P: "}


def make_logger(configs=None, sink=None, fetcher=None, **config_kwargs):
    sink = sink or MagicMock(return_value=None)
    fetcher = fetcher or StaticConfigFetcher(configs or {})
    config_kwargs.setdefault("include_timestamp", False)
    engine = DynamicLogger(
        fetcher,
        sink,
        DynamicLoggerConfig(**config_kwargs),
        ambient_store=AmbientContextStore(),
    )
    return engine, sink


def with_code(code, **overrides):
    config = {"variablesToLog": [], "samplingRate": 1, "customCode": code}
    config.update(overrides)
    return {"K": config}


class TestDynamicLog:
    @pytest.mark.asyncio
    async def test_end_to_end_line(self):
        engine, sink = make_logger({"K": BASIC})

        result = await engine.dynamic_log("K", "hello", {"x": 7})

        sink.assert_called_once_with(
            'Unique Key: [K] - Message: [P: hello] - Variable Values: {"x":"7"}'
        )
        assert result.delivered
        assert result.line == sink.call_args[0][0]
        assert result.trace == [
            CallState.START,
            CallState.CONFIG_RESOLVED,
            CallState.SAMPLED,
            CallState.CONTEXT_BUILT,
            CallState.CUSTOM_CODE_SKIPPED,
            CallState.FORMATTED,
            CallState.DELIVERED,
        ]

    @pytest.mark.asyncio
    async def test_metadata_forms(self):
        engine, sink = make_logger({"K": BASIC})

        await engine.dynamic_log("K")
        await engine.dynamic_log("K", 42)

        assert sink.call_args_list[0][0][0] == "Unique Key: [K] - Message: [P: ]"
        assert sink.call_args_list[1][0][0] == "Unique Key: [K] - Message: [P: 42]"

    @pytest.mark.asyncio
    async def test_metadata_that_cannot_be_rendered(self, caplog):
        class Unprintable:
            def __str__(self):
                raise RuntimeError("bad str")

        caplog.set_level(logging.WARNING, logger="dynamic_logging.diagnostics")
        engine, sink = make_logger({"K": BASIC}, verbose=True)

        result = await engine.dynamic_log("K", Unprintable(), {"x": 7})

        assert result.delivered
        sink.assert_called_once_with(
            'Unique Key: [K] - Message: [P: <unserializable>] - Variable Values: {"x":"7"}'
        )
        assert "Could not render message for key 'K': bad str" in caplog.text

    @pytest.mark.asyncio
    async def test_local_vars_that_are_not_a_mapping(self, caplog):
        caplog.set_level(logging.WARNING, logger="dynamic_logging.diagnostics")
        engine, sink = make_logger(
            {"K": dict(BASIC, variablesToLog=["x", "request_id"])}, verbose=True
        )
        engine.ambient_store.set({"request_id": "r1"})

        result = await engine.dynamic_log("K", "m", [1, 2])

        assert result.delivered
        sink.assert_called_once_with(
            'Unique Key: [K] - Message: [P: m] - Variable Values: {"request_id":"r1"}'
        )
        assert "Ignoring local_vars of type list for key 'K'" in caplog.text

    @pytest.mark.asyncio
    async def test_sampling_reason_is_reported(self, caplog):
        caplog.set_level(logging.INFO, logger="dynamic_logging.diagnostics")
        engine, sink = make_logger({"K": dict(BASIC, samplingRate=0.25)}, verbose=True)
        engine.sampling_filter = SamplingFilter(random_source=lambda: 0.9)

        await engine.dynamic_log("K", "m")

        skipped = [r for r in caplog.records if "due to sampling rate" in r.getMessage()]
        assert skipped[-1].ctx_reason == "random_sampling: 25.0% rate"

    @pytest.mark.asyncio
    async def test_missing_variables_are_omitted(self):
        engine, sink = make_logger({"K": BASIC})

        await engine.dynamic_log("K", "hello", {"y": 1})

        sink.assert_called_once_with("Unique Key: [K] - Message: [P: hello]")

    @pytest.mark.asyncio
    async def test_fetch_timeout_aborts_without_sink_call(self):
        async def never(key):
            await asyncio.Event().wait()

        engine, sink = make_logger(fetcher=never, fetch_timeout_ms=20)

        result = await engine.dynamic_log("K", "hello", {"x": 7})

        assert result.aborted
        assert result.reason == "no_config"
        assert result.trace == [CallState.START, CallState.ABORTED]
        sink.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetch_error_aborts(self):
        engine, sink = make_logger(fetcher=AsyncMock(side_effect=RuntimeError("down")))

        result = await engine.dynamic_log("K", "hello")

        assert result.aborted
        sink.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_configuration(self):
        engine, sink = make_logger({})

        result = await engine.dynamic_log("UNKNOWN", "hello")

        assert result.reason == "no_config"
        sink.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["", None, 42])
    async def test_invalid_key(self, key, caplog):
        caplog.set_level(logging.ERROR, logger="dynamic_logging.diagnostics")
        fetcher = AsyncMock()
        engine, sink = make_logger(fetcher=fetcher)

        result = await engine.dynamic_log(key, "hello")

        assert result.aborted
        assert result.reason == "invalid_call_key"
        fetcher.assert_not_called()
        sink.assert_not_called()
        assert "uniqueKey is required" in caplog.text

    @pytest.mark.asyncio
    async def test_malformed_config(self, caplog):
        caplog.set_level(logging.DEBUG, logger="dynamic_logging.diagnostics")
        engine, sink = make_logger({"K": {"variablesToLog": ["x"]}}, verbose=True)

        result = await engine.dynamic_log("K", "hello")

        assert result.aborted
        assert result.reason == "malformed_config"
        sink.assert_not_called()
        assert "Invalid or incomplete config for key 'K'" in caplog.text

    @pytest.mark.asyncio
    async def test_sampling_rate_zero_skips(self):
        engine, sink = make_logger({"K": dict(BASIC, samplingRate=0)})

        result = await engine.dynamic_log("K", "hello")

        assert result.skipped
        assert result.reason == "sampling_declined"
        sink.assert_not_called()

    @pytest.mark.asyncio
    async def test_sampling_declined_by_draw(self, caplog):
        caplog.set_level(logging.INFO, logger="dynamic_logging.diagnostics")
        engine, sink = make_logger({"K": dict(BASIC, samplingRate=0.5)}, verbose=True)
        engine.sampling_filter = SamplingFilter(random_source=lambda: 0.5)

        result = await engine.dynamic_log("K", "hello")

        assert result.skipped
        sink.assert_not_called()
        assert "Skipped logging for key 'K' due to sampling rate." in caplog.text

    @pytest.mark.asyncio
    async def test_ambient_context_is_merged(self):
        engine, sink = make_logger({"K": dict(BASIC, variablesToLog=["x", "request_id"])})
        engine.ambient_store.set({"request_id": "r1", "x": 2})

        await engine.dynamic_log("K", "hello", {"x": 7})

        sink.assert_called_once_with(
            'Unique Key: [K] - Message: [P: hello] - Variable Values: {"x":"7","request_id":"r1"}'
        )

    @pytest.mark.asyncio
    async def test_ambient_context_of_the_calling_task(self):
        engine, sink = make_logger({"K": dict(BASIC, variablesToLog=["request_id"])})

        async def handle(request_id):
            engine.ambient_store.set({"request_id": request_id})
            await asyncio.sleep(0)
            return await engine.dynamic_log("K", "hello")

        results = await asyncio.gather(handle("a"), handle("b"))

        assert results[0].line.endswith('{"request_id":"a"}')
        assert results[1].line.endswith('{"request_id":"b"}')


class TestCustomCode:
    @pytest.mark.asyncio
    async def test_evaluated_output(self):
        engine, sink = make_logger(with_code("a + b"))

        result = await engine.dynamic_log("K", "m", {"a": 2, "b": 3})

        assert result.line == "Unique Key: [K] - Message: [m] - Output of Custom Logging Code: [5]"
        assert CallState.CUSTOM_CODE_VALIDATED in result.trace
        assert CallState.CUSTOM_CODE_EXECUTED in result.trace

    @pytest.mark.asyncio
    async def test_method_call_on_context_value(self):
        engine, sink = make_logger(with_code("user.upper()"))
        result = await engine.dynamic_log("K", "m", {"user": "bob"})
        assert result.line.endswith("[BOB]")

    @pytest.mark.asyncio
    async def test_code_sees_ambient_values(self):
        engine, sink = make_logger(with_code("tenant.upper()"))
        engine.ambient_store.set({"tenant": "acme"})

        result = await engine.dynamic_log("K", "m", {})

        assert result.line.endswith("[ACME]")

    @pytest.mark.asyncio
    async def test_validation_violations(self):
        engine, sink = make_logger(with_code("fetchData()"))

        result = await engine.dynamic_log("K", "m", {"x": 1})

        assert result.delivered
        assert result.line == (
            "Unique Key: [K] - Message: [m] - Output of Custom Logging Code: "
            '[<ValidationViolations: [{"message":"Disallowed function call: fetchData",'
            '"location":"Line 1"}]>]'
        )
        assert CallState.CUSTOM_CODE_VALIDATED not in result.trace
        assert CallState.CUSTOM_CODE_EXECUTED not in result.trace

    @pytest.mark.asyncio
    async def test_keyword_violation(self, caplog):
        caplog.set_level(logging.WARNING, logger="dynamic_logging.diagnostics")
        engine, sink = make_logger(with_code("process.exit()"), verbose=True)

        result = await engine.dynamic_log("K", "m")

        assert "<ValidationViolations: " in result.line
        assert "Usage of 'process' object is disallowed." in result.line
        assert "CustomLoggingCode validation failed for key 'K'" in caplog.text

    @pytest.mark.asyncio
    async def test_evaluation_error(self):
        engine, sink = make_logger(with_code("a / 0"))

        result = await engine.dynamic_log("K", "m", {"a": 1})

        assert result.line.endswith("[<EvalError: division by zero>]")
        assert CallState.CUSTOM_CODE_EXECUTED in result.trace

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["", "   ", 42])
    async def test_blank_code_renders_not_applicable(self, code):
        engine, sink = make_logger(with_code(code))

        result = await engine.dynamic_log("K", "m")

        assert result.line == "Unique Key: [K] - Message: [m] - Output of Custom Logging Code: [NA]"
        assert CallState.CUSTOM_CODE_SKIPPED in result.trace


class TestDelivery:
    @pytest.mark.asyncio
    async def test_sink_failure_is_contained(self, caplog):
        caplog.set_level(logging.ERROR, logger="dynamic_logging.diagnostics")
        sink = MagicMock(side_effect=OSError("disk full"))
        engine, _ = make_logger({"K": BASIC}, sink=sink)

        result = await engine.dynamic_log("K", "hello", {"x": 7})

        assert result.state is CallState.DELIVERY_FAILED
        assert result.reason == "sink_failure"
        assert result.line.startswith("Unique Key: [K]")
        assert "Error executing user-provided log function: disk full" in caplog.text

    @pytest.mark.asyncio
    async def test_async_sink_is_awaited(self):
        sink = AsyncMock()
        engine, _ = make_logger({"K": BASIC}, sink=sink)

        await engine.dynamic_log("K", "hello", {"x": 7})

        sink.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_async_sink_rejection(self):
        sink = AsyncMock(side_effect=ConnectionError("closed"))
        engine, _ = make_logger({"K": BASIC}, sink=sink)

        result = await engine.dynamic_log("K", "hello")

        assert result.state is CallState.DELIVERY_FAILED

    @pytest.mark.asyncio
    async def test_abandoned_call_never_reaches_sink(self):
        fetcher = StaticConfigFetcher({"K": BASIC}, latency_ms=200)
        engine, sink = make_logger(fetcher=fetcher)

        task = asyncio.create_task(engine.dynamic_log("K", "hello"))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        sink.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_calls(self):
        engine, sink = make_logger({"A": BASIC, "B": dict(BASIC, prefixMessage="B: ")})

        results = await asyncio.gather(
            engine.dynamic_log("A", "one", {"x": 1}),
            engine.dynamic_log("B", "two", {"x": 2}),
        )

        assert all(result.delivered for result in results)
        assert sink.call_count == 2


class TestLifecycle:
    def test_requires_fetcher_and_sink(self):
        with pytest.raises(ValueError):
            DynamicLogger(None, MagicMock())
        with pytest.raises(ValueError):
            DynamicLogger(AsyncMock(), None)

    def test_singleton(self):
        with pytest.raises(NotInitializedError):
            get_dynamic_logger()

        engine = init_dynamic_logger(StaticConfigFetcher({}), MagicMock(return_value=None))
        assert get_dynamic_logger() is engine

        with pytest.raises(AlreadyInitializedError):
            init_dynamic_logger(StaticConfigFetcher({}), MagicMock(return_value=None))

        DynamicLogger.reset_instance()
        with pytest.raises(NotInitializedError):
            DynamicLogger.get_instance()

    def test_verbose_creation_is_logged(self, caplog):
        caplog.set_level(logging.INFO, logger="dynamic_logging.diagnostics")
        make_logger(verbose=True, fetch_timeout_ms=500)
        assert "DynamicLogger instance created. Fetch timeout: 500ms." in caplog.text

    @pytest.mark.asyncio
    async def test_module_level_dynamic_log_captures_locals(self):
        sink = MagicMock(return_value=None)
        init_dynamic_logger(
            StaticConfigFetcher({"ORDER": {"variablesToLog": ["order_id"], "samplingRate": 1}}),
            sink,
            DynamicLoggerConfig(include_timestamp=False),
        )
        order_id = "o-1"

        result = await dynamic_log("ORDER", "placed")

        assert result.delivered
        sink.assert_called_once_with(
            'Unique Key: [ORDER] - Message: [placed] - Variable Values: {"order_id":"o-1"}'
        )
        assert order_id == "o-1"

    @pytest.mark.asyncio
    async def test_module_level_dynamic_log_uses_default_store(self):
        sink = MagicMock(return_value=None)
        init_dynamic_logger(
            StaticConfigFetcher({"K": {"variablesToLog": ["tenant"], "samplingRate": 1}}),
            sink,
        )
        set_ambient_context({"tenant": "acme"})

        await dynamic_log("K", "m", {})

        sink.assert_called_once_with(
            'Unique Key: [K] - Message: [m] - Variable Values: {"tenant":"acme"}'
        )

    @pytest.mark.asyncio
    async def test_log_and_shutdown(self):
        engine, sink = make_logger({"K": BASIC})

        task = engine.log("K", "hello", {"x": 1})
        await engine.shutdown()

        assert task.done()
        assert task.result().delivered
        assert engine._pending == set()
        sink.assert_called_once()

    def test_log_without_running_loop(self):
        engine, sink = make_logger({"K": BASIC})

        assert engine.log("K", "hello", {"x": 1}) is None
        sink.assert_called_once_with(
            'Unique Key: [K] - Message: [P: hello] - Variable Values: {"x":"1"}'
        )

    @pytest.mark.asyncio
    async def test_shutdown_timeout(self, caplog):
        caplog.set_level(logging.WARNING, logger="dynamic_logging.diagnostics")
        fetcher = StaticConfigFetcher({"K": BASIC}, latency_ms=500)
        engine, sink = make_logger(fetcher=fetcher)

        task = engine.log("K", "hello")
        await engine.shutdown(timeout=0.01)

        assert "Shutdown timed out" in caplog.text
        sink.assert_not_called()
        task.cancel()

    @pytest.mark.asyncio
    async def test_shutdown_dynamic_logger(self):
        sink = MagicMock(return_value=None)
        engine = init_dynamic_logger(StaticConfigFetcher({"K": BASIC}), sink)

        engine.log("K", "bye", {"x": 0})
        await shutdown_dynamic_logger()

        sink.assert_called_once()
        with pytest.raises(NotInitializedError):
            get_dynamic_logger()


class TestMetrics:
    @pytest.mark.asyncio
    async def test_counts_by_terminal_state(self):
        engine, sink = make_logger({"K": BASIC, "OFF": dict(BASIC, samplingRate=0)})

        await engine.dynamic_log("K", "a")
        await engine.dynamic_log("K", "b")
        await engine.dynamic_log("OFF", "c")
        await engine.dynamic_log("MISSING", "d")

        metrics = engine.get_metrics()
        assert metrics["summary"] == {
            "total_calls": 4,
            "delivered": 2,
            "delivery_failed": 0,
            "skipped": 1,
            "aborted": 1,
        }
        assert metrics["delivery_rate"] == 0.5

        engine.reset_metrics()
        assert engine.get_metrics()["summary"]["total_calls"] == 0

"""
Decision engine sequencing one dynamic log call

Every call runs config resolution, sampling, context merging, optional
custom code handling, formatting and delivery, strictly in that order.
Nothing raised along the way reaches the caller: logging must never change
the control flow of the instrumented program.
"""

import asyncio
from collections import defaultdict
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Set

from .config import DynamicLoggerConfig, get_default_config
from .context import AmbientContextStore, capture_locals, default_store, merge_context
from .exceptions import (
    AlreadyInitializedError,
    InvalidCallKeyError,
    MalformedConfigError,
    NotInitializedError,
    SinkFailureError,
    ValidationFailure,
)
from .filtering import SamplingFilter, filter_variables
from .logger import LogFunction, deliver, get_diagnostics_logger
from .models import TERMINAL_STATES, CallState, DecisionResult, DynamicLogRecord, LogConfig
from .resolver import ConfigFetcher, ConfigResolver
from .sandbox import CodeValidator, ValidatorPolicy, evaluate
from .serializers import UNSERIALIZABLE, to_json

NOT_APPLICABLE = "NA"


class DynamicLogger:
    """Configuration driven log emission for instrumented call sites"""

    _instance: Optional["DynamicLogger"] = None

    def __init__(
        self,
        config_fetcher: ConfigFetcher,
        log_function: LogFunction,
        config: Optional[DynamicLoggerConfig] = None,
        *,
        ambient_store: Optional[AmbientContextStore] = None,
        sampling_filter: Optional[SamplingFilter] = None,
        validator_policy: Optional[ValidatorPolicy] = None,
    ):
        if config_fetcher is None or log_function is None:
            raise ValueError("config_fetcher and log_function are required")

        self.config = config or get_default_config()
        self.log_function = log_function
        self.diagnostics = get_diagnostics_logger(self.config)
        self.resolver = ConfigResolver(
            config_fetcher,
            timeout_ms=self.config.fetch_timeout_ms,
            verbose=self.config.verbose,
            diagnostics=self.diagnostics,
        )
        self.ambient_store = ambient_store or default_store
        self.sampling_filter = sampling_filter or SamplingFilter()
        self.validator = CodeValidator(
            validator_policy or ValidatorPolicy(allow_async=self.config.allow_async_code)
        )

        self.metrics: Dict[str, int] = defaultdict(int)
        self._pending: Set[asyncio.Task] = set()

        if self.config.verbose:
            self.diagnostics.info(
                f"DynamicLogger instance created. Fetch timeout: {self.config.fetch_timeout_ms:g}ms."
            )

    # Process wide instance

    @classmethod
    def initialize(
        cls,
        config_fetcher: ConfigFetcher,
        log_function: LogFunction,
        config: Optional[DynamicLoggerConfig] = None,
        **kwargs: Any,
    ) -> "DynamicLogger":
        """Create the process wide instance; a second call before teardown fails"""
        if cls._instance is not None:
            raise AlreadyInitializedError(
                "DynamicLogger is already initialized. Call reset_instance() first."
            )
        cls._instance = cls(config_fetcher, log_function, config, **kwargs)
        return cls._instance

    @classmethod
    def get_instance(cls) -> "DynamicLogger":
        if cls._instance is None:
            raise NotInitializedError("DynamicLogger is not initialized. Call initialize() first.")
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None

    # Logging

    def _finish(
        self,
        trace: List[CallState],
        state: CallState,
        reason: Optional[str] = None,
        line: Optional[str] = None,
    ) -> DecisionResult:
        trace.append(state)
        self.metrics["total_calls"] += 1
        self.metrics[state.value] += 1
        return DecisionResult(state=state, reason=reason, line=line, trace=trace)

    async def _load_config(self, unique_key: str) -> Optional[LogConfig]:
        """None means no configuration; a malformed payload raises"""
        payload = await self.resolver.resolve(unique_key)
        if payload is None:
            return None
        return LogConfig.from_fetched(payload)

    def _render_metadata(self, unique_key: str, metadata: Any) -> str:
        if metadata is None:
            return ""
        try:
            return str(metadata)
        except Exception as e:
            if self.config.verbose:
                self.diagnostics.warning(
                    f"Could not render message for key '{unique_key}': {e}",
                    extra={"ctx_key": unique_key, "ctx_error_type": type(e).__name__},
                )
            return UNSERIALIZABLE

    def _run_custom_code(
        self,
        unique_key: str,
        config: LogConfig,
        context: Dict[str, Any],
        trace: List[CallState],
    ) -> Optional[str]:
        """Validate then evaluate custom code, returning the text for the line"""
        code = config.custom_code
        if code is None:
            trace.append(CallState.CUSTOM_CODE_SKIPPED)
            return None
        if not isinstance(code, str) or not code.strip():
            trace.append(CallState.CUSTOM_CODE_SKIPPED)
            return NOT_APPLICABLE

        validation = self.validator.validate(code, context.keys())
        try:
            validation.raise_for_violations()
        except ValidationFailure as failure:
            if self.config.verbose:
                self.diagnostics.warning(
                    f"CustomLoggingCode validation failed for key '{unique_key}'",
                    extra={"ctx_key": unique_key, "ctx_violations": validation.violations_as_dicts()},
                )
            violations = [violation.to_dict() for violation in failure.violations]
            return f"<ValidationViolations: {to_json(violations)}>"
        trace.append(CallState.CUSTOM_CODE_VALIDATED)

        evaluation = evaluate(code, context, tree=validation.tree)
        trace.append(CallState.CUSTOM_CODE_EXECUTED)
        if not evaluation.ok and self.config.verbose:
            self.diagnostics.error(
                f"Error executing CustomLoggingCode for key '{unique_key}': {evaluation.error}",
                extra={"ctx_key": unique_key},
            )
        return evaluation.output

    async def dynamic_log(
        self,
        unique_key: str,
        metadata: Any = None,
        local_vars: Optional[Mapping[str, Any]] = None,
    ) -> DecisionResult:
        """
        Decide whether and what to log for one call site.

        Args:
            unique_key: Identifier of the call site's configuration
            metadata: Primary message, appended to the configured prefix
            local_vars: Flat mapping of in-scope variables

        Returns:
            DecisionResult with the terminal state, the reason for an early
            exit and the rendered line when one was produced
        """
        trace = [CallState.START]

        if not unique_key or not isinstance(unique_key, str):
            self.diagnostics.error(str(InvalidCallKeyError(unique_key)))
            return self._finish(trace, CallState.ABORTED, "invalid_call_key")

        try:
            config = await self._load_config(unique_key)
        except MalformedConfigError as e:
            if self.config.verbose:
                self.diagnostics.warning(
                    f"Invalid or incomplete config for key '{unique_key}': {e}. Logging skipped.",
                    extra={"ctx_key": unique_key},
                )
            return self._finish(trace, CallState.ABORTED, "malformed_config")
        if config is None:
            return self._finish(trace, CallState.ABORTED, "no_config")
        trace.append(CallState.CONFIG_RESOLVED)

        if local_vars is not None and not isinstance(local_vars, Mapping):
            if self.config.verbose:
                self.diagnostics.warning(
                    f"Ignoring local_vars of type {type(local_vars).__name__} "
                    f"for key '{unique_key}'; a mapping is required.",
                    extra={"ctx_key": unique_key},
                )
            local_vars = None

        sampling = self.sampling_filter.should_log(config, dict(local_vars or {}))
        if not sampling.should_log:
            if self.config.verbose and config.sampling_rate > 0:
                self.diagnostics.info(
                    f"Skipped logging for key '{unique_key}' due to sampling rate.",
                    extra={"ctx_key": unique_key, "ctx_reason": sampling.reason},
                )
            return self._finish(trace, CallState.SKIPPED, "sampling_declined")
        trace.append(CallState.SAMPLED)

        context = merge_context(local_vars, self.ambient_store.get())
        record = DynamicLogRecord(
            key=unique_key,
            message=config.prefix_message + self._render_metadata(unique_key, metadata),
            filtered_variables=filter_variables(config.variables_to_log, context),
        )
        trace.append(CallState.CONTEXT_BUILT)

        record.custom_code_output = self._run_custom_code(unique_key, config, context, trace)

        line = record.render()
        trace.append(CallState.FORMATTED)

        try:
            await deliver(self.log_function, line)
        except Exception as e:
            error = SinkFailureError(f"Error executing user-provided log function: {e}")
            self.diagnostics.error(str(error), extra={"ctx_key": unique_key})
            return self._finish(trace, CallState.DELIVERY_FAILED, "sink_failure", line)

        return self._finish(trace, CallState.DELIVERED, line=line)

    def log(
        self,
        unique_key: str,
        metadata: Any = None,
        local_vars: Optional[Mapping[str, Any]] = None,
    ) -> Optional["asyncio.Task[DecisionResult]"]:
        """
        Fire-and-forget form of dynamic_log.

        Inside a running event loop the call is scheduled as a task, which
        inherits a snapshot of the ambient context. Without a loop the call
        runs to completion before returning.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.dynamic_log(unique_key, metadata, local_vars))
            return None

        task = loop.create_task(self.dynamic_log(unique_key, metadata, local_vars))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """Wait for scheduled log calls, bounded by the shutdown timeout"""
        if not self._pending:
            return
        if timeout is None:
            timeout = self.config.shutdown_timeout
        try:
            await asyncio.wait_for(
                asyncio.gather(*self._pending, return_exceptions=True), timeout=timeout
            )
        except asyncio.TimeoutError:
            self.diagnostics.warning(
                f"Shutdown timed out with {len(self._pending)} log call(s) pending"
            )

    # Metrics

    def get_metrics(self) -> Dict[str, Any]:
        """Counts of calls per terminal state"""
        total = self.metrics.get("total_calls", 0)
        summary = {"total_calls": total}
        for state in sorted(TERMINAL_STATES, key=lambda state: state.value):
            summary[state.value] = self.metrics.get(state.value, 0)
        return {
            "summary": summary,
            "delivery_rate": summary[CallState.DELIVERED.value] / max(1, total),
        }

    def reset_metrics(self) -> None:
        self.metrics.clear()


def init_dynamic_logger(
    config_fetcher: ConfigFetcher,
    log_function: LogFunction,
    config: Optional[DynamicLoggerConfig] = None,
    **kwargs: Any,
) -> DynamicLogger:
    """Initialize the process wide dynamic logger"""
    return DynamicLogger.initialize(config_fetcher, log_function, config, **kwargs)


def get_dynamic_logger() -> DynamicLogger:
    """Get the process wide dynamic logger"""
    return DynamicLogger.get_instance()


async def shutdown_dynamic_logger(timeout: Optional[float] = None) -> None:
    """Drain pending calls of the process wide logger and tear it down"""
    instance = DynamicLogger._instance
    if instance is None:
        return
    try:
        await instance.shutdown(timeout)
    finally:
        DynamicLogger.reset_instance()


def dynamic_log(
    unique_key: str,
    metadata: Any = None,
    local_vars: Optional[Mapping[str, Any]] = None,
) -> Awaitable[DecisionResult]:
    """
    Log through the process wide dynamic logger.

    When ``local_vars`` is omitted the caller's local variables are captured
    automatically.

    Example:
        async def checkout(cart):
            total = sum(item.price for item in cart)
            await dynamic_log("CHECKOUT", "cart priced")
    """
    if local_vars is None:
        local_vars = capture_locals(depth=2)
    return get_dynamic_logger().dynamic_log(unique_key, metadata, local_vars)

"""
Dynamic Logging Library

Decide at runtime, per call site, whether to log, which variables to report
and what custom expression to evaluate, driven by fetched configuration.
"""

__version__ = "0.1.0"

from .async_context import (
    aget_ambient_context,
    aset_ambient_context,
    async_ambient_context,
)
from .config import (
    DynamicLoggerConfig,
    get_default_config,
    set_default_config,
)
from .context import (
    AmbientContextStore,
    ambient_context,
    capture_locals,
    clear_ambient_context,
    get_ambient_context,
    merge_context,
    set_ambient_context,
    update_ambient_context,
)
from .engine import (
    DynamicLogger,
    dynamic_log,
    get_dynamic_logger,
    init_dynamic_logger,
    shutdown_dynamic_logger,
)
from .exceptions import (
    AlreadyInitializedError,
    ConfigFetchError,
    ConfigTimeoutError,
    DynamicLoggingError,
    InvalidCallKeyError,
    MalformedConfigError,
    NotInitializedError,
    SandboxRuntimeError,
    SinkFailureError,
    ValidationFailure,
)
from .fetchers import HTTPConfigFetcher, StaticConfigFetcher
from .filtering import (
    FilterResult,
    SamplingFilter,
    VariableFilter,
    filter_variables,
    should_proceed,
)
from .formatter import PlainTextFormatter, StructuredFormatter, format_log_line
from .logger import get_diagnostics_logger, get_logger, logger_sink, stream_sink
from .models import CallState, DecisionResult, DynamicLogRecord, LogConfig
from .resolver import ConfigResolver
from .sandbox import (
    CodeValidator,
    EvaluationResult,
    ValidationResult,
    ValidatorPolicy,
    Violation,
    evaluate,
    validate,
)
from .serializers import UNDEFINED, UNSERIALIZABLE, serialize_value

__all__ = [
    # Engine
    "DynamicLogger",
    "dynamic_log",
    "init_dynamic_logger",
    "get_dynamic_logger",
    "shutdown_dynamic_logger",
    "ConfigResolver",
    # Configuration
    "DynamicLoggerConfig",
    "get_default_config",
    "set_default_config",
    "LogConfig",
    "CallState",
    "DecisionResult",
    "DynamicLogRecord",
    # Ambient context
    "AmbientContextStore",
    "ambient_context",
    "get_ambient_context",
    "set_ambient_context",
    "update_ambient_context",
    "clear_ambient_context",
    "merge_context",
    "capture_locals",
    "async_ambient_context",
    "aget_ambient_context",
    "aset_ambient_context",
    # Filtering
    "FilterResult",
    "SamplingFilter",
    "should_proceed",
    "VariableFilter",
    "filter_variables",
    # Sandbox
    "CodeValidator",
    "ValidatorPolicy",
    "ValidationResult",
    "Violation",
    "validate",
    "EvaluationResult",
    "evaluate",
    # Output
    "format_log_line",
    "PlainTextFormatter",
    "StructuredFormatter",
    "get_logger",
    "get_diagnostics_logger",
    "logger_sink",
    "stream_sink",
    "serialize_value",
    "UNDEFINED",
    "UNSERIALIZABLE",
    # Fetchers
    "StaticConfigFetcher",
    "HTTPConfigFetcher",
    # Errors
    "DynamicLoggingError",
    "InvalidCallKeyError",
    "ConfigFetchError",
    "ConfigTimeoutError",
    "MalformedConfigError",
    "ValidationFailure",
    "SandboxRuntimeError",
    "SinkFailureError",
    "AlreadyInitializedError",
    "NotInitializedError",
]

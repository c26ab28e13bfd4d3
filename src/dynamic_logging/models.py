"""
Data model for dynamic log calls
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import MalformedConfigError
from .formatter import format_log_line

# Accepted spellings for each LogConfig field, in lookup order
_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "variables_to_log": ("variables_to_log", "variablesToLog", "VariablesToLog"),
    "sampling_rate": ("sampling_rate", "samplingRate", "SamplingRate"),
    "prefix_message": ("prefix_message", "prefixMessage", "PrefixMessage"),
    "custom_code": ("custom_code", "customCode", "CustomLoggingCode"),
}

_MISSING = object()


def _lookup(payload: Mapping, field_name: str) -> Any:
    for alias in _FIELD_ALIASES[field_name]:
        if alias in payload:
            return payload[alias]
    return _MISSING


@dataclass(frozen=True)
class LogConfig:
    """Per call site logging configuration"""

    variables_to_log: Tuple[str, ...]
    sampling_rate: float
    prefix_message: str = ""
    custom_code: Optional[str] = None

    @classmethod
    def from_fetched(cls, payload: Any) -> "LogConfig":
        """
        Build a LogConfig from whatever the config fetcher returned.

        Args:
            payload: A mapping using snake_case, camelCase or PascalCase keys,
                or an existing LogConfig

        Returns:
            The normalized configuration

        Raises:
            MalformedConfigError: If the sampling rate is not a number or the
                variable list is not a sequence
        """
        if isinstance(payload, LogConfig):
            return payload
        if not isinstance(payload, Mapping):
            raise MalformedConfigError(
                f"expected a mapping, got {type(payload).__name__}"
            )

        rate = _lookup(payload, "sampling_rate")
        if (
            isinstance(rate, bool)
            or not isinstance(rate, (int, float))
            or math.isnan(rate)
        ):
            raise MalformedConfigError("samplingRate must be a number")

        variables = _lookup(payload, "variables_to_log")
        if not isinstance(variables, (list, tuple)):
            raise MalformedConfigError("variablesToLog must be a list of names")

        prefix = _lookup(payload, "prefix_message")
        if prefix is _MISSING or not prefix:
            prefix = ""

        custom_code = _lookup(payload, "custom_code")
        if custom_code is _MISSING:
            custom_code = None

        return cls(
            variables_to_log=tuple(str(name) for name in variables),
            sampling_rate=float(rate),
            prefix_message=prefix if isinstance(prefix, str) else str(prefix),
            custom_code=custom_code,
        )


class CallState(str, Enum):
    """States a single dynamic log call moves through"""

    START = "start"
    CONFIG_RESOLVED = "config_resolved"
    ABORTED = "aborted"
    SAMPLED = "sampled"
    SKIPPED = "skipped"
    CONTEXT_BUILT = "context_built"
    CUSTOM_CODE_SKIPPED = "custom_code_skipped"
    CUSTOM_CODE_VALIDATED = "custom_code_validated"
    CUSTOM_CODE_EXECUTED = "custom_code_executed"
    FORMATTED = "formatted"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"


TERMINAL_STATES = frozenset(
    {CallState.ABORTED, CallState.SKIPPED, CallState.DELIVERED, CallState.DELIVERY_FAILED}
)


@dataclass
class DecisionResult:
    """Outcome of one dynamic log call"""

    state: CallState
    reason: Optional[str] = None
    line: Optional[str] = None
    trace: List[CallState] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return self.state is CallState.DELIVERED

    @property
    def aborted(self) -> bool:
        return self.state is CallState.ABORTED

    @property
    def skipped(self) -> bool:
        return self.state is CallState.SKIPPED


@dataclass
class DynamicLogRecord:
    """Everything that ends up in one rendered log line"""

    key: str
    message: str
    filtered_variables: Dict[str, str] = field(default_factory=dict)
    custom_code_output: Optional[str] = None

    def render(self) -> str:
        return format_log_line(
            self.key,
            self.message,
            self.filtered_variables or None,
            self.custom_code_output,
        )

"""
Error taxonomy for the dynamic logger

None of these ever reach the code that triggered a log call. They are raised
and recovered inside the engine, or raised by the explicit lifecycle API.
"""

from typing import Any, List, Optional


class DynamicLoggingError(Exception):
    """Base class for all dynamic logging errors"""


class InvalidCallKeyError(DynamicLoggingError):
    """The unique key of a log call was empty or not a string"""

    def __init__(self, key: Any):
        self.key = key
        super().__init__(f"uniqueKey is required for dynamic_log, got {key!r}")


class ConfigFetchError(DynamicLoggingError):
    """The configuration fetcher raised"""

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        self.key = key
        self.cause = cause
        super().__init__(f"Error fetching config for key '{key}': {cause}")


class ConfigTimeoutError(ConfigFetchError):
    """The configuration fetcher did not settle within the timeout"""

    def __init__(self, key: str, timeout_ms: float):
        self.timeout_ms = timeout_ms
        DynamicLoggingError.__init__(
            self, f"Config fetch for key '{key}' timed out after {timeout_ms:g}ms."
        )
        self.key = key
        self.cause = None


class MalformedConfigError(DynamicLoggingError):
    """A fetched configuration lacks the required fields"""


class ValidationFailure(DynamicLoggingError):
    """Custom logging code was rejected by the static validator"""

    def __init__(self, violations: List[Any]):
        self.violations = violations
        super().__init__(f"{len(violations)} violation(s) in custom logging code")


class SandboxRuntimeError(DynamicLoggingError):
    """Custom logging code raised while being evaluated"""


class SinkFailureError(DynamicLoggingError):
    """The user supplied log function raised"""


class AlreadyInitializedError(DynamicLoggingError):
    """The process wide dynamic logger was initialized twice"""


class NotInitializedError(DynamicLoggingError):
    """The process wide dynamic logger was used before initialization"""

import logging
import os
from dataclasses import dataclass
from typing import Literal, Optional

DiagnosticsFormat = Literal["plain", "json"]

DEFAULT_FETCH_TIMEOUT_MS = 2000.0


@dataclass
class DynamicLoggerConfig:
    """Construction-time configuration for the dynamic logger"""

    fetch_timeout_ms: float = DEFAULT_FETCH_TIMEOUT_MS
    verbose: bool = False
    allow_async_code: bool = False
    diagnostics_format: DiagnosticsFormat = "plain"
    diagnostics_level: str = "INFO"
    include_timestamp: bool = True
    shutdown_timeout: float = 5.0  # seconds

    def __post_init__(self):
        """Validate configuration values"""
        if self.fetch_timeout_ms <= 0:
            raise ValueError("fetch_timeout_ms must be positive")
        if self.shutdown_timeout <= 0:
            raise ValueError("shutdown_timeout must be positive")
        if self.diagnostics_format not in ("plain", "json"):
            raise ValueError("diagnostics_format must be 'plain' or 'json'")
        if not isinstance(logging.getLevelName(self.diagnostics_level.upper()), int):
            raise ValueError(f"unknown diagnostics_level: {self.diagnostics_level}")

    @classmethod
    def _parse_bool_env(cls, key: str, default: str = "false") -> bool:
        """Parse boolean from environment variable"""
        return os.getenv(key, default).lower() == "true"

    @classmethod
    def from_env(cls) -> "DynamicLoggerConfig":
        """Create configuration from environment variables"""
        diagnostics_format = os.getenv("DYNAMIC_LOG_DIAGNOSTICS_FORMAT", "plain").lower()
        if diagnostics_format not in ["plain", "json"]:
            diagnostics_format = "plain"

        return cls(
            fetch_timeout_ms=float(
                os.getenv("DYNAMIC_LOG_FETCH_TIMEOUT_MS", str(DEFAULT_FETCH_TIMEOUT_MS))
            ),
            verbose=cls._parse_bool_env("DYNAMIC_LOG_VERBOSE"),
            allow_async_code=cls._parse_bool_env("DYNAMIC_LOG_ALLOW_ASYNC"),
            diagnostics_format=diagnostics_format,
            diagnostics_level=os.getenv("DYNAMIC_LOG_DIAGNOSTICS_LEVEL", "INFO").upper(),
            include_timestamp=cls._parse_bool_env("DYNAMIC_LOG_TIMESTAMP", "true"),
            shutdown_timeout=float(os.getenv("DYNAMIC_LOG_SHUTDOWN_TIMEOUT", "5.0")),
        )


_default_config: Optional[DynamicLoggerConfig] = None


def get_default_config() -> DynamicLoggerConfig:
    """Get the default configuration instance"""
    global _default_config
    if _default_config is None:
        _default_config = DynamicLoggerConfig.from_env()
    return _default_config


def set_default_config(config: DynamicLoggerConfig) -> None:
    """Set the default configuration instance"""
    global _default_config
    _default_config = config

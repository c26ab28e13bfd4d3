import inspect
import logging
import sys
from typing import Any, Awaitable, Callable, Dict, Optional, TextIO, Union

from .config import DynamicLoggerConfig, get_default_config
from .formatter import PlainTextFormatter, StructuredFormatter

DIAGNOSTICS_LOGGER_NAME = "dynamic_logging.diagnostics"
OUTPUT_LOGGER_NAME = "dynamic_logging.output"

LogFunction = Callable[[str], Union[None, Awaitable[None]]]

# Cache formatter instances
_formatter_cache: Dict[str, logging.Formatter] = {}


def _get_formatter_cache_key(config: DynamicLoggerConfig) -> str:
    """Generate cache key for formatter"""
    return f"{config.diagnostics_format}_{config.include_timestamp}"


def _get_or_create_formatter(config: DynamicLoggerConfig) -> logging.Formatter:
    """Get formatter from cache or create new one"""
    cache_key = _get_formatter_cache_key(config)

    if cache_key not in _formatter_cache:
        if config.diagnostics_format == "json":
            formatter: logging.Formatter = StructuredFormatter(config)
        else:
            formatter = PlainTextFormatter(config)
        _formatter_cache[cache_key] = formatter

    return _formatter_cache[cache_key]


def get_logger(name: str, config: Optional[DynamicLoggerConfig] = None) -> logging.Logger:
    """Create a logger writing formatted records to stderr"""
    logger = logging.getLogger(name)

    if not logger.handlers:
        config = config or get_default_config()
        logger.setLevel(getattr(logging, config.diagnostics_level.upper()))

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_get_or_create_formatter(config))
        logger.addHandler(handler)

        logger.propagate = True

    return logger


def get_diagnostics_logger(config: Optional[DynamicLoggerConfig] = None) -> logging.Logger:
    """The internal channel for errors and verbose traces, never the sink"""
    return get_logger(DIAGNOSTICS_LOGGER_NAME, config)


def logger_sink(name: str = OUTPUT_LOGGER_NAME, level: Union[str, int] = "INFO") -> LogFunction:
    """Log function that forwards rendered lines to a standard library logger"""
    target = logging.getLogger(name)
    levelno = getattr(logging, level.upper()) if isinstance(level, str) else level

    def sink(line: str) -> None:
        target.log(levelno, line)

    return sink


def stream_sink(stream: Optional[TextIO] = None) -> LogFunction:
    """Log function that writes one rendered line per call to a stream"""

    def sink(line: str) -> None:
        target = stream or sys.stdout
        target.write(line + "\n")
        if hasattr(target, "flush"):
            target.flush()

    return sink


async def deliver(log_function: LogFunction, line: str) -> Any:
    """Invoke a log function, awaiting whatever awaitable it returns"""
    result = log_function(line)
    if inspect.isawaitable(result):
        result = await result
    return result

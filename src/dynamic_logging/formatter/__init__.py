"""
Formatters for rendered log lines and diagnostics records
"""

from .json_formatter import StructuredFormatter
from .line_formatter import format_log_line
from .text_formatter import PlainTextFormatter

__all__ = [
    "format_log_line",
    "StructuredFormatter",
    "PlainTextFormatter",
]

"""
Plain text formatter for the diagnostics channel
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from ..config import DynamicLoggerConfig, get_default_config
from ..serializers import serialize_value


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class PlainTextFormatter(logging.Formatter):
    """Plain text formatter rendering ``ctx_`` fields as key=value pairs"""

    def __init__(self, config: Optional[DynamicLoggerConfig] = None):
        super().__init__()
        self.config = config or get_default_config()

    def format(self, record: logging.LogRecord) -> str:
        parts = []

        if self.config.include_timestamp:
            parts.append(f"[{utc_timestamp()}]")

        parts.extend([record.levelname, record.name, record.getMessage()])

        context_items = []
        for key, value in record.__dict__.items():
            if key.startswith("ctx_"):
                value_str = serialize_value(value)
                # Truncate very long values for readability
                if len(value_str) > 100:
                    value_str = value_str[:97] + "..."
                context_items.append(f"{key[4:]}={value_str}")

        if context_items:
            parts.append(f"({', '.join(context_items)})")

        return " ".join(parts)

"""
JSON formatter for the diagnostics channel
"""

import logging
from typing import Any, Dict, Optional

from ..config import DynamicLoggerConfig, get_default_config
from ..serializers import DynamicJSONEncoder, UNSERIALIZABLE
from .text_formatter import utc_timestamp


class StructuredFormatter(logging.Formatter):
    """JSON formatter for diagnostics records"""

    def __init__(self, config: Optional[DynamicLoggerConfig] = None):
        super().__init__()
        self.config = config or get_default_config()
        self.encoder = DynamicJSONEncoder(separators=(",", ":"), ensure_ascii=False)

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.config.include_timestamp:
            log_entry["timestamp"] = utc_timestamp()

        for key, value in record.__dict__.items():
            if key.startswith("ctx_"):
                log_entry[key[4:]] = value

        try:
            return self.encoder.encode(log_entry)
        except (TypeError, ValueError):
            # Keep scalars, replace anything the encoder rejected
            log_entry = {
                k: v if isinstance(v, (str, int, float, bool, type(None))) else UNSERIALIZABLE
                for k, v in log_entry.items()
            }
            return self.encoder.encode(log_entry)

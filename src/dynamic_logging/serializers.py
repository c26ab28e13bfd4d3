"""
Value serialization for variable values and custom code output
"""

import dataclasses
import json
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from typing import Any
from uuid import UUID

UNSERIALIZABLE = "<unserializable>"


class _Undefined:
    """Marker for a value that is absent rather than None"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


class DynamicJSONEncoder(json.JSONEncoder):
    """JSON encoder for the common standard library value types"""

    def _handle_temporal(self, obj: Any) -> Any:
        if isinstance(obj, (datetime, date, time)):
            return obj.isoformat()
        if isinstance(obj, timedelta):
            return obj.total_seconds()
        return None

    def _handle_scalars(self, obj: Any) -> Any:
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (Decimal, UUID, PurePath)):
            return str(obj)
        return None

    def _handle_collections(self, obj: Any) -> Any:
        """Sets become lists, sorted when their items allow it"""
        if not isinstance(obj, (set, frozenset)):
            return None
        try:
            return sorted(obj)
        except TypeError:
            return list(obj)

    def default(self, obj: Any) -> Any:
        """Convert objects to JSON-serializable formats"""
        if obj is UNDEFINED:
            return None

        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return dataclasses.asdict(obj)

        for handler in (
            self._handle_temporal,
            self._handle_scalars,
            self._handle_collections,
        ):
            result = handler(obj)
            if result is not None:
                return result

        return super().default(obj)


def to_json(obj: Any) -> str:
    """Compact JSON text, the canonical form used in rendered lines"""
    return json.dumps(
        obj,
        cls=DynamicJSONEncoder,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def serialize_value(value: Any) -> str:
    """
    Render a runtime value as text for a log line.

    Strings pass through unchanged, ``None`` becomes ``"null"`` and
    ``UNDEFINED`` becomes ``"undefined"``. Everything else is rendered as
    compact JSON; values that cannot be rendered become ``"<unserializable>"``.
    """
    if isinstance(value, str):
        return value
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    try:
        return to_json(value)
    except Exception:
        return UNSERIALIZABLE

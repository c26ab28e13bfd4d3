"""
Side-effect-free utilities exposed to custom logging code

Modules are never handed to the sandbox directly, only namespaces built
from their public functions, so nothing like ``json.codecs`` is reachable.
"""

import json
import math
import re
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from types import MappingProxyType, SimpleNamespace
from typing import Any, Dict

_math_members = {name: getattr(math, name) for name in dir(math) if not name.startswith("_")}

_math_namespace = SimpleNamespace(**_math_members)

# Capitalized aliases for config authors used to Math.max / JSON.dumps style
_math_alias = SimpleNamespace(**_math_members, max=max, min=min, abs=abs, round=round)

_json_namespace = SimpleNamespace(dumps=json.dumps, loads=json.loads)

_re_namespace = SimpleNamespace(
    match=re.match,
    search=re.search,
    fullmatch=re.fullmatch,
    findall=re.findall,
    finditer=re.finditer,
    sub=re.sub,
    subn=re.subn,
    split=re.split,
    escape=re.escape,
    IGNORECASE=re.IGNORECASE,
    MULTILINE=re.MULTILINE,
    DOTALL=re.DOTALL,
)

_SAFE_BUILTINS = (
    abs, all, any, bool, chr, dict, divmod, enumerate, filter, float,
    frozenset, hex, int, isinstance, len, list, map, max, min, ord, pow,
    range, repr, reversed, round, set, sorted, str, sum, tuple, zip,
)

_safe_globals: Dict[str, Any] = {fn.__name__: fn for fn in _SAFE_BUILTINS}
_safe_globals.update(
    {
        "math": _math_namespace,
        "Math": _math_alias,
        "json": _json_namespace,
        "JSON": _json_namespace,
        "re": _re_namespace,
        "datetime": datetime,
        "date": date,
        "time": time,
        "timedelta": timedelta,
        "timezone": timezone,
        "Decimal": Decimal,
        "Counter": Counter,
    }
)

SAFE_GLOBALS = MappingProxyType(_safe_globals)

SAFE_GLOBAL_NAMES = frozenset(SAFE_GLOBALS)

"""
Selection of the variables a log call reports
"""

from typing import Any, Dict, Iterable, Mapping

from ..serializers import serialize_value


def filter_variables(
    variables_to_log: Iterable[str], context: Mapping[str, Any]
) -> Dict[str, str]:
    """
    Keep the requested names that exist in the context, serialized.

    Order follows ``variables_to_log``; repeated names collapse into the
    first occurrence and missing names are skipped silently.
    """
    filtered: Dict[str, str] = {}
    for name in variables_to_log:
        if name in filtered or name not in context:
            continue
        filtered[name] = serialize_value(context[name])
    return filtered


class VariableFilter:
    """Reusable form of filter_variables bound to one name list"""

    def __init__(self, variables_to_log: Iterable[str]):
        self.variables_to_log = tuple(variables_to_log)

    def apply(self, context: Mapping[str, Any]) -> Dict[str, str]:
        return filter_variables(self.variables_to_log, context)

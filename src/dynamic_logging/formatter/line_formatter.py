"""
Rendering of the line handed to the user supplied log function
"""

from typing import Mapping, Optional

from ..serializers import to_json


def format_log_line(
    key: str,
    message: str,
    variables: Optional[Mapping[str, str]] = None,
    custom_output: Optional[str] = None,
) -> str:
    """
    Build the final log line.

    The variable section appears only when at least one variable was kept,
    and the custom code section only when custom code handling produced an
    output (a value, a diagnostic, or ``NA``).
    """
    line = f"Unique Key: [{key}] - Message: [{message}]"
    if variables:
        line += f" - Variable Values: {to_json(dict(variables))}"
    if custom_output is not None:
        line += f" - Output of Custom Logging Code: [{custom_output}]"
    return line

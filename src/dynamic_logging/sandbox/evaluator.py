"""
Restricted evaluation of validated custom logging code
"""

import ast
import textwrap
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..exceptions import SandboxRuntimeError
from ..serializers import serialize_value
from .safe_globals import SAFE_GLOBALS

FILENAME = "<custom-logging-code>"


@dataclass
class EvaluationResult:
    """Rendered output of one evaluation, or the diagnostic that replaced it"""

    output: str
    value: Any = None
    error: Optional[SandboxRuntimeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_scope(context: Mapping[str, Any]) -> Dict[str, Any]:
    """
    The only namespace custom code can see.

    Builtins are emptied, context names come next and the safe utilities
    are applied last so they cannot be shadowed.
    """
    scope: Dict[str, Any] = {"__builtins__": {}}
    scope.update((name, value) for name, value in context.items() if isinstance(name, str))
    scope.update(SAFE_GLOBALS)
    return scope


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


def evaluate(
    code: str,
    context: Mapping[str, Any],
    tree: Optional[ast.Expression] = None,
) -> EvaluationResult:
    """
    Evaluate a single expression against the merged variable context.

    Args:
        code: Expression text, used when no pre-parsed tree is supplied
        context: Variable name to value mapping exposed to the expression
        tree: Expression tree from a successful validation

    Returns:
        EvaluationResult whose output is the serialized value, or an
        ``<EvalError: ...>`` diagnostic when compiling or evaluating raised
    """
    try:
        if tree is None:
            tree = ast.parse(textwrap.dedent(code).strip(), mode="eval")
        compiled = compile(tree, FILENAME, "eval")
        value = eval(compiled, build_scope(context))
    except Exception as e:
        message = _error_message(e)
        error = SandboxRuntimeError(message)
        error.__cause__ = e
        return EvaluationResult(output=f"<EvalError: {serialize_value(message)}>", error=error)

    return EvaluationResult(output=serialize_value(value), value=value)

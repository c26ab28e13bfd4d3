"""
Validation and restricted evaluation of custom logging code
"""

from .evaluator import EvaluationResult, build_scope, evaluate
from .safe_globals import SAFE_GLOBAL_NAMES, SAFE_GLOBALS
from .validator import (
    DISALLOWED_KEYWORDS,
    CodeValidator,
    DisallowedKeyword,
    ValidationResult,
    ValidatorPolicy,
    Violation,
    describe_callee,
    validate,
)

__all__ = [
    "EvaluationResult",
    "build_scope",
    "evaluate",
    "SAFE_GLOBALS",
    "SAFE_GLOBAL_NAMES",
    "DISALLOWED_KEYWORDS",
    "CodeValidator",
    "DisallowedKeyword",
    "ValidationResult",
    "ValidatorPolicy",
    "Violation",
    "describe_callee",
    "validate",
]

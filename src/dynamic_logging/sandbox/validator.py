"""
Static allow-list validation of custom logging code

Validation runs in two passes. The lexical pass rejects any line mentioning
a disallowed keyword as a whole word. Only when that pass is clean is the
code parsed, and the syntax tree walked for assignments, statements and
calls whose target is not known to be safe.
"""

import ast
import re
import textwrap
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..exceptions import ValidationFailure
from .safe_globals import SAFE_GLOBAL_NAMES


@dataclass(frozen=True)
class DisallowedKeyword:
    """A word that may not appear anywhere in custom code"""

    keyword: str
    message: str
    category: str = "general"
    pattern: "re.Pattern[str]" = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "pattern", re.compile(rf"\b{re.escape(self.keyword)}\b"))


def _keyword(keyword: str, category: str, message: Optional[str] = None) -> DisallowedKeyword:
    return DisallowedKeyword(
        keyword, message or f"Usage of '{keyword}' is disallowed.", category
    )


DISALLOWED_KEYWORDS: Tuple[DisallowedKeyword, ...] = (
    # Host process and global namespace access
    _keyword("process", "host", "Usage of 'process' object is disallowed."),
    _keyword("os", "host", "Usage of 'os' module is disallowed."),
    _keyword("sys", "host", "Usage of 'sys' module is disallowed."),
    _keyword("subprocess", "host"),
    _keyword("globals", "host"),
    _keyword("locals", "host"),
    _keyword("vars", "host"),
    _keyword("builtins", "host"),
    _keyword("__builtins__", "host"),
    # Loops
    _keyword("for", "loop", "Usage of 'for' loops is disallowed."),
    _keyword("while", "loop", "Usage of 'while' loops is disallowed."),
    # Dynamic code construction
    _keyword("eval", "dynamic_code"),
    _keyword("exec", "dynamic_code"),
    _keyword("compile", "dynamic_code"),
    # Module loading
    _keyword("import", "module", "Usage of 'import' is disallowed."),
    _keyword("__import__", "module"),
    _keyword("importlib", "module"),
    # Host I/O and interpreter control
    _keyword("open", "io", "Usage of 'open' to access the file system is disallowed."),
    _keyword("input", "io"),
    _keyword("print", "io"),
    _keyword("breakpoint", "io"),
    _keyword("exit", "io"),
    _keyword("quit", "io"),
    # Reflection
    _keyword("getattr", "reflection"),
    _keyword("setattr", "reflection"),
    _keyword("delattr", "reflection"),
    # Object construction and introspection
    _keyword("__class__", "introspection"),
    _keyword("__subclasses__", "introspection"),
    _keyword("__bases__", "introspection"),
    _keyword("__mro__", "introspection"),
    _keyword("__globals__", "introspection"),
    _keyword("__code__", "introspection"),
    _keyword("__dict__", "introspection"),
    _keyword("__new__", "introspection", "Usage of '__new__' to create objects is disallowed."),
    _keyword("__init__", "introspection"),
    _keyword("__self__", "introspection"),
    _keyword("__func__", "introspection"),
    # Asynchronous task scheduling
    _keyword("async", "async", "Usage of 'async' functions is disallowed."),
    _keyword("await", "async"),
    _keyword("asyncio", "async"),
)

_LITERAL_NODES = (ast.Constant, ast.List, ast.Tuple, ast.Set, ast.Dict, ast.JoinedStr)

_ASSIGNMENT_NODES = (ast.Assign, ast.AugAssign, ast.AnnAssign)

# String formatting resolves attribute and item lookups inside the template
_FORMAT_ATTRIBUTES = frozenset({"format", "format_map"})

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass
class ValidatorPolicy:
    """Tunable parts of the keyword table"""

    allow_async: bool = False
    extra_keywords: Tuple[DisallowedKeyword, ...] = ()

    def keywords(self) -> Tuple[DisallowedKeyword, ...]:
        active = tuple(
            keyword
            for keyword in DISALLOWED_KEYWORDS
            if not (self.allow_async and keyword.category == "async")
        )
        return active + tuple(self.extra_keywords)


@dataclass
class Violation:
    """One reason custom code was rejected"""

    message: str
    location: Optional[int] = None  # 1-based line number

    def to_dict(self) -> Dict[str, str]:
        location = f"Line {self.location}" if self.location is not None else "Unknown location"
        return {"message": self.message, "location": location}


@dataclass
class ValidationResult:
    """Outcome of validating one piece of custom code"""

    is_valid: bool
    violations: List[Violation] = field(default_factory=list)
    tree: Optional[ast.Expression] = field(default=None, repr=False, compare=False)

    def violations_as_dicts(self) -> List[Dict[str, str]]:
        return [violation.to_dict() for violation in self.violations]

    def raise_for_violations(self) -> None:
        if not self.is_valid:
            raise ValidationFailure(self.violations)


class _SafetyVisitor(ast.NodeVisitor):
    """Pre-order walk collecting structural violations"""

    def __init__(self, safe_names: Iterable[str]):
        self.safe_names = frozenset(safe_names)
        self.violations: List[Violation] = []

    def _add(self, message: str, node: Optional[ast.AST]) -> None:
        self.violations.append(Violation(message, getattr(node, "lineno", None)))

    def visit_Module(self, node: ast.Module) -> None:
        if not node.body:
            self.violations.append(Violation("Custom code must contain an expression.", 1))
            return
        for index, statement in enumerate(node.body):
            if isinstance(statement, ast.Expr):
                if index > 0:
                    self._add("Only a single expression is allowed.", statement)
            elif not isinstance(statement, _ASSIGNMENT_NODES):
                self._add(
                    f"Statement '{type(statement).__name__}' is disallowed; "
                    "custom code must be a single expression.",
                    statement,
                )
            self.visit(statement)

    def _visit_assignment(self, node: ast.AST) -> None:
        self._add("Direct assignment expressions are disallowed.", node)
        self.generic_visit(node)

    visit_Assign = _visit_assignment
    visit_AugAssign = _visit_assignment
    visit_AnnAssign = _visit_assignment
    visit_NamedExpr = _visit_assignment

    def visit_Call(self, node: ast.Call) -> None:
        if not self._is_safe_callee(node.func):
            self._add(f"Disallowed function call: {describe_callee(node.func)}", node)
        self.generic_visit(node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_"):
            self._add(f"Access to private attribute '{node.attr}' is disallowed.", node)
        elif node.attr in _FORMAT_ATTRIBUTES:
            self._add(
                f"Usage of '{node.attr}' is disallowed; use an f-string instead.", node
            )
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("__"):
            self._add(f"Access to '{node.id}' is disallowed.", node)

    def _is_safe_callee(self, func: ast.expr) -> bool:
        if isinstance(func, ast.Name):
            return func.id in self.safe_names

        # Immediately invoked lambda
        if isinstance(func, ast.Lambda):
            return True

        if isinstance(func, (ast.Attribute, ast.Subscript)):
            base: ast.expr = func
            while isinstance(base, (ast.Attribute, ast.Subscript)):
                base = base.value
            if isinstance(base, ast.Name):
                return base.id in self.safe_names
            return isinstance(base, _LITERAL_NODES)

        return False


def describe_callee(func: ast.expr) -> str:
    """Best-effort text for the target of a call"""
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, (ast.Attribute, ast.Subscript)):
        obj = func.value.id if isinstance(func.value, ast.Name) else "[expr]"
        prop = func.attr if isinstance(func, ast.Attribute) else "[expr]"
        return f"{obj}.{prop}"
    return "unknown function"


class CodeValidator:
    """Validates custom logging code under one policy"""

    def __init__(self, policy: Optional[ValidatorPolicy] = None):
        self.policy = policy or ValidatorPolicy()
        self._keywords = self.policy.keywords()

    def _lexical_violations(self, code: str) -> List[Violation]:
        violations = []
        for line_number, line in enumerate(_LINE_BREAK.split(code), start=1):
            for forbidden in self._keywords:
                if forbidden.pattern.search(line):
                    violations.append(Violation(forbidden.message, line_number))
        return violations

    def validate(self, code: Any, known_safe_names: Iterable[str] = ()) -> ValidationResult:
        """
        Check custom code against the keyword table and the call allow-list.

        Args:
            code: The expression text
            known_safe_names: Names available in the current variable context,
                which may be called or used as the base of a method call

        Returns:
            ValidationResult carrying the parsed expression when valid
        """
        if not isinstance(code, str):
            return ValidationResult(False, [Violation("Custom code must be a string.")])

        violations = self._lexical_violations(code)
        if violations:
            return ValidationResult(False, violations)

        try:
            module = ast.parse(textwrap.dedent(code), mode="exec")
        except (SyntaxError, ValueError, RecursionError) as e:
            message = getattr(e, "msg", None) or str(e)
            return ValidationResult(
                False,
                [Violation(f"Syntax error in custom code: {message}", getattr(e, "lineno", None))],
            )

        visitor = _SafetyVisitor(SAFE_GLOBAL_NAMES.union(known_safe_names))
        visitor.visit(module)
        if visitor.violations:
            return ValidationResult(False, visitor.violations)

        tree = ast.fix_missing_locations(ast.Expression(body=module.body[0].value))
        return ValidationResult(True, [], tree)


def validate(
    code: Any,
    known_safe_names: Iterable[str] = (),
    policy: Optional[ValidatorPolicy] = None,
) -> ValidationResult:
    """Validate custom code with a one-off validator"""
    return CodeValidator(policy).validate(code, known_safe_names)

"""Expression evaluator for IF/ELIF branch conditions.

Conditions are parsed once by :class:`ExpressionParser` and cached; evaluation
is a pure read of the variable lookup. Nothing an expression can call has
side effects.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Container, Mapping, Sequence
from typing import Any, Callable, Protocol

from twoway_sql.context import VariableLookup, resolve_step
from twoway_sql.errors import EvaluationError
from twoway_sql.parsing.expression_parser import (
    Attribute,
    BoolOp,
    Call,
    Compare,
    Expr,
    ExpressionParser,
    Index,
    Literal,
    Name,
    Not,
    referenced_names,
)

logger = logging.getLogger(__name__)

_CACHE_MAX_SIZE = 1024


# ---- Built-in functions ----


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, Sequence, Mapping, set, frozenset)):
        return len(value) == 0
    return False


def is_not_empty(value: Any) -> bool:
    return not is_empty(value)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def is_not_blank(value: Any) -> bool:
    return not is_blank(value)


def length(value: Any) -> int:
    return 0 if value is None else len(value)


def contains(value: Any, part: Any) -> bool:
    return value is not None and part in value


def starts_with(value: Any, prefix: str) -> bool:
    return isinstance(value, str) and value.startswith(prefix)


def ends_with(value: Any, suffix: str) -> bool:
    return isinstance(value, str) and value.endswith(suffix)


def trim(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def upper(value: Any) -> Any:
    return value.upper() if isinstance(value, str) else value


def lower(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


BUILTIN_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "is_empty": is_empty,
    "is_not_empty": is_not_empty,
    "is_blank": is_blank,
    "is_not_blank": is_not_blank,
    "length": length,
    "contains": contains,
    "starts_with": starts_with,
    "ends_with": ends_with,
    "trim": trim,
    "upper": upper,
    "lower": lower,
    # String-function namespace kept for templates written against SF.* helpers
    "SF.isEmpty": is_empty,
    "SF.isNotEmpty": is_not_empty,
    "SF.isBlank": is_blank,
    "SF.isNotBlank": is_not_blank,
    "SF.length": length,
    "SF.contains": contains,
    "SF.startsWith": starts_with,
    "SF.endsWith": ends_with,
    "SF.trim": trim,
    "SF.upper": upper,
    "SF.lower": lower,
}


class FunctionRegistry:
    """Named functions callable from conditions."""

    def __init__(self, functions: Mapping[str, Callable[..., Any]] | None = None,
                 include_builtins: bool = True) -> None:
        self._functions: dict[str, Callable[..., Any]] = {}
        if include_builtins:
            self._functions.update(BUILTIN_FUNCTIONS)
        if functions:
            self._functions.update(functions)

    def register(self, name: str, function: Callable[..., Any]) -> None:
        self._functions[name] = function

    def get(self, name: str) -> Callable[..., Any] | None:
        return self._functions.get(name)

    def names(self) -> list[str]:
        return sorted(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions


# ---- Evaluator strategy ----


class ExpressionEvaluator(Protocol):
    """Strategy deciding IF/ELIF conditions."""

    def compile(self, expression: str) -> object:
        """Check *expression* and return a reusable compiled form.

        Raises SyntaxError when the expression is malformed.
        """
        ...

    def evaluate(self, expression: str, lookup: VariableLookup) -> Any:
        ...


class DefaultExpressionEvaluator:
    """Evaluates the condition language with a PLY parser and an LRU of compiled ASTs."""

    def __init__(self, functions: FunctionRegistry | None = None, strict_names: bool = False) -> None:
        self.functions = functions if functions is not None else FunctionRegistry()
        self.strict_names = strict_names
        self._parser = ExpressionParser()
        self._cache: OrderedDict[str, Expr] = OrderedDict()
        self._cache_lock = threading.Lock()

    def compile(self, expression: str) -> Expr:
        """Return the parsed AST for *expression*, from cache when possible."""
        with self._cache_lock:
            ast = self._cache.get(expression)
            if ast is not None:
                self._cache.move_to_end(expression)
                return ast
        ast = self._parser.parse(expression)
        with self._cache_lock:
            self._cache[expression] = ast
            if len(self._cache) > _CACHE_MAX_SIZE:
                self._cache.popitem(last=False)
        return ast

    def evaluate(self, expression: str, lookup: VariableLookup) -> Any:
        try:
            ast = self.compile(expression)
        except SyntaxError as e:
            raise EvaluationError(f"Invalid expression: {e}", expression) from e
        result = _Evaluation(expression, lookup, self.functions, self.strict_names).eval(ast)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Condition [%s] -> %r, parameters: %s",
                expression,
                result,
                _dump_names(ast, lookup),
            )
        return result


def _dump_names(ast: Expr, lookup: VariableLookup) -> str:
    parts = []
    for name in referenced_names(ast):
        if lookup.has_value(name):
            parts.append(f"{name}:[{lookup.get_value(name)!r}]")
        else:
            parts.append(f"{name}:[<absent>]")
    return ", ".join(parts)


class _Evaluation:
    """One evaluation of a compiled expression."""

    def __init__(self, expression: str, lookup: VariableLookup, functions: FunctionRegistry,
                 strict_names: bool) -> None:
        self.expression = expression
        self.lookup = lookup
        self.functions = functions
        self.strict_names = strict_names

    def error(self, message: str) -> EvaluationError:
        return EvaluationError(message, self.expression)

    def eval(self, node: Expr) -> Any:
        if isinstance(node, Literal):
            return node.value
        elif isinstance(node, Name):
            return self._eval_name(node)
        elif isinstance(node, Attribute):
            return self._eval_attribute(node)
        elif isinstance(node, Index):
            return self._eval_index(node)
        elif isinstance(node, Call):
            return self._eval_call(node)
        elif isinstance(node, Not):
            return not self._require_bool(self.eval(node.operand), "not")
        elif isinstance(node, BoolOp):
            return self._eval_bool_op(node)
        elif isinstance(node, Compare):
            return self._eval_compare(node)
        else:
            raise self.error(f"Unknown expression node: {type(node).__name__}")

    def _eval_name(self, node: Name) -> Any:
        if self.lookup.has_value(node.name):
            return self.lookup.get_value(node.name)
        if self.strict_names:
            raise self.error(f"Cannot resolve '{node.name}'")
        return None

    def _eval_attribute(self, node: Attribute) -> Any:
        target = self.eval(node.target)
        if target is None:
            raise self.error(f"Cannot read '{node.name}' of null")
        try:
            return resolve_step(target, node.name)
        except LookupError:
            raise self.error(f"Cannot resolve '{node.name}' on {type(target).__name__}") from None

    def _eval_index(self, node: Index) -> Any:
        target = self.eval(node.target)
        index = self.eval(node.index)
        if target is None:
            raise self.error(f"Cannot index null with {index!r}")
        try:
            return target[index]
        except (LookupError, TypeError):
            raise self.error(f"Cannot index {type(target).__name__} with {index!r}") from None

    def _eval_call(self, node: Call) -> Any:
        function = self.functions.get(node.function)
        if function is None:
            raise self.error(f"Unknown function '{node.function}'")
        args = [self.eval(arg) for arg in node.args]
        try:
            return function(*args)
        except (TypeError, ValueError) as e:
            raise self.error(f"{node.function}() failed: {e}") from e

    def _eval_bool_op(self, node: BoolOp) -> bool:
        left = self._require_bool(self.eval(node.left), node.operator)
        if node.operator == "and" and not left:
            return False
        if node.operator == "or" and left:
            return True
        return self._require_bool(self.eval(node.right), node.operator)

    def _eval_compare(self, node: Compare) -> bool:
        left = self.eval(node.left)
        right = self.eval(node.right)
        op = node.operator
        if op == "==":
            return left == right
        if op == "!=":
            return left != right
        if op == "in":
            if not isinstance(right, Container) or (isinstance(right, (str, bytes)) and not isinstance(left, str)):
                raise self.error(f"Cannot test membership in {type(right).__name__}")
            return left in right
        try:
            if op == "<":
                return left < right
            if op == "<=":
                return left <= right
            if op == ">":
                return left > right
            if op == ">=":
                return left >= right
        except TypeError:
            raise self.error(
                f"Cannot compare {type(left).__name__} {op} {type(right).__name__}"
            ) from None
        raise self.error(f"Unknown operator '{op}'")

    def _require_bool(self, value: Any, operator: str) -> bool:
        if not isinstance(value, bool):
            raise self.error(f"Operand of '{operator}' must be a boolean, got {type(value).__name__}")
        return value

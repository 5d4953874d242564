"""Expression evaluation over bound cell variables.

Expressions use Python expression syntax and are evaluated by walking the
``ast`` tree. Only a small set of nodes is accepted:

- literals: numbers, strings, True / False / None
- names bound in the variable mapping (cell identifiers)
- arithmetic: + - * / // % **, unary - + not
- comparisons (chainable), and / or, ``x if cond else y``
- calls to: abs, min, max, round, sum, len, str, int, float

Anything else (attributes, subscripts, lambdas, comprehensions, keyword
arguments) is rejected with an EvaluationError.

Integers are 64-bit signed and floats must be finite. Every intermediate
value is checked, so an overflow is reported where it happens and never
reaches the store.
"""

from __future__ import annotations

import ast
import math
import operator
from typing import Any, Callable, Mapping

from rsheet.contracts.common import CellValue, EvaluationError

MAX_EXPONENT = 10_000
INT_MIN = -(2**63)
INT_MAX = 2**63 - 1

_ARITH_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_COMPARE_OPS: dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}

_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "abs": abs,
    "min": min,
    "max": max,
    "round": round,
    "sum": lambda *args: sum(args),
    "len": len,
    "str": str,
    "int": int,
    "float": float,
}

# Functions whose arguments must all be numbers (bool is not a number here).
_NUMERIC_FUNCTIONS = frozenset({"abs", "round", "sum"})
# Functions that order their arguments: all numbers or all text.
_ORDERING_FUNCTIONS = frozenset({"min", "max"})
# Conversions accept numbers and text.
_CONVERSIONS = frozenset({"int", "float"})

_SCALAR_TYPES = (type(None), bool, int, float, str)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _checked(value: Any) -> Any:
    """Reject values that cannot be stored: out-of-range ints, inf and nan."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if not INT_MIN <= value <= INT_MAX:
            raise EvaluationError("Arithmetic overflow")
    elif isinstance(value, float):
        if math.isnan(value):
            raise EvaluationError("Result is not a number")
        if math.isinf(value):
            raise EvaluationError("Arithmetic overflow")
    return value


def _pow_overflows(base: Any, exponent: Any) -> bool:
    """True when an int power is certain to leave the 64-bit range."""
    if not (isinstance(base, int) and isinstance(exponent, int)):
        return False
    if exponent <= 0 or abs(base) <= 1:
        return False
    return (abs(base).bit_length() - 1) * exponent >= 64


def _type_name(value: Any) -> str:
    if value is None:
        return "none"
    if isinstance(value, str):
        return "text"
    return type(value).__name__


class ExpressionEvaluator:
    """Evaluates one expression against a read-only variable mapping."""

    def __init__(self, variables: Mapping[str, CellValue]) -> None:
        self.variables = variables

    def evaluate(self, expression: str) -> CellValue:
        source = expression.strip()
        if not source:
            raise EvaluationError("Syntax error: empty expression")
        try:
            tree = ast.parse(source, mode="eval")
        except SyntaxError as e:
            raise EvaluationError(f"Syntax error: {e.msg}") from e
        except (ValueError, RecursionError) as e:
            raise EvaluationError(f"Syntax error: {e}") from e

        try:
            result = self._eval(tree.body)
        except RecursionError as e:
            raise EvaluationError("Expression is nested too deeply") from e

        if not isinstance(result, _SCALAR_TYPES):
            raise EvaluationError(f"Unsupported result type: {type(result).__name__}")
        return result

    def _eval(self, node: ast.AST) -> Any:
        return _checked(self._eval_node(node))

    def _eval_node(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Constant):
            if not isinstance(node.value, _SCALAR_TYPES):
                raise EvaluationError(f"Unsupported literal: {node.value!r}")
            return node.value

        elif isinstance(node, ast.Name):
            if node.id not in self.variables:
                raise EvaluationError(f"Variable not found: {node.id}")
            return self.variables[node.id]

        elif isinstance(node, ast.BinOp):
            return self._binop(node)

        elif isinstance(node, ast.UnaryOp):
            operand = self._eval(node.operand)
            if isinstance(node.op, ast.Not):
                return not self._expect_bool(operand, "not")
            if not _is_number(operand):
                raise EvaluationError(
                    f"Type mismatch: unary operator on {_type_name(operand)}"
                )
            if isinstance(node.op, ast.USub):
                return -operand
            if isinstance(node.op, ast.UAdd):
                return operand
            raise EvaluationError(f"Unsupported operator: {type(node.op).__name__}")

        elif isinstance(node, ast.BoolOp):
            is_and = isinstance(node.op, ast.And)
            for value_node in node.values:
                value = self._expect_bool(self._eval(value_node), "and" if is_and else "or")
                if value is not is_and:
                    return value
            return is_and

        elif isinstance(node, ast.Compare):
            return self._compare(node)

        elif isinstance(node, ast.IfExp):
            if self._expect_bool(self._eval(node.test), "if"):
                return self._eval(node.body)
            return self._eval(node.orelse)

        elif isinstance(node, ast.Call):
            return self._call(node)

        raise EvaluationError(f"Unsupported expression: {type(node).__name__}")

    def _binop(self, node: ast.BinOp) -> Any:
        op = _ARITH_OPS.get(type(node.op))
        if op is None:
            raise EvaluationError(f"Unsupported operator: {type(node.op).__name__}")
        left = self._eval(node.left)
        right = self._eval(node.right)

        text_concat = isinstance(node.op, ast.Add) and isinstance(left, str) and isinstance(right, str)
        if not text_concat and not (_is_number(left) and _is_number(right)):
            raise EvaluationError(
                f"Type mismatch: {_type_name(left)} {type(node.op).__name__} {_type_name(right)}"
            )
        if isinstance(node.op, ast.Pow):
            if abs(right) > MAX_EXPONENT:
                raise EvaluationError(f"Exponent too large: {right}")
            if _pow_overflows(left, right):
                raise EvaluationError("Arithmetic overflow")

        try:
            return op(left, right)
        except ZeroDivisionError as e:
            raise EvaluationError("Division by zero") from e
        except OverflowError as e:
            raise EvaluationError(f"Arithmetic overflow: {e}") from e

    def _compare(self, node: ast.Compare) -> bool:
        left = self._eval(node.left)
        for op_node, right_node in zip(node.ops, node.comparators):
            op = _COMPARE_OPS.get(type(op_node))
            if op is None:
                raise EvaluationError(f"Unsupported comparison: {type(op_node).__name__}")
            right = self._eval(right_node)
            if not isinstance(op_node, (ast.Eq, ast.NotEq)):
                comparable = (_is_number(left) and _is_number(right)) or (
                    isinstance(left, str) and isinstance(right, str)
                )
                if not comparable:
                    raise EvaluationError(
                        f"Type mismatch: cannot order {_type_name(left)} and {_type_name(right)}"
                    )
            if not op(left, right):
                return False
            left = right
        return True

    def _call(self, node: ast.Call) -> Any:
        if not isinstance(node.func, ast.Name) or node.func.id not in _FUNCTIONS:
            name = node.func.id if isinstance(node.func, ast.Name) else type(node.func).__name__
            raise EvaluationError(f"Function not found: {name}")
        if node.keywords or any(isinstance(a, ast.Starred) for a in node.args):
            raise EvaluationError(f"Unsupported arguments in call to {node.func.id}")

        name = node.func.id
        args = [self._eval(a) for a in node.args]
        self._check_call_args(name, args)
        try:
            return _FUNCTIONS[name](*args)
        except (TypeError, ValueError) as e:
            raise EvaluationError(f"{node.func.id}(): {e}") from e
        except OverflowError as e:
            raise EvaluationError(f"Arithmetic overflow: {e}") from e

    @staticmethod
    def _check_call_args(name: str, args: list[Any]) -> None:
        if name in _NUMERIC_FUNCTIONS:
            for arg in args:
                if not _is_number(arg):
                    raise EvaluationError(
                        f"Type mismatch: {name}() expects numbers, got {_type_name(arg)}"
                    )
        elif name in _ORDERING_FUNCTIONS:
            if not (all(_is_number(a) for a in args) or all(isinstance(a, str) for a in args)):
                kinds = ", ".join(_type_name(a) for a in args)
                raise EvaluationError(f"Type mismatch: {name}() cannot order {kinds}")
        elif name in _CONVERSIONS:
            for arg in args:
                if not (_is_number(arg) or isinstance(arg, str)):
                    raise EvaluationError(
                        f"Type mismatch: {name}() cannot convert {_type_name(arg)}"
                    )

    @staticmethod
    def _expect_bool(value: Any, context: str) -> bool:
        if not isinstance(value, bool):
            raise EvaluationError(f"Type mismatch: '{context}' expects bool, got {_type_name(value)}")
        return value


def evaluate(expression: str, variables: Mapping[str, CellValue]) -> CellValue:
    """Evaluate *expression* with *variables* bound. Raises EvaluationError."""
    return ExpressionEvaluator(variables).evaluate(expression)

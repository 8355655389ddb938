"""
Charla Chat Executors - Calculations

Arithmetic over a restricted grammar: numbers, + - * / // % **, unary
signs and parentheses. Expressions are parsed with ``ast`` and walked by
hand; names, calls, attributes and every other node type are rejected.
"""

import ast
import logging
import math
import operator
from typing import Any, Dict, Union

from errors import handle_async_tool_errors, ValidationError, ErrorCode

logger = logging.getLogger(__name__)

Number = Union[int, float]

MAX_EXPRESSION_LENGTH = 200
MAX_EXPONENT = 100
MAX_DEPTH = 50
# Integer results beyond this cannot be rendered back to the model sensibly
MAX_MAGNITUDE = 10 ** 100

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

# Symbols users (and models) commonly type for the same operators
_SYMBOL_ALIASES = {
    "×": "*",
    "÷": "/",
    "^": "**",
    "−": "-",
}


class ExpressionError(ValueError):
    """The expression is outside the supported arithmetic grammar."""


def _normalize(expression: str) -> str:
    text = expression.strip()
    for symbol, replacement in _SYMBOL_ALIASES.items():
        text = text.replace(symbol, replacement)
    return text


def _eval_node(node: ast.AST, depth: int = 0) -> Number:
    if depth > MAX_DEPTH:
        raise ExpressionError("Expression is nested too deeply")

    if isinstance(node, ast.Expression):
        return _eval_node(node.body, depth + 1)

    if isinstance(node, ast.Constant):
        # bool is an int subclass; True/False are not numbers here
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ExpressionError(f"Unsupported literal: {node.value!r}")
        return node.value

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand, depth + 1))

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _eval_node(node.left, depth + 1)
        right = _eval_node(node.right, depth + 1)
        if isinstance(node.op, ast.Pow):
            if abs(right) > MAX_EXPONENT:
                raise ExpressionError(f"Exponent too large (max {MAX_EXPONENT})")
            if abs(left) > MAX_MAGNITUDE and abs(right) > 1:
                raise OverflowError("Result too large")
        value = _BINARY_OPS[type(node.op)](left, right)
        if isinstance(value, complex):
            raise ExpressionError("Result is not a real number")
        return value

    raise ExpressionError(f"Unsupported syntax: {type(node).__name__}")


def evaluate_expression(expression: str) -> Number:
    """Evaluate an arithmetic expression.

    Raises:
        ExpressionError: syntax outside the grammar
        ZeroDivisionError: division or modulo by zero
        OverflowError: float result out of range
    """
    text = _normalize(expression or "")
    if not text:
        raise ExpressionError("Empty expression")
    if len(text) > MAX_EXPRESSION_LENGTH:
        raise ExpressionError(f"Expression longer than {MAX_EXPRESSION_LENGTH} characters")

    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as e:
        raise ExpressionError(f"Invalid expression: {e.msg}") from None

    result = _eval_node(tree)
    if isinstance(result, float):
        if math.isnan(result) or math.isinf(result):
            raise OverflowError("Result is not a finite number")
        if result.is_integer() and abs(result) < 1e15:
            return int(result)
    elif abs(result) > MAX_MAGNITUDE ** 10:
        raise OverflowError("Result too large")
    return result


@handle_async_tool_errors("calculator")
async def execute_calculator(expression: str) -> Dict[str, Any]:
    """Evaluate a basic arithmetic expression."""
    try:
        result = evaluate_expression(str(expression))
    except ExpressionError as e:
        raise ValidationError(
            "Error al evaluar la expresión",
            details=str(e),
            code=ErrorCode.VALIDATION_INVALID_FORMAT,
            parameter="expression",
            received=str(expression)[:MAX_EXPRESSION_LENGTH],
        )
    except ZeroDivisionError:
        raise ValidationError(
            "Error al evaluar la expresión",
            details="Division by zero",
            code=ErrorCode.VALIDATION_OUT_OF_RANGE,
            parameter="expression",
        )
    except OverflowError as e:
        raise ValidationError(
            "Error al evaluar la expresión",
            details=str(e) or "Result too large",
            code=ErrorCode.VALIDATION_OUT_OF_RANGE,
            parameter="expression",
        )

    return {"success": True, "expression": expression, "result": result}

# -----------------------------------------------------------------------------
# Safe expression evaluator (controlled environment)
# Purpose:
#   Compile catalog formula expressions such as "v_s / r_s" once, check which
#   names they reference, and evaluate them over pint Quantities.
# Safety:
#   - The parsed AST is checked against a node whitelist before compiling:
#     numbers, + - * / ** %, unary +/-, field names and calls to ALLOWED.
#   - Attribute access, lambdas, comprehensions and unknown names are
#     rejected at compile time.
#   - `__builtins__` disabled at evaluation time.
# -----------------------------------------------------------------------------

from __future__ import annotations
import ast
import math
from types import CodeType
from typing import Any, Dict, Iterable, Set

from .units import as_quantity

class ExpressionError(Exception): pass

# Whitelisted helpers; all of them work on Quantities as well as numbers.
ALLOWED = {
    "sqrt": lambda x: x ** 0.5,
    "abs": abs,
    "min": min,
    "max": max,
    "pi": math.pi,
}

# Allowed AST operator node types
_ALLOWED_BINOPS = {ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod, ast.Pow}
_ALLOWED_UNARYOPS = {ast.UAdd, ast.USub}


def _check_ast(node: ast.AST, known: Set[str], unknown: Set[str]) -> None:
    """
    Walk a parsed expression under a strict whitelist. Unknown identifiers
    are collected in `unknown`; any other unsupported construct raises.
    """
    if isinstance(node, ast.Expression):
        _check_ast(node.body, known, unknown)
    elif isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ExpressionError(f"Unsupported constant {node.value!r}")
    elif isinstance(node, ast.Name):
        if node.id not in known:
            unknown.add(node.id)
    elif isinstance(node, ast.BinOp):
        if type(node.op) not in _ALLOWED_BINOPS:
            raise ExpressionError(f"Unsupported operator {type(node.op).__name__}")
        _check_ast(node.left, known, unknown)
        _check_ast(node.right, known, unknown)
    elif isinstance(node, ast.UnaryOp):
        if type(node.op) not in _ALLOWED_UNARYOPS:
            raise ExpressionError(f"Unsupported operator {type(node.op).__name__}")
        _check_ast(node.operand, known, unknown)
    elif isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in ALLOWED:
            raise ExpressionError("Only calls to " + ", ".join(sorted(ALLOWED)) + " are allowed")
        if node.keywords:
            raise ExpressionError(f"Keyword arguments are not allowed in {node.func.id}()")
        for arg in node.args:
            _check_ast(arg, known, unknown)
    else:
        raise ExpressionError(f"Unsupported syntax: {type(node).__name__}")


def compile_expr(expr: str, names: Iterable[str]) -> CodeType:
    """
    Compile `expr` for repeated evaluation.
    Every identifier must be one of `names` or a whitelisted helper.
    """
    try:
        tree = ast.parse(expr, mode="eval")
    except SyntaxError as e:
        raise ExpressionError(f"Invalid expression {expr!r}: {e.msg}") from e

    unknown: Set[str] = set()
    try:
        _check_ast(tree, set(names) | set(ALLOWED), unknown)
    except ExpressionError as e:
        raise ExpressionError(f"Expression {expr!r}: {e}") from e
    if unknown:
        raise ExpressionError(f"Expression {expr!r} uses unknown names: {', '.join(sorted(unknown))}")
    return compile(tree, "<formula>", "eval")


def safe_eval(code: CodeType, vars: Dict[str, Any]):
    """
    Evaluate a compiled expression with only `vars` and ALLOWED in scope.
    Returns a Quantity (bare numbers become dimensionless).
    """
    env = {"__builtins__": {}}
    env.update(ALLOWED)
    env.update(vars)
    return as_quantity(eval(code, env, {}))

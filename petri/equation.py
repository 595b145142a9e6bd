"""
Trait equation compiler.

Turns an expression over trait names (e.g. "fitness * 2 + (x > 10)") into
a callable that evaluates it for one organism. Names are resolved against
a data layout once, at compile time; evaluation only indexes slots.

Expressions use Python syntax via the ast module, plus the config-language
spellings && || and ! for boolean operators.

Evaluation never raises for bad arithmetic: division by zero, math domain
errors and overflow all produce nan.
"""

import ast
import math
import operator
import re
from typing import Callable, Dict, List, Optional, Set

from .errors import EquationSyntaxError, UnknownTraitReferenceError, TraitTypeError
from .layout import DataLayout


# Runtime math failures inside an equation evaluate to nan
_MATH_ERRORS = (ValueError, OverflowError, ZeroDivisionError)


def _divide(a, b):
    return a / b if b != 0 else math.nan


def _floor_divide(a, b):
    return a // b if b != 0 else math.nan


def _modulo(a, b):
    return a % b if b != 0 else math.nan


def _power(a, b):
    try:
        result = a ** b
    except _MATH_ERRORS:
        return math.nan
    # Negative base with a fractional exponent
    return math.nan if isinstance(result, complex) else result


_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: _divide,
    ast.FloorDiv: _floor_divide,
    ast.Mod: _modulo,
    ast.Pow: _power,
}

_UNARY_OPS = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
    ast.Not: operator.not_,
}

_COMPARE_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}

# Math functions callable from equations
DEFAULT_FUNCTIONS: Dict[str, Callable] = {
    'abs': abs,
    'min': min,
    'max': max,
    'pow': math.pow,
    'sqrt': math.sqrt,
    'exp': math.exp,
    'log': math.log,
    'log2': math.log2,
    'log10': math.log10,
    'floor': math.floor,
    'ceil': math.ceil,
    'sin': math.sin,
    'cos': math.cos,
    'tan': math.tan,
}

# Config-language boolean operators -> Python spelling
_BOOL_REWRITES = [
    (re.compile(r'&&'), ' and '),
    (re.compile(r'\|\|'), ' or '),
    (re.compile(r'!(?!=)'), ' not '),
]


def normalize_equation(text: str) -> str:
    """Rewrite && || ! into and/or/not and strip surrounding whitespace"""
    for pattern, replacement in _BOOL_REWRITES:
        text = pattern.sub(replacement, text)
    return text.strip()


class Equation:
    """
    Compiled per-organism equation.

    Stateless: safe to call repeatedly for any organism built on the same
    data layout.
    """

    def __init__(self, text: str, names: Set[str], fun: Callable[[list], float]):
        self.text = text
        self.names = frozenset(names)
        self._fun = fun

    def __call__(self, org) -> float:
        try:
            return float(self._fun(org.values))
        except OverflowError:
            return math.nan

    def __repr__(self):
        return f"Equation({self.text!r})"


class EquationCompiler:
    """
    Compiles trait equations against a data layout.

    Example:
        compiler = EquationCompiler()
        fun = compiler.build(layout, "x > 10")
        passed = [org for org in population if fun(org)]
    """

    def __init__(self, functions: Optional[Dict[str, Callable]] = None):
        """
        Args:
            functions: Override DEFAULT_FUNCTIONS (name -> callable)
        """
        self.functions = dict(DEFAULT_FUNCTIONS if functions is None else functions)

    def parse(self, text: str) -> ast.Expression:
        """
        Parse equation text.

        Raises:
            EquationSyntaxError: If the text is not a valid expression
        """
        source = normalize_equation(text)
        if not source:
            raise EquationSyntaxError("Empty equation.")
        try:
            return ast.parse(source, mode='eval')
        except SyntaxError as e:
            raise EquationSyntaxError(f"Invalid equation '{text}': {e.msg}") from e

    def names_used(self, text: str) -> Set[str]:
        """Trait names referenced by an equation (function names excluded)"""
        tree = self.parse(text)
        called = {
            id(node.func) for node in ast.walk(tree)
            if isinstance(node, ast.Call) and isinstance(node.func, ast.Name)
        }
        return {
            node.id for node in ast.walk(tree)
            if isinstance(node, ast.Name) and id(node) not in called
        }

    def build(self, layout: DataLayout, text: str) -> Equation:
        """
        Compile an equation against a layout.

        Raises:
            EquationSyntaxError: Unparseable text or unsupported construct
            UnknownTraitReferenceError: Name absent from the layout
            TraitTypeError: Name refers to a non-numeric trait
        """
        tree = self.parse(text)
        names: Set[str] = set()
        fun = self._compile(tree.body, layout, text, names)
        return Equation(text, names, fun)

    def _compile(self, node: ast.AST, layout: DataLayout, text: str, names: Set[str]) -> Callable[[list], float]:
        if isinstance(node, ast.Constant):
            value = node.value
            if not isinstance(value, (bool, int, float)):
                raise EquationSyntaxError(f"Unsupported literal {value!r} in equation '{text}'.")
            return lambda values: value

        if isinstance(node, ast.Name):
            if not layout.has_name(node.id):
                raise UnknownTraitReferenceError(
                    f"Unknown trait '{node.id}' in equation '{text}'."
                )
            slot = layout.get_id(node.id)
            if not layout.is_numeric(slot):
                raise TraitTypeError(
                    f"Trait '{node.id}' in equation '{text}' is not numeric."
                )
            names.add(node.id)
            return lambda values: values[slot]

        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            op = _BINARY_OPS[type(node.op)]
            left = self._compile(node.left, layout, text, names)
            right = self._compile(node.right, layout, text, names)

            def binary(values):
                try:
                    return op(left(values), right(values))
                except _MATH_ERRORS:
                    return math.nan
            return binary

        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            op = _UNARY_OPS[type(node.op)]
            operand = self._compile(node.operand, layout, text, names)
            return lambda values: op(operand(values))

        if isinstance(node, ast.BoolOp):
            parts = [self._compile(v, layout, text, names) for v in node.values]
            if isinstance(node.op, ast.And):
                return lambda values: all(p(values) for p in parts)
            return lambda values: any(p(values) for p in parts)

        if isinstance(node, ast.Compare) and all(type(op) in _COMPARE_OPS for op in node.ops):
            first = self._compile(node.left, layout, text, names)
            ops = [_COMPARE_OPS[type(op)] for op in node.ops]
            rest = [self._compile(c, layout, text, names) for c in node.comparators]

            def compare(values):
                left = first(values)
                for op, right_fun in zip(ops, rest):
                    right = right_fun(values)
                    if not op(left, right):
                        return False
                    left = right
                return True
            return compare

        if isinstance(node, ast.IfExp):
            test = self._compile(node.test, layout, text, names)
            body = self._compile(node.body, layout, text, names)
            orelse = self._compile(node.orelse, layout, text, names)
            return lambda values: body(values) if test(values) else orelse(values)

        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and not node.keywords:
            if node.func.id not in self.functions:
                raise EquationSyntaxError(f"Unknown function '{node.func.id}' in equation '{text}'.")
            fn = self.functions[node.func.id]
            args: List[Callable] = [self._compile(a, layout, text, names) for a in node.args]

            def call(values):
                try:
                    return fn(*(a(values) for a in args))
                except _MATH_ERRORS:
                    return math.nan
            return call

        raise EquationSyntaxError(
            f"Unsupported expression '{ast.dump(node)}' in equation '{text}'."
        )

"""
Expression AST for rule conditions and actions.

Nodes are immutable. ``format_expression`` renders a node back to GRL
source; ``to_logic`` / ``from_logic`` convert to and from a JSON Logic
style dict so rules can be stored as plain data.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class BinaryOperator(str, Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS_THAN = "<"
    LESS_EQUAL = "<="
    GREATER_THAN = ">"
    GREATER_EQUAL = ">="
    AND = "&&"
    OR = "||"


class UnaryOperator(str, Enum):
    NOT = "!"
    NEGATE = "-"


# Binding power, low to high
PRECEDENCE = {
    BinaryOperator.OR: 1,
    BinaryOperator.AND: 2,
    BinaryOperator.EQUAL: 3,
    BinaryOperator.NOT_EQUAL: 3,
    BinaryOperator.LESS_THAN: 4,
    BinaryOperator.LESS_EQUAL: 4,
    BinaryOperator.GREATER_THAN: 4,
    BinaryOperator.GREATER_EQUAL: 4,
    BinaryOperator.ADD: 5,
    BinaryOperator.SUBTRACT: 5,
    BinaryOperator.MULTIPLY: 6,
    BinaryOperator.DIVIDE: 6,
}
UNARY_PRECEDENCE = 7


@dataclass(frozen=True)
class NumberLiteral:
    value: float

    def __post_init__(self):
        object.__setattr__(self, "value", float(self.value))


@dataclass(frozen=True)
class StringLiteral:
    value: str

    def __post_init__(self):
        check_grl_string(self.value)


@dataclass(frozen=True)
class BoolLiteral:
    value: bool


@dataclass(frozen=True)
class NullLiteral:
    pass


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class FieldAccess:
    base: "Expression"
    field: str


@dataclass(frozen=True)
class ArrayIndex:
    base: "Expression"
    index: "Expression"


@dataclass(frozen=True)
class BinaryOp:
    op: BinaryOperator
    left: "Expression"
    right: "Expression"


@dataclass(frozen=True)
class UnaryOp:
    op: UnaryOperator
    operand: "Expression"


@dataclass(frozen=True)
class Assignment:
    """Write ``value`` at ``target``; only valid as a rule action."""

    target: "Expression"
    value: "Expression"


Expression = Union[
    NumberLiteral,
    StringLiteral,
    BoolLiteral,
    NullLiteral,
    Variable,
    FieldAccess,
    ArrayIndex,
    BinaryOp,
    UnaryOp,
    Assignment,
]

LITERAL_TYPES = (NumberLiteral, StringLiteral, BoolLiteral, NullLiteral)


def is_path(expr: Expression) -> bool:
    """True if expr is a Variable / FieldAccess / ArrayIndex chain."""
    while isinstance(expr, (FieldAccess, ArrayIndex)):
        expr = expr.base
    return isinstance(expr, Variable)


def root_name(expr: Expression) -> str:
    """Name of the fact at the root of a path expression."""
    while isinstance(expr, (FieldAccess, ArrayIndex)):
        expr = expr.base
    if not isinstance(expr, Variable):
        raise ValueError("Expression is not a fact path")
    return expr.name


def _format_number(value: float) -> str:
    if float(value).is_integer() and abs(value) < 1e16:
        return str(int(value))
    text = repr(value)
    if "e" in text:
        # GRL numbers have no exponent form
        text = f"{value:.20f}".rstrip("0").rstrip(".")
    return text


def check_grl_string(value: str) -> None:
    """
    Reject strings that GRL cannot spell.

    The only escape is ``\\"``, so a trailing backslash would swallow the
    closing quote.
    """
    if value.endswith("\\"):
        raise ValueError(f"GRL strings cannot end with a backslash: {value!r}")


def quote(value: str) -> str:
    """Render a string as a GRL string literal."""
    return '"' + value.replace('"', '\\"') + '"'


def format_expression(expr: Expression, parent_precedence: int = 0) -> str:
    """Render an expression as GRL source text."""
    if isinstance(expr, NumberLiteral):
        text = _format_number(expr.value)
        if expr.value < 0 and parent_precedence >= UNARY_PRECEDENCE:
            return f"({text})"
        return text
    if isinstance(expr, StringLiteral):
        return quote(expr.value)
    if isinstance(expr, BoolLiteral):
        return "true" if expr.value else "false"
    if isinstance(expr, NullLiteral):
        return "null"
    if isinstance(expr, Variable):
        return expr.name
    if isinstance(expr, FieldAccess):
        return f"{format_expression(expr.base, UNARY_PRECEDENCE + 1)}.{expr.field}"
    if isinstance(expr, ArrayIndex):
        base = format_expression(expr.base, UNARY_PRECEDENCE + 1)
        return f"{base}[{format_expression(expr.index)}]"
    if isinstance(expr, UnaryOp):
        text = expr.op.value + format_expression(expr.operand, UNARY_PRECEDENCE)
        if parent_precedence > UNARY_PRECEDENCE:
            return f"({text})"
        return text
    if isinstance(expr, BinaryOp):
        precedence = PRECEDENCE[expr.op]
        left = format_expression(expr.left, precedence)
        # Operators are left-associative: a right operand at the same level needs parens
        right = format_expression(expr.right, precedence + 1)
        text = f"{left} {expr.op.value} {right}"
        if precedence < parent_precedence:
            return f"({text})"
        return text
    if isinstance(expr, Assignment):
        return f"{format_expression(expr.target)} = {format_expression(expr.value)}"
    raise TypeError(f"Not an expression: {expr!r}")


def to_logic(expr: Expression) -> Any:
    """
    Convert an expression into a JSON Logic style structure.

    Literals map to JSON scalars (strings are wrapped as ``{"str": ...}`` so
    they cannot be confused with operators), paths map to ``{"var": ...}``,
    ``{"field": [...]}`` and ``{"index": [...]}``.
    """
    if isinstance(expr, NumberLiteral):
        return expr.value
    if isinstance(expr, BoolLiteral):
        return expr.value
    if isinstance(expr, NullLiteral):
        return None
    if isinstance(expr, StringLiteral):
        return {"str": expr.value}
    if isinstance(expr, Variable):
        return {"var": expr.name}
    if isinstance(expr, FieldAccess):
        return {"field": [to_logic(expr.base), expr.field]}
    if isinstance(expr, ArrayIndex):
        return {"index": [to_logic(expr.base), to_logic(expr.index)]}
    if isinstance(expr, BinaryOp):
        return {expr.op.value: [to_logic(expr.left), to_logic(expr.right)]}
    if isinstance(expr, UnaryOp):
        key = "!" if expr.op is UnaryOperator.NOT else "neg"
        return {key: to_logic(expr.operand)}
    if isinstance(expr, Assignment):
        return {"set": [to_logic(expr.target), to_logic(expr.value)]}
    raise TypeError(f"Not an expression: {expr!r}")


def from_logic(logic: Any) -> Expression:
    """Inverse of ``to_logic``."""
    if isinstance(logic, bool):
        return BoolLiteral(logic)
    if logic is None:
        return NullLiteral()
    if isinstance(logic, (int, float)):
        return NumberLiteral(float(logic))
    if not isinstance(logic, dict) or len(logic) != 1:
        raise ValueError(f"Invalid logic expression: {logic!r}")

    operator, args = next(iter(logic.items()))

    if operator == "str":
        return StringLiteral(args)
    if operator == "var":
        return Variable(args)
    if operator == "field":
        return FieldAccess(from_logic(args[0]), args[1])
    if operator == "index":
        return ArrayIndex(from_logic(args[0]), from_logic(args[1]))
    if operator == "!":
        return UnaryOp(UnaryOperator.NOT, from_logic(args))
    if operator == "neg":
        return UnaryOp(UnaryOperator.NEGATE, from_logic(args))
    if operator == "set":
        return Assignment(from_logic(args[0]), from_logic(args[1]))

    try:
        binary = BinaryOperator(operator)
    except ValueError:
        raise ValueError(f"Unknown operator: {operator}") from None
    if not isinstance(args, list) or len(args) != 2:
        raise ValueError(f"Operator {operator} requires 2 arguments")
    return BinaryOp(binary, from_logic(args[0]), from_logic(args[1]))

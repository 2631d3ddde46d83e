"""
Expression Evaluator for rule conditions and actions.

Evaluates AST nodes against a FactStore. Every operand-kind or lookup
problem raises an EvaluationError subclass.
"""

from __future__ import annotations

import copy
import operator
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..errors import (
    DivisionByZero,
    IndexOutOfRange,
    InvalidAssignment,
    TypeMismatch,
    UnknownVariable,
)
from ..facts import FactStore, ValueKind, kind_of, values_equal
from ..ast import (
    LITERAL_TYPES,
    ArrayIndex,
    Assignment,
    BinaryOp,
    BinaryOperator,
    Expression,
    FieldAccess,
    NullLiteral,
    UnaryOp,
    UnaryOperator,
    Variable,
    format_expression,
)

_COMPARISONS: Dict[BinaryOperator, Callable[[float, float], bool]] = {
    BinaryOperator.LESS_THAN: operator.lt,
    BinaryOperator.LESS_EQUAL: operator.le,
    BinaryOperator.GREATER_THAN: operator.gt,
    BinaryOperator.GREATER_EQUAL: operator.ge,
}

_ARITHMETIC: Dict[BinaryOperator, Callable[[float, float], float]] = {
    BinaryOperator.ADD: operator.add,
    BinaryOperator.SUBTRACT: operator.sub,
    BinaryOperator.MULTIPLY: operator.mul,
    BinaryOperator.DIVIDE: operator.truediv,
}

PathStep = Union[str, int]


class ExpressionEvaluator:
    """
    Evaluator for rule expressions.

    ``evaluate`` is side-effect free; ``apply`` runs an action and is the
    only path through which rules write facts.
    """

    def evaluate(self, expr: Expression, facts: FactStore) -> Any:
        """
        Evaluate an expression against the fact store.

        Args:
            expr: The expression to evaluate.
            facts: The facts to read.

        Returns:
            The resulting fact value.
        """
        if isinstance(expr, LITERAL_TYPES):
            if isinstance(expr, NullLiteral):
                return None
            return expr.value

        if isinstance(expr, Variable):
            return facts.get_value(expr.name)

        if isinstance(expr, FieldAccess):
            base = self.evaluate(expr.base, facts)
            return facts.get_field(base, expr.field)

        if isinstance(expr, ArrayIndex):
            base = self.evaluate(expr.base, facts)
            if kind_of(base) is not ValueKind.ARRAY:
                raise TypeMismatch(f"Cannot index into {kind_of(base).value}")
            index = self._to_index(self.evaluate(expr.index, facts))
            return facts.get_index(base, index)

        if isinstance(expr, UnaryOp):
            return self._eval_unary(expr, facts)

        if isinstance(expr, BinaryOp):
            return self._eval_binary(expr, facts)

        if isinstance(expr, Assignment):
            raise InvalidAssignment(
                f"Assignment cannot be used as a value: {format_expression(expr)}"
            )

        raise TypeError(f"Not an expression: {expr!r}")

    def evaluate_condition(self, expr: Expression, facts: FactStore) -> Optional[bool]:
        """
        Evaluate a rule condition.

        Returns:
            The boolean result, or None if the condition produced a
            non-boolean value.
        """
        value = self.evaluate(expr, facts)
        if kind_of(value) is ValueKind.BOOL:
            return value
        return None

    def apply(self, action: Expression, facts: FactStore) -> Optional[str]:
        """
        Execute a rule action.

        Args:
            action: An Assignment, or any expression evaluated for its errors.
            facts: The facts to update.

        Returns:
            The name of the root fact written, or None if nothing was written.
        """
        if not isinstance(action, Assignment):
            self.evaluate(action, facts)
            return None

        value = self.evaluate(action.value, facts)
        root, steps = self._resolve_path(action.target, facts)

        if not steps:
            facts.set(root, copy.deepcopy(value))
            return root

        if root not in facts:
            raise UnknownVariable(root)

        # Write into a copy, then store it back through the single mutator
        updated = copy.deepcopy(facts.get_value(root))
        container = updated
        for step in steps[:-1]:
            container = self._step_into(container, step, facts)
        self._write(container, steps[-1], copy.deepcopy(value))
        facts.set(root, updated)
        return root

    def _eval_unary(self, expr: UnaryOp, facts: FactStore) -> Any:
        value = self.evaluate(expr.operand, facts)
        kind = kind_of(value)
        if expr.op is UnaryOperator.NOT:
            if kind is not ValueKind.BOOL:
                raise TypeMismatch(f"Operator '!' requires bool, got {kind.value}")
            return not value
        if kind is not ValueKind.NUMBER:
            raise TypeMismatch(f"Unary '-' requires number, got {kind.value}")
        return -value

    def _eval_binary(self, expr: BinaryOp, facts: FactStore) -> Any:
        op = expr.op

        if op in (BinaryOperator.AND, BinaryOperator.OR):
            return self._eval_logical(expr, facts)

        left = self.evaluate(expr.left, facts)
        right = self.evaluate(expr.right, facts)

        if op is BinaryOperator.EQUAL:
            return values_equal(left, right)
        if op is BinaryOperator.NOT_EQUAL:
            return not values_equal(left, right)

        left_kind = kind_of(left)
        right_kind = kind_of(right)

        if op is BinaryOperator.ADD and left_kind is ValueKind.STRING and right_kind is ValueKind.STRING:
            return left + right

        if left_kind is not ValueKind.NUMBER or right_kind is not ValueKind.NUMBER:
            raise TypeMismatch(
                f"Operator '{op.value}' not supported between "
                f"{left_kind.value} and {right_kind.value}"
            )

        if op in _COMPARISONS:
            return _COMPARISONS[op](left, right)

        if op is BinaryOperator.DIVIDE and right == 0.0:
            raise DivisionByZero()
        return _ARITHMETIC[op](left, right)

    def _eval_logical(self, expr: BinaryOp, facts: FactStore) -> bool:
        left = self._require_bool(self.evaluate(expr.left, facts), expr.op)
        # Short-circuit: the right side is not evaluated once the result is known
        if expr.op is BinaryOperator.AND and not left:
            return False
        if expr.op is BinaryOperator.OR and left:
            return True
        return self._require_bool(self.evaluate(expr.right, facts), expr.op)

    def _require_bool(self, value: Any, op: BinaryOperator) -> bool:
        kind = kind_of(value)
        if kind is not ValueKind.BOOL:
            raise TypeMismatch(f"Operator '{op.value}' requires bool operands, got {kind.value}")
        return value

    def _to_index(self, value: Any) -> int:
        kind = kind_of(value)
        if kind is not ValueKind.NUMBER:
            raise TypeMismatch(f"Array index must be a number, got {kind.value}")
        if not value.is_integer():
            raise TypeMismatch(f"Array index must be an integer, got {value}")
        return int(value)

    def _resolve_path(self, target: Expression, facts: FactStore) -> Tuple[str, List[PathStep]]:
        """Split an assignment target into a root fact name and accessor steps."""
        steps: List[PathStep] = []
        node = target
        while isinstance(node, (FieldAccess, ArrayIndex)):
            if isinstance(node, FieldAccess):
                steps.append(node.field)
            else:
                steps.append(self._to_index(self.evaluate(node.index, facts)))
            node = node.base
        if not isinstance(node, Variable):
            raise InvalidAssignment(f"Invalid assignment target: {format_expression(target)}")
        steps.reverse()
        return node.name, steps

    def _step_into(self, container: Any, step: PathStep, facts: FactStore) -> Any:
        if isinstance(step, str):
            return facts.get_field(container, step)
        if kind_of(container) is not ValueKind.ARRAY:
            raise TypeMismatch(f"Cannot index into {kind_of(container).value}")
        return facts.get_index(container, step)

    def _write(self, container: Any, step: PathStep, value: Any) -> None:
        kind = kind_of(container)
        if isinstance(step, str):
            if kind is not ValueKind.OBJECT:
                raise TypeMismatch(f"Cannot set field '{step}' on {kind.value}")
            container[step] = value
            return
        if kind is not ValueKind.ARRAY:
            raise TypeMismatch(f"Cannot index into {kind.value}")
        if step < 0 or step >= len(container):
            raise IndexOutOfRange(step, len(container))
        container[step] = value

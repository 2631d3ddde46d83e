"""
Rule Analyzer.

Static checks over a rule set: dead rules, self-triggering rules and
write conflicts between rules of equal salience.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Set, Tuple

from ..ast import (
    ArrayIndex,
    Assignment,
    BinaryOp,
    BinaryOperator,
    BoolLiteral,
    Expression,
    FieldAccess,
    UnaryOp,
    UnaryOperator,
    Variable,
    root_name,
)
from ..rule import Rule


def _children(expr: Expression) -> Tuple[Expression, ...]:
    if isinstance(expr, FieldAccess):
        return (expr.base,)
    if isinstance(expr, ArrayIndex):
        return (expr.base, expr.index)
    if isinstance(expr, BinaryOp):
        return (expr.left, expr.right)
    if isinstance(expr, UnaryOp):
        return (expr.operand,)
    if isinstance(expr, Assignment):
        return (expr.target, expr.value)
    return ()


def walk(expr: Expression) -> Iterable[Expression]:
    """Yield every node of an expression tree, depth first."""
    stack = [expr]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(_children(node)))


def referenced_facts(expr: Expression) -> Set[str]:
    """Names of all facts an expression reads."""
    return {node.name for node in walk(expr) if isinstance(node, Variable)}


def assigned_facts(actions: Iterable[Expression]) -> Set[str]:
    """Names of the root facts a list of actions writes."""
    return {root_name(a.target) for a in actions if isinstance(a, Assignment)}


def contains_assignment(expr: Expression) -> bool:
    return any(isinstance(node, Assignment) for node in walk(expr))


def is_always_false(expr: Expression) -> bool:
    """Conservative check for conditions that can never hold."""
    if isinstance(expr, BoolLiteral):
        return not expr.value
    if isinstance(expr, UnaryOp) and expr.op is UnaryOperator.NOT:
        return isinstance(expr.operand, BoolLiteral) and expr.operand.value
    if isinstance(expr, BinaryOp):
        if expr.op is BinaryOperator.AND:
            return is_always_false(expr.left) or is_always_false(expr.right)
        if expr.op is BinaryOperator.OR:
            return is_always_false(expr.left) and is_always_false(expr.right)
    return False


@dataclass
class RuleFootprint:
    """Facts a single rule reads and writes."""
    name: str
    salience: int
    reads: Set[str] = field(default_factory=set)
    writes: Set[str] = field(default_factory=set)


@dataclass
class AnalysisResult:
    """Result of rule set analysis."""
    total_rules: int = 0
    dead_rules: List[str] = field(default_factory=list)
    self_triggering: List[str] = field(default_factory=list)
    write_conflicts: List[Tuple[str, str, str]] = field(default_factory=list)
    footprints: List[RuleFootprint] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_rules": self.total_rules,
            "dead_rules": self.dead_rules,
            "self_triggering": self.self_triggering,
            "write_conflicts": [
                {"rules": [a, b], "fact": fact}
                for a, b, fact in self.write_conflicts
            ],
            "footprints": {
                fp.name: {"reads": sorted(fp.reads), "writes": sorted(fp.writes)}
                for fp in self.footprints
            },
            "warnings": self.warnings,
        }


class RuleAnalyzer:
    """
    Analyzes a rule set for likely authoring mistakes.

    Provides:
    - Dead rule detection (condition can never be true)
    - Self-triggering detection (a rule writes a fact its condition reads,
      so it may keep re-enabling itself until the iteration bound)
    - Write conflicts (rules of equal salience writing the same fact, where
      the final value depends on insertion order)
    """

    def analyze(self, rules: Iterable[Rule]) -> AnalysisResult:
        result = AnalysisResult()
        rules = list(rules)
        result.total_rules = len(rules)

        for rule in rules:
            footprint = RuleFootprint(
                name=rule.name,
                salience=rule.salience,
                reads=referenced_facts(rule.condition),
                writes=assigned_facts(rule.actions),
            )
            result.footprints.append(footprint)

            if is_always_false(rule.condition):
                result.dead_rules.append(rule.name)
                result.warnings.append(f"Rule '{rule.name}' can never fire")

            if footprint.reads & footprint.writes:
                result.self_triggering.append(rule.name)
                shared = ", ".join(sorted(footprint.reads & footprint.writes))
                result.warnings.append(
                    f"Rule '{rule.name}' writes facts its condition reads: {shared}"
                )

        result.write_conflicts = self._detect_write_conflicts(result.footprints)
        for first, second, fact in result.write_conflicts:
            result.warnings.append(
                f"Rules '{first}' and '{second}' share salience and both write '{fact}'"
            )

        return result

    def _detect_write_conflicts(
        self,
        footprints: List[RuleFootprint]
    ) -> List[Tuple[str, str, str]]:
        conflicts = []
        for i, first in enumerate(footprints):
            for second in footprints[i + 1:]:
                if first.salience != second.salience:
                    continue
                for fact in sorted(first.writes & second.writes):
                    conflicts.append((first.name, second.name, fact))
        return conflicts

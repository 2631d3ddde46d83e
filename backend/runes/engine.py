"""
Rule Engine.

Drives the forward-chaining loop: rules are swept in salience order,
conditions are re-evaluated against the current facts on every pass, and
firing continues until a pass fires nothing or the iteration bound is hit.
"""

from __future__ import annotations

import copy
import logging
import time
import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .config import EngineConfig
from .errors import EngineError, EvaluationError, InvalidRuleError
from .facts import FactStore, values_equal
from .knowledge_base import KnowledgeBase
from .logic.analyzer import AnalysisResult, RuleAnalyzer, contains_assignment, referenced_facts
from .logic.evaluator import ExpressionEvaluator
from .logic.parser import GrlParser
from .rule import Rule

logger = logging.getLogger(__name__)

# Refraction signature: fact name -> (present, value)
Signature = Dict[str, Tuple[bool, Any]]
# Rule name -> signature at its last firing
FiringHistory = Dict[str, Signature]


class EngineState(str, Enum):
    READY = "ready"
    EVALUATING = "evaluating"
    FIRING = "firing"
    DONE = "done"


@dataclass
class RuleFailure:
    """An evaluation error contained to a single rule."""
    rule_name: str
    phase: str
    iteration: int
    error: EvaluationError

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule": self.rule_name,
            "phase": self.phase,
            "iteration": self.iteration,
            "code": self.error.code,
            "message": str(self.error),
        }


@dataclass
class ExecutionResult:
    """Outcome of one execute call."""
    rules_fired: List[str] = field(default_factory=list)
    errors: List[RuleFailure] = field(default_factory=list)
    facts_modified: List[str] = field(default_factory=list)
    iterations: int = 0
    max_iterations_reached: bool = False
    execution_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        """True when no rule failed and the loop reached a fixpoint."""
        return not self.errors and not self.max_iterations_reached

    @property
    def fired_count(self) -> int:
        return len(self.rules_fired)

    def summary(self) -> str:
        """Generate a summary of the execution."""
        lines = []
        if self.max_iterations_reached:
            status = "STOPPED at iteration limit"
        elif self.errors:
            status = "COMPLETED with errors"
        else:
            status = "COMPLETED"
        lines.append(f"Execution {status}")
        lines.append(f"  Passes: {self.iterations}")
        lines.append(f"  Rules Fired: {self.fired_count}")
        if self.facts_modified:
            lines.append(f"  Facts Modified: {', '.join(self.facts_modified)}")
        lines.append(f"  Errors: {len(self.errors)}")
        for failure in self.errors:
            lines.append(f"    - {failure.rule_name} ({failure.phase}): {failure.error}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "success": self.success,
            "rules_fired": self.rules_fired,
            "facts_modified": self.facts_modified,
            "iterations": self.iterations,
            "max_iterations_reached": self.max_iterations_reached,
            "execution_time_ms": self.execution_time_ms,
            "errors": [failure.to_dict() for failure in self.errors],
        }


class RuleEngine:
    """
    Forward-chaining rule engine.

    The engine owns its knowledge base and borrows a FactStore for the
    duration of each ``execute`` call. Refraction history is kept per fact
    store and held only weakly, so a store that is dropped takes its history
    with it. The engine performs no locking; callers that run engines in
    parallel must give each one its own fact store.
    """

    def __init__(self, config: Union[EngineConfig, Dict[str, Any], None] = None):
        """
        Initialize the rule engine.

        Args:
            config: EngineConfig, a dict of its fields, or None for defaults.
        """
        self.config = EngineConfig.coerce(config)
        self.knowledge_base = KnowledgeBase(self.config.duplicate_policy)
        self.evaluator = ExpressionEvaluator()
        self.parser = GrlParser()
        self.analyzer = RuleAnalyzer()
        self.state = EngineState.READY
        self.current_rule: Optional[str] = None
        self._history: "weakref.WeakKeyDictionary[FactStore, FiringHistory]" = (
            weakref.WeakKeyDictionary()
        )

    @property
    def running(self) -> bool:
        return self.state in (EngineState.EVALUATING, EngineState.FIRING)

    def add_rule(self, rule: Rule) -> None:
        """
        Register a rule.

        Raises:
            DuplicateRuleName: If the name exists and the policy is "reject".
            InvalidRuleError: If the rule is structurally unusable.
            EngineError: If called while execute is running.
        """
        self._check_idle("add rules")
        if not rule.name:
            raise InvalidRuleError("Rule name must not be empty")
        if contains_assignment(rule.condition):
            raise InvalidRuleError(f"Rule '{rule.name}' has an assignment in its condition")
        self.knowledge_base.add_rule(rule)
        self._forget(rule.name)
        logger.debug("Added rule '%s' (salience %d)", rule.name, rule.salience)

    def add_rules_from_grl(self, text: str) -> List[Rule]:
        """
        Parse a GRL document and register every rule in it.

        Nothing is registered if the document has a syntax error.
        """
        rules = self.parser.parse_rules(text)
        for rule in rules:
            self.add_rule(rule)
        return rules

    def remove_rule(self, name: str) -> Optional[Rule]:
        self._check_idle("remove rules")
        self._forget(name)
        return self.knowledge_base.remove_rule(name)

    def get_rule(self, name: str) -> Optional[Rule]:
        return self.knowledge_base.get_rule(name)

    def reset(self) -> None:
        """Forget which rules have fired, so every rule is eligible again."""
        self._check_idle("reset")
        self._history.clear()
        self.state = EngineState.READY

    def analyze(self) -> AnalysisResult:
        """Run static analysis over the registered rules."""
        return self.analyzer.analyze(self.knowledge_base.rules_by_salience())

    def execute(self, facts: FactStore) -> ExecutionResult:
        """
        Run rules against the facts until a fixpoint or the iteration bound.

        Args:
            facts: The fact store; actions update it in place.

        Returns:
            ExecutionResult with fired rules in firing order and any
            per-rule evaluation failures.
        """
        if not isinstance(facts, FactStore):
            raise TypeError(f"execute expects a FactStore, got {type(facts).__name__}")
        self._check_idle("execute")

        start = time.perf_counter()
        result = ExecutionResult()
        rules = self.knowledge_base.rules_by_salience()
        max_iterations = self.config.max_iterations

        pass_fired = True
        try:
            while pass_fired and result.iterations < max_iterations:
                pass_fired = False
                result.iterations += 1
                for rule in rules:
                    if self._run_rule(rule, facts, result):
                        pass_fired = True

            if pass_fired:
                result.max_iterations_reached = True
                logger.warning(
                    "Stopped after %d passes without reaching a fixpoint", max_iterations
                )
        finally:
            self.state = EngineState.DONE
            self.current_rule = None

        result.execution_time_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            "Executed %d rules in %d passes: %d fired, %d errors",
            len(rules), result.iterations, result.fired_count, len(result.errors),
        )
        return result

    def _run_rule(self, rule: Rule, facts: FactStore, result: ExecutionResult) -> bool:
        """Evaluate one rule and fire it if eligible. Returns True if facts may have changed."""
        self.state = EngineState.EVALUATING
        self.current_rule = rule.name

        try:
            holds = self.evaluator.evaluate_condition(rule.condition, facts)
        except EvaluationError as e:
            logger.debug("Condition of rule '%s' failed: %s", rule.name, e)
            result.errors.append(RuleFailure(rule.name, "condition", result.iterations, e))
            return False

        if holds is None:
            logger.debug("Condition of rule '%s' is not boolean, treating as false", rule.name)
            return False
        if not holds:
            return False

        signature = None
        history: FiringHistory = {}
        if self.config.refraction:
            signature = self._signature(rule, facts)
            history = self._history.setdefault(facts, {})
            previous = history.get(rule.name)
            if previous is not None and _same_signature(previous, signature):
                return False

        self.state = EngineState.FIRING
        wrote = False
        for action in rule.actions:
            try:
                written = self.evaluator.apply(action, facts)
            except EvaluationError as e:
                logger.debug("Action of rule '%s' failed: %s", rule.name, e)
                result.errors.append(RuleFailure(rule.name, "action", result.iterations, e))
                if signature is not None:
                    history[rule.name] = signature
                return wrote
            if written is not None:
                wrote = True
                if written not in result.facts_modified:
                    result.facts_modified.append(written)

        if signature is not None:
            history[rule.name] = signature
        result.rules_fired.append(rule.name)
        logger.debug("Fired rule '%s'", rule.name)
        return True

    def _signature(self, rule: Rule, facts: FactStore) -> Signature:
        signature = {}
        for name in referenced_facts(rule.condition):
            fact = facts.get(name)
            if fact is None:
                signature[name] = (False, None)
            else:
                signature[name] = (True, copy.deepcopy(fact.value))
        return signature

    def _forget(self, rule_name: str) -> None:
        for history in self._history.values():
            history.pop(rule_name, None)

    def _check_idle(self, action: str) -> None:
        if self.running:
            raise EngineError(f"Cannot {action} while rules are executing")


def _same_signature(first: Signature, second: Signature) -> bool:
    if first.keys() != second.keys():
        return False
    for name, (present, value) in first.items():
        other_present, other_value = second[name]
        if present != other_present:
            return False
        if present and not values_equal(value, other_value):
            return False
    return True

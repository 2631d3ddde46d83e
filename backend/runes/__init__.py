"""
Runes: an embeddable forward-chaining business-rule engine.

Rules are written in GRL or built from the expression AST, stored in a
knowledge base, and fired against a mutable fact store.
"""

from .config import EngineConfig, MAX_ITERATIONS, load_config
from .engine import EngineState, ExecutionResult, RuleEngine, RuleFailure
from .errors import (
    RunesError,
    ConfigError,
    GrlSyntaxError,
    EngineError,
    DuplicateRuleName,
    InvalidRuleError,
    EvaluationError,
    UnknownVariable,
    FieldNotFound,
    IndexOutOfRange,
    TypeMismatch,
    DivisionByZero,
    InvalidAssignment,
)
from .facts import Fact, FactStore, ValueKind
from .knowledge_base import KnowledgeBase
from .logic import ExpressionEvaluator, GrlParser
from .rule import Rule

__version__ = "0.1.0"
__all__ = [
    "EngineConfig",
    "MAX_ITERATIONS",
    "load_config",
    "EngineState",
    "ExecutionResult",
    "RuleEngine",
    "RuleFailure",
    "RunesError",
    "ConfigError",
    "GrlSyntaxError",
    "EngineError",
    "DuplicateRuleName",
    "InvalidRuleError",
    "EvaluationError",
    "UnknownVariable",
    "FieldNotFound",
    "IndexOutOfRange",
    "TypeMismatch",
    "DivisionByZero",
    "InvalidAssignment",
    "Fact",
    "FactStore",
    "ValueKind",
    "KnowledgeBase",
    "ExpressionEvaluator",
    "GrlParser",
    "Rule",
]

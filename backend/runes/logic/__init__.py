"""
Logic engine for Runes.

Provides the expression AST, the GRL parser and the expression evaluator.
"""

from .parser import GrlParser, ParseResult
from .evaluator import ExpressionEvaluator
from .analyzer import RuleAnalyzer, AnalysisResult

__all__ = [
    "GrlParser",
    "ParseResult",
    "ExpressionEvaluator",
    "RuleAnalyzer",
    "AnalysisResult",
]

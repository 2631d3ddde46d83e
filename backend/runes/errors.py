"""
Error types for the rule engine.

Parser, knowledge-base and configuration errors abort the single operation
that raised them. Evaluation errors are caught by the engine and recorded
against the rule being evaluated.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RunesError(Exception):
    """Base class for all rule engine errors."""

    code = "error"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {"code": self.code, "message": str(self)}


class ConfigError(RunesError):
    """Engine configuration could not be loaded."""

    code = "config_error"


class GrlSyntaxError(RunesError):
    """Malformed GRL text."""

    code = "syntax_error"

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
        offset: Optional[int] = None,
    ):
        self.message = message
        self.line = line
        self.column = column
        self.offset = offset
        if line is not None:
            super().__init__(f"{message} (line {line}, column {column})")
        else:
            super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"line": self.line, "column": self.column})
        return data


class EngineError(RunesError):
    """Knowledge base or engine misuse."""

    code = "engine_error"


class DuplicateRuleName(EngineError):
    """A rule with the same name is already registered."""

    code = "duplicate_rule_name"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Rule '{name}' already exists")


class InvalidRuleError(EngineError):
    """A rule is structurally unusable."""

    code = "invalid_rule"


class EvaluationError(RunesError):
    """Base class for errors raised while evaluating an expression."""

    code = "evaluation_error"


class UnknownVariable(EvaluationError):
    """The referenced fact does not exist."""

    code = "unknown_variable"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown variable: {name}")


class FieldNotFound(EvaluationError):
    """An object value has no such field."""

    code = "field_not_found"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Field '{field}' not found")


class IndexOutOfRange(EvaluationError):
    """An array index lies outside the array."""

    code = "index_out_of_range"

    def __init__(self, index: int, length: int):
        self.index = index
        self.length = length
        super().__init__(f"Index {index} out of range for array of length {length}")


class TypeMismatch(EvaluationError):
    """An operator was applied to operands of the wrong kind."""

    code = "type_mismatch"


class DivisionByZero(EvaluationError):
    """Division by exactly zero."""

    code = "division_by_zero"

    def __init__(self, message: str = "Division by zero"):
        super().__init__(message)


class InvalidAssignment(EvaluationError):
    """An assignment target cannot be written."""

    code = "invalid_assignment"

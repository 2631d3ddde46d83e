"""
Rule definition.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Sequence, Tuple

from .ast import Expression, check_grl_string, format_expression, from_logic, quote, to_logic


@dataclass(frozen=True)
class Rule:
    """
    A named, prioritized rule.

    Rules with higher salience are considered first within a pass.
    """

    name: str
    salience: int
    condition: Expression
    actions: Tuple[Expression, ...] = field(default_factory=tuple)
    description: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.actions, tuple):
            object.__setattr__(self, "actions", tuple(self.actions))
        if self.description is not None:
            check_grl_string(self.description)

    @classmethod
    def new(
        cls,
        name: str,
        salience: int,
        condition: Expression,
        actions: Sequence[Expression],
    ) -> "Rule":
        return cls(name=name, salience=salience, condition=condition, actions=tuple(actions))

    def with_description(self, description: str) -> "Rule":
        """Copy of this rule with a description attached."""
        return replace(self, description=description)

    def to_grl(self) -> str:
        """Render the rule as GRL source."""
        header = f"rule {self.name}"
        if self.description is not None:
            header += " " + quote(self.description)
        if self.salience:
            header += f" salience {self.salience}"
        lines = [header + " {", "    when", f"        {format_expression(self.condition)}", "    then"]
        lines.extend(f"        {format_expression(action)};" for action in self.actions)
        lines.append("}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "name": self.name,
            "description": self.description,
            "salience": self.salience,
            "when": to_logic(self.condition),
            "then": [to_logic(action) for action in self.actions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        """Build a rule from the structure produced by ``to_dict``."""
        return cls(
            name=data["name"],
            salience=int(data.get("salience", 0)),
            condition=from_logic(data["when"]),
            actions=tuple(from_logic(action) for action in data.get("then", [])),
            description=data.get("description"),
        )

    def __str__(self) -> str:
        return self.to_grl()

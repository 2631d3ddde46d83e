"""
Knowledge base: the rule collection the engine iterates.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .errors import DuplicateRuleName
from .rule import Rule

logger = logging.getLogger(__name__)

DUPLICATE_REJECT = "reject"
DUPLICATE_REPLACE = "replace"


class KnowledgeBase:
    """
    Rules keyed by name, kept in insertion order.

    ``duplicate_policy`` decides what happens when a rule name is added
    twice: ``"reject"`` raises DuplicateRuleName, ``"replace"`` swaps the
    rule in place (it keeps the original insertion slot) and logs a warning.
    """

    def __init__(self, duplicate_policy: str = DUPLICATE_REJECT):
        if duplicate_policy not in (DUPLICATE_REJECT, DUPLICATE_REPLACE):
            raise ValueError(f"Unknown duplicate policy: {duplicate_policy}")
        self.duplicate_policy = duplicate_policy
        self._rules: Dict[str, Rule] = {}

    def add_rule(self, rule: Rule) -> None:
        if rule.name in self._rules:
            if self.duplicate_policy == DUPLICATE_REJECT:
                raise DuplicateRuleName(rule.name)
            logger.warning("Replacing existing rule '%s'", rule.name)
        self._rules[rule.name] = rule

    def get_rule(self, name: str) -> Optional[Rule]:
        return self._rules.get(name)

    def remove_rule(self, name: str) -> Optional[Rule]:
        return self._rules.pop(name, None)

    def clear(self) -> None:
        self._rules.clear()

    @property
    def rules(self) -> List[Rule]:
        """All rules in insertion order."""
        return list(self._rules.values())

    def rules_by_salience(self) -> List[Rule]:
        """Rules ordered by descending salience, ties in insertion order."""
        # sorted() is stable, so equal salience keeps insertion order
        return sorted(self._rules.values(), key=lambda r: r.salience, reverse=True)

    def is_empty(self) -> bool:
        return not self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, name: object) -> bool:
        return name in self._rules

    def __iter__(self):
        return iter(self.rules)

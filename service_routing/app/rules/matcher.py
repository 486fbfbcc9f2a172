"""
Rule matching for the Routing Service.
"""

from typing import List, Optional, Sequence

from shared.logging import get_logger
from .models import (
    Condition, ConditionOperator, ConditionValue, NormalizedRequest, Rule
)


def _normalize(text: str) -> str:
    return text.strip().casefold()


def _request_values(raw: Optional[ConditionValue]) -> List[str]:
    """Non-empty normalized values for a request field."""
    if raw is None:
        return []
    items = raw if isinstance(raw, list) else [raw]
    return [_normalize(item) for item in items if isinstance(item, str) and item.strip()]


class RuleMatcher:
    """Finds the rule a normalized request routes to.

    Rules are evaluated in the order given; the first active rule whose
    conditions all hold wins. A rule without conditions never matches.
    """

    def __init__(self):
        self.logger = get_logger("routing.rule_matcher")

    def match(self, request: NormalizedRequest, rules: Sequence[Rule]) -> Optional[Rule]:
        """Return the first matching active rule, or None."""
        for rule in rules:
            if not rule.active:
                continue
            if self.rule_matches(rule, request):
                self.logger.debug("Rule matched", rule_id=rule.id, name=rule.name)
                return rule

        self.logger.debug("No rule matched", fields=sorted(request.keys()))
        return None

    def rule_matches(self, rule: Rule, request: NormalizedRequest) -> bool:
        """Evaluate every condition of a rule with logical AND."""
        if not rule.conditions:
            return False

        return all(self.evaluate_condition(c, request) for c in rule.conditions)

    def evaluate_condition(self, condition: Condition, request: NormalizedRequest) -> bool:
        """Evaluate a single condition against the request."""
        actual = _request_values(request.get(condition.field.value))
        if not actual:
            return False

        expected = condition.value

        if condition.operator == ConditionOperator.EQUALS:
            if not isinstance(expected, str):
                self.logger.warning(
                    "equals condition configured with a list value",
                    field=condition.field.value
                )
                return False
            return _normalize(expected) in actual

        elif condition.operator == ConditionOperator.ONE_OF:
            if not isinstance(expected, list):
                self.logger.warning(
                    "oneOf condition configured with a single value",
                    field=condition.field.value
                )
                return False
            options = {_normalize(option) for option in expected}
            return any(value in options for value in actual)

        elif condition.operator == ConditionOperator.INCLUDES:
            needles = [
                _normalize(n) for n in (expected if isinstance(expected, list) else [expected])
                if n.strip()
            ]
            haystack = request.get(condition.field.value)
            if isinstance(haystack, list):
                # Keyword list: membership
                return any(needle in actual for needle in needles)
            # Free text blob: substring
            return any(needle in actual[0] for needle in needles)

        else:
            self.logger.warning("Unknown condition operator", operator=condition.operator)
            return False

"""
Routing rules package.

Defines the rule model, the authoritative store and the matcher used by the
Routing Service. Conditions compose with AND; rules are tried in store order
and the first active match decides the assignee.

Modules of interest:
- models: Pydantic models for Condition, Rule, create/patch bodies.
- store: Ordered rule collection with serialized, persisted mutations.
- matcher: Condition evaluation and first-match selection.
- validation: Edit-boundary checks and delete confirmation.
"""

from .matcher import RuleMatcher
from .models import (
    Assignee, Condition, ConditionField, ConditionOperator, Rule, RuleInput, RulePatch
)
from .store import RuleStore

__all__ = [
    "Assignee",
    "Condition",
    "ConditionField",
    "ConditionOperator",
    "Rule",
    "RuleInput",
    "RulePatch",
    "RuleMatcher",
    "RuleStore",
]

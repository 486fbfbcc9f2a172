"""
Edit-boundary checks for routing rules.

The store accepts any structurally valid rule. The checks here are what the
editing workflow requires before a rule is saved or deleted.
"""

from typing import List, Optional, Sequence, Union

from shared.errors import ValidationError
from .models import Condition, ConditionField, Rule, RuleInput

MANDATORY_FIELDS = (ConditionField.REQUEST_TYPE, ConditionField.LOCATION)


def prune_conditions(conditions: Sequence[Condition]) -> List[Condition]:
    """Drop conditions whose value is an empty string or empty list."""
    return [condition for condition in conditions if not condition.is_empty()]


def validate_rule(rule: Union[Rule, RuleInput]) -> None:
    """Raise ValidationError when a rule is not well-formed for routing."""
    if not rule.name.strip():
        raise ValidationError("Rule name is required.", details={"field": "name"})

    if not rule.assignee.name.strip() or not rule.assignee.email.strip():
        raise ValidationError(
            "Assignee name and email are required.", details={"field": "assignee"}
        )

    conditions = prune_conditions(rule.conditions)
    if not conditions:
        raise ValidationError("Add at least one condition.", details={"field": "conditions"})

    present = {condition.field for condition in conditions}
    for field in MANDATORY_FIELDS:
        if field not in present:
            label = "Request type" if field == ConditionField.REQUEST_TYPE else "Location"
            raise ValidationError(f"{label} is required.", details={"field": field.value})


def confirm_delete(rule_name: str, confirmation: Optional[str]) -> bool:
    """True when the typed confirmation equals the rule name."""
    if confirmation is None:
        return False
    return confirmation.strip() == rule_name


def ensure_delete_confirmed(rule_name: str, confirmation: Optional[str]) -> None:
    if not confirm_delete(rule_name, confirmation):
        raise ValidationError(
            "Type the rule name to confirm deletion.",
            details={"expected": rule_name}
        )

"""
Renders the active rule set into instruction text for the generation service.
"""

from typing import List, Sequence

from ..rules.models import Assignee, Condition, Rule


NORMALIZATION_INSTRUCTIONS = """\
You are the legal front door. Your job is to route each legal request to the right person.
Before routing, extract these fields from the conversation:
- requestType: the kind of legal work (for example "contract", "employment", "privacy").
- department: the business team asking (for example "Sales", "Marketing").
- location: the country or region the request concerns.
- seniority: the requester's seniority, if mentioned.
- keywords: notable words from the request (for example "urgent", "renewal").
Trim whitespace and ignore letter case when comparing values. If requestType,
department or location is missing, ask the user for it before routing."""

MATCHING_INSTRUCTIONS = """\
Apply the routing rules below strictly, top to bottom:
- A rule applies only if ALL of its conditions hold.
- "equals" means the field equals the value, ignoring case.
- "oneOf" means the field equals one of the comma-separated values, ignoring case.
- "includes" means the field contains any of the comma-separated values, ignoring case.
- A condition on a field the user has not provided does not hold.
- The FIRST rule that applies wins, even if a later rule looks more specific.
- If no rule applies, route to the fallback contact.
Reply with the assignee's name and email and a one-sentence reason."""


def format_condition(condition: Condition) -> str:
    return f"{condition.field.value} {condition.operator.value} {condition.display_value()}"


class PromptComposer:
    """Serializes the active rules, in store order, into a stable text block."""

    def __init__(self, fallback_contact: Assignee):
        self.fallback_contact = fallback_contact

    def render_rules(self, rules: Sequence[Rule]) -> str:
        """One line per active rule, or a single fallback line when there are none.

        Rules without conditions never match, so they are left out like
        inactive ones.
        """
        lines: List[str] = []
        for rule in rules:
            if not rule.active or not rule.conditions:
                continue
            clauses = " AND ".join(format_condition(c) for c in rule.conditions)
            lines.append(
                f"- {rule.name}: IF {clauses} THEN route to "
                f"{rule.assignee.email} ({rule.assignee.name})"
            )

        if not lines:
            return (
                "- No routing rules are configured. Route every request to "
                f"{self.fallback_contact.email} ({self.fallback_contact.name})."
            )
        return "\n".join(lines)

    def compose_system_prompt(self, rules: Sequence[Rule]) -> str:
        """Full instruction context prepended to a chat turn."""
        return "\n\n".join([
            NORMALIZATION_INSTRUCTIONS,
            MATCHING_INSTRUCTIONS,
            "Routing rules:\n" + self.render_rules(rules),
            f"Fallback contact: {self.fallback_contact.name} <{self.fallback_contact.email}>",
        ])

"""
Rule data models for the Routing Service.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ConditionField(str, Enum):
    """Request attributes a condition can test."""
    REQUEST_TYPE = "requestType"
    DEPARTMENT = "department"
    LOCATION = "location"
    SENIORITY = "seniority"
    KEYWORDS = "keywords"


class ConditionOperator(str, Enum):
    """Condition operators."""
    EQUALS = "equals"
    ONE_OF = "oneOf"
    INCLUDES = "includes"


ConditionValue = Union[str, List[str]]

# Field name -> resolved value extracted from the user's free text
NormalizedRequest = Mapping[str, ConditionValue]


class Condition(BaseModel):
    """A single predicate over one field of an inbound request."""

    model_config = ConfigDict(frozen=True)

    field: ConditionField
    operator: ConditionOperator
    value: ConditionValue

    def is_empty(self) -> bool:
        """True when the value carries nothing to compare against."""
        if isinstance(self.value, list):
            return not any(v.strip() for v in self.value)
        return not self.value.strip()

    def display_value(self) -> str:
        if isinstance(self.value, list):
            return ", ".join(self.value)
        return self.value


class Assignee(BaseModel):
    """Person a matching request is routed to."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str


class RuleInput(BaseModel):
    """Rule body supplied on create; store-owned fields are ignored."""

    model_config = ConfigDict(extra="ignore")

    name: str
    active: bool = True
    conditions: List[Condition] = Field(default_factory=list)
    assignee: Assignee
    notes: Optional[str] = None


class RulePatch(BaseModel):
    """Partial rule body supplied on update."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    active: Optional[bool] = None
    conditions: Optional[List[Condition]] = None
    assignee: Optional[Assignee] = None
    notes: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        """Fields the caller actually supplied.

        An explicit null only clears ``notes``; for the other fields it is
        treated as omitted.
        """
        supplied = self.model_dump(exclude_unset=True)
        return {
            key: value for key, value in supplied.items()
            if value is not None or key == "notes"
        }


class Rule(BaseModel):
    """Routing rule as held by the store."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    active: bool = True
    conditions: List[Condition] = Field(default_factory=list)
    assignee: Assignee
    notes: Optional[str] = None
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    def to_wire(self) -> Dict[str, Any]:
        """Serialize using the camelCase wire/persistence names."""
        return self.model_dump(mode="json", by_alias=True)


class MatchResponse(BaseModel):
    """Response model for a match request."""
    matched: bool = Field(..., description="Whether an active rule matched")
    rule: Optional[Dict[str, Any]] = Field(None, description="The matching rule")
    assignee: Assignee = Field(..., description="Rule assignee or the fallback contact")

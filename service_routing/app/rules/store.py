"""
Authoritative rule collection for the Routing Service.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError as SchemaError

from shared.errors import StorageError
from shared.logging import get_logger
from .models import Rule, RuleInput, RulePatch
from .validation import ensure_delete_confirmed, prune_conditions

if TYPE_CHECKING:
    from ..persistence.base import RulePersistence

RuleValidator = Callable[[Rule], None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RuleStore:
    """Owns the ordered rule collection and is the only writer of ids and timestamps.

    Mutations run one at a time under a single lock and always persist the
    whole collection before the in-memory snapshot is replaced, so memory
    never runs ahead of what is durable. Reads return the current snapshot
    without taking the lock.
    """

    def __init__(self, persistence: "RulePersistence", clock: Callable[[], datetime] = utc_now):
        self.persistence = persistence
        self.logger = get_logger("routing.rule_store")
        self._clock = clock
        self._lock = asyncio.Lock()
        self._rules: Tuple[Rule, ...] = ()

    async def load(self) -> int:
        """Load the collection from the backing medium.

        Records written with the legacy ``op`` condition key or without
        store-owned fields are migrated and written back once.
        """
        records = await self.persistence.load_all()

        rules: List[Rule] = []
        migrated = False
        seen = set()
        for index, record in enumerate(records):
            record, changed = self._migrate_record(record)
            migrated = migrated or changed
            try:
                rule = Rule.model_validate(record)
            except SchemaError as e:
                raise StorageError(
                    "Persisted rule does not match the rule schema",
                    details={"index": index, "errors": e.error_count()}
                ) from e
            if rule.id in seen:
                raise StorageError("Duplicate rule id in storage", details={"id": rule.id})
            seen.add(rule.id)
            rules.append(rule)

        async with self._lock:
            if migrated:
                await self.persistence.save_all(rules)
                self.logger.info("Migrated persisted rules", count=len(rules))
            self._rules = tuple(rules)

        self.logger.info("Rule store loaded", count=len(rules))
        return len(rules)

    def _migrate_record(self, record: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        record = dict(record)
        changed = False

        conditions = []
        for condition in record.get("conditions") or []:
            if isinstance(condition, dict) and "operator" not in condition and "op" in condition:
                condition = dict(condition)
                condition["operator"] = condition.pop("op")
                changed = True
            conditions.append(condition)
        record["conditions"] = conditions

        now = self._clock()
        if not record.get("id"):
            record["id"] = str(uuid.uuid4())
            changed = True
        if not record.get("createdAt"):
            record["createdAt"] = now
            changed = True
        if not record.get("updatedAt"):
            record["updatedAt"] = now
            changed = True

        return record, changed

    def list_rules(self) -> List[Rule]:
        """All rules, active and inactive, in stored order."""
        return list(self._rules)

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        """Get a rule by ID."""
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    async def create_rule(self, data: RuleInput, validate: Optional[RuleValidator] = None) -> Rule:
        """Append a new rule with a fresh id and timestamps."""
        async with self._lock:
            now = self._clock()
            fields = data.model_dump()
            fields["conditions"] = prune_conditions(data.conditions)
            rule = Rule(id=str(uuid.uuid4()), created_at=now, updated_at=now, **fields)
            if validate:
                validate(rule)

            await self._commit(list(self._rules) + [rule])

        self.logger.info("Rule created", rule_id=rule.id, name=rule.name)
        return rule

    async def update_rule(
        self,
        rule_id: str,
        patch: RulePatch,
        validate: Optional[RuleValidator] = None
    ) -> Optional[Rule]:
        """Shallow-merge a patch onto a rule; None when the id is unknown."""
        async with self._lock:
            rules = list(self._rules)
            index = next((i for i, r in enumerate(rules) if r.id == rule_id), None)
            if index is None:
                return None

            existing = rules[index]
            merged_fields = existing.model_dump()
            merged_fields.update(patch.changes())
            merged_fields.update(
                id=existing.id,
                created_at=existing.created_at,
                updated_at=self._next_timestamp(existing.updated_at),
            )
            merged = Rule.model_validate(merged_fields)
            merged = merged.model_copy(update={"conditions": prune_conditions(merged.conditions)})
            if validate:
                validate(merged)

            rules[index] = merged
            await self._commit(rules)

        self.logger.info("Rule updated", rule_id=rule_id, name=merged.name)
        return merged

    async def delete_rule(self, rule_id: str, confirmation: Optional[str] = None) -> bool:
        """Remove a rule; False when the id is unknown.

        When a confirmation is given it must match the rule name as held
        under the lock, otherwise ValidationError is raised.
        """
        async with self._lock:
            target = next((rule for rule in self._rules if rule.id == rule_id), None)
            if target is None:
                return False
            if confirmation is not None:
                ensure_delete_confirmed(target.name, confirmation)

            remaining = [rule for rule in self._rules if rule.id != rule_id]
            await self._commit(remaining)

        self.logger.info("Rule deleted", rule_id=rule_id)
        return True

    async def _commit(self, rules: List[Rule]) -> None:
        # StorageError propagates with the previous snapshot still in place
        await self.persistence.save_all(rules)
        self._rules = tuple(rules)

    def _next_timestamp(self, previous: datetime) -> datetime:
        now = self._clock()
        if now <= previous:
            now = previous + timedelta(microseconds=1)
        return now

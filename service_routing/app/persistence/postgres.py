"""
PostgreSQL persistence layer for the rule collection.
"""

import json
from typing import Any, Dict, List, Optional, Sequence

import asyncpg

from shared.errors import StorageError
from shared.logging import get_logger
from .base import RulePersistence
from ..rules.models import Rule


class PostgreSQLPersistence(RulePersistence):
    """Stores one row per rule; ``position`` preserves collection order."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("routing.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=1,
                max_size=5,
                command_timeout=30
            )
            await self._create_tables()
            self.logger.info("PostgreSQL persistence started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise StorageError("PostgreSQL persistence failed to start", details={"error": str(e)}) from e

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS routing_rules (
                    id VARCHAR(255) PRIMARY KEY,
                    position INTEGER NOT NULL,
                    name VARCHAR(255) NOT NULL,
                    active BOOLEAN NOT NULL DEFAULT TRUE,
                    conditions JSONB NOT NULL DEFAULT '[]',
                    assignee_name VARCHAR(255) NOT NULL,
                    assignee_email VARCHAR(255) NOT NULL,
                    notes TEXT,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL,
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL
                );
            """)

    async def load_all(self) -> List[Dict[str, Any]]:
        """Load all rules in collection order."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch("""
                    SELECT * FROM routing_rules ORDER BY position ASC
                """)
        except Exception as e:
            self.logger.error("Error loading rules", error=str(e))
            raise StorageError("Rules could not be loaded", details={"error": str(e)}) from e

        return [self._row_to_record(row) for row in rows]

    async def save_all(self, rules: Sequence[Rule]) -> None:
        """Replace the stored collection in one transaction."""
        rows = [
            (
                rule.id,
                position,
                rule.name,
                rule.active,
                json.dumps([c.model_dump(mode="json") for c in rule.conditions]),
                rule.assignee.name,
                rule.assignee.email,
                rule.notes,
                rule.created_at,
                rule.updated_at,
            )
            for position, rule in enumerate(rules)
        ]

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute("DELETE FROM routing_rules")
                    if rows:
                        await conn.executemany("""
                            INSERT INTO routing_rules (
                                id, position, name, active, conditions,
                                assignee_name, assignee_email, notes, created_at, updated_at
                            ) VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7, $8, $9, $10)
                        """, rows)
        except Exception as e:
            self.logger.error("Error saving rules", count=len(rows), error=str(e))
            raise StorageError("Rules could not be saved", details={"error": str(e)}) from e

        self.logger.info("Rules saved", count=len(rows))

    def _row_to_record(self, row) -> Dict[str, Any]:
        """Convert a database row to a wire-shaped record."""
        conditions = row['conditions']
        if isinstance(conditions, str):
            conditions = json.loads(conditions)

        return {
            "id": row['id'],
            "name": row['name'],
            "active": row['active'],
            "conditions": conditions,
            "assignee": {"name": row['assignee_name'], "email": row['assignee_email']},
            "notes": row['notes'],
            "createdAt": row['created_at'],
            "updatedAt": row['updated_at'],
        }

    async def health_check(self) -> bool:
        """Check database health."""
        if not self.pool:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False

"""
Persistence backends for the routing rule collection.

- file: JSON array on local disk (default)
- postgres: one row per rule, ordered by position
"""

from shared.config import BaseConfig
from .base import RulePersistence
from .file import JsonFilePersistence


def create_persistence(config: BaseConfig) -> RulePersistence:
    """Build the backend selected by ``rules_backend``."""
    if config.rules_backend == "postgres":
        from .postgres import PostgreSQLPersistence
        return PostgreSQLPersistence(config.postgres_dsn)
    if config.rules_backend == "file":
        return JsonFilePersistence(config.rules_path)
    raise ValueError(f"Unknown rules backend: {config.rules_backend}")


__all__ = ["RulePersistence", "JsonFilePersistence", "create_persistence"]

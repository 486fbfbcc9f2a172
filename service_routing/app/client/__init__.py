"""
Client for the Routing Service rules API.
"""

from .rules_client import RulesClient

__all__ = ["RulesClient"]

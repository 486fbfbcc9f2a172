"""
Prompt composition for the generation service.
"""

from .composer import PromptComposer, format_condition

__all__ = ["PromptComposer", "format_condition"]

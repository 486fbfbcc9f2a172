"""
Chat message filtering.
"""

from typing import Any, Dict, List

ALLOWED_ROLES = frozenset({"system", "user", "assistant"})


def sanitize_messages(messages: Any) -> List[Dict[str, str]]:
    """Keep well-formed ``{role, content}`` entries and drop everything else.

    Anything that is not a list yields an empty result; entries with a
    missing or non-string role/content, or an unknown role, are skipped.
    """
    if not isinstance(messages, list):
        return []

    sanitized = []
    for raw in messages:
        if not isinstance(raw, dict):
            continue

        role = raw.get("role")
        content = raw.get("content")
        if not isinstance(role, str) or not isinstance(content, str):
            continue
        if role not in ALLOWED_ROLES:
            continue

        sanitized.append({"role": role, "content": content})

    return sanitized

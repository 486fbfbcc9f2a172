"""
Chat-turn handling: message filtering, the generation client and stream relay.
"""

from .generation import CompletionStream, GenerationClient
from .messages import sanitize_messages
from .streaming import STREAM_ERROR_MARKER, relay_stream

__all__ = [
    "CompletionStream",
    "GenerationClient",
    "sanitize_messages",
    "STREAM_ERROR_MARKER",
    "relay_stream",
]

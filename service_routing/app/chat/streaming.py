"""
Relays a completion stream to an HTTP response body.
"""

import asyncio
from typing import AsyncIterator, Callable, Optional

from shared.logging import get_logger
from .generation import CompletionStream

STREAM_ERROR_MARKER = "\n[Stream error]\n"

logger = get_logger("routing.chat.streaming")


async def relay_stream(
    stream: CompletionStream,
    on_finish: Optional[Callable[[str], None]] = None
) -> AsyncIterator[str]:
    """Forward fragments verbatim, closing the upstream exactly once.

    An upstream failure after streaming started ends the body with
    STREAM_ERROR_MARKER. Client disconnect closes this generator, which
    closes the upstream request.
    """
    outcome = "completed"
    try:
        async for fragment in stream:
            yield fragment
    except (asyncio.CancelledError, GeneratorExit):
        outcome = "cancelled"
        raise
    except Exception as e:
        outcome = "error"
        logger.error("Streaming error", error=str(e))
        yield STREAM_ERROR_MARKER
    finally:
        await stream.aclose()
        logger.info("Chat stream finished", outcome=outcome)
        if on_finish:
            on_finish(outcome)

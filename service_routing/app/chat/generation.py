"""
Client for the external text-generation service.
"""

from typing import Any, AsyncIterator, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from shared.errors import UpstreamNotConfiguredError, UpstreamUnavailableError
from shared.logging import get_logger


class CompletionStream:
    """Finite, non-restartable sequence of text fragments from one completion.

    ``aclose()`` releases the upstream HTTP response; calling it more than
    once is a no-op.
    """

    def __init__(self, upstream: Any):
        self._upstream = upstream
        self._closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        return self._fragments()

    async def _fragments(self) -> AsyncIterator[str]:
        async for chunk in self._upstream:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self):
        if self._closed:
            return
        self._closed = True
        await self._upstream.close()


class GenerationClient:
    """Opens streaming chat completions on an OpenAI-compatible API."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: Optional[str] = None,
        reasoning_effort: Optional[str] = None,
        timeout: float = 60.0
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.reasoning_effort = reasoning_effort
        self.timeout = timeout
        self.logger = get_logger("routing.generation.client")
        self._client: Optional[AsyncOpenAI] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> AsyncOpenAI:
        if not self.configured:
            raise UpstreamNotConfiguredError()
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout
            )
        return self._client

    async def open_stream(self, messages: List[Dict[str, str]]) -> CompletionStream:
        """Start a streaming completion.

        Raises UpstreamUnavailableError if the request fails before any
        output is produced.
        """
        client = self._get_client()

        request: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": True,
        }
        if self.reasoning_effort:
            request["reasoning_effort"] = self.reasoning_effort

        try:
            upstream = await client.chat.completions.create(**request)
        except openai.OpenAIError as e:
            self.logger.error("Failed to open completion stream", model=self.model, error=str(e))
            raise UpstreamUnavailableError("generation", "Failed to stream response") from e

        self.logger.info("Completion stream opened", model=self.model, messages=len(messages))
        return CompletionStream(upstream)

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None

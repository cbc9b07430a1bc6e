"""Abstract base class for completion providers."""

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from salon.core.cancel import CancellationToken

from .types import (
    CompletionRequest,
    CompletionResponse,
    ModelInfo,
    StreamCallbacks,
    StreamChunk,
)

logger = logging.getLogger(__name__)

# Used when neither the agent nor its provider configured a temperature
DEFAULT_TEMPERATURE = 0.9
# Used when the request carries no token budget
DEFAULT_MAX_TOKENS = 300


class CompletionProvider(ABC):
    """Abstract base class for language-model completion providers.

    Subclasses only implement the streaming call; :meth:`complete` turns
    that stream into callbacks plus a final response and honors the room's
    cancellation token.
    """

    # Class attributes - must be set by subclasses
    kind: str  # 'openrouter', 'ollama', 'openai-compat'
    display_name: str

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        """Initialize the provider.

        Args:
            base_url: Endpoint override (falls back to the provider default)
            api_key: API key override (falls back to the provider's env var)
        """
        self.base_url = base_url
        self.api_key = api_key

    @abstractmethod
    def generate_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """Stream a completion.

        Args:
            request: Model, prompt messages and sampling parameters

        Yields:
            StreamChunk objects as text arrives, ending with one whose
            ``is_complete`` is set

        Raises:
            ProviderError: On any transport or API failure
        """
        ...

    @abstractmethod
    async def list_models(self) -> list[ModelInfo]:
        """List the models this provider serves."""
        ...

    async def complete(
        self,
        request: CompletionRequest,
        callbacks: Optional[StreamCallbacks] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> CompletionResponse:
        """Run a completion to the end.

        Args:
            request: The completion request
            callbacks: Optional token/done observers
            cancel: Token that aborts the transfer when fired

        Returns:
            CompletionResponse with the full text

        Raises:
            ProviderError: On provider failure
            CompletionCancelledError: If ``cancel`` fired first
        """
        if cancel is None:
            return await self._consume(request, callbacks)
        return await cancel.run(self._consume(request, callbacks))

    async def _consume(
        self,
        request: CompletionRequest,
        callbacks: Optional[StreamCallbacks],
    ) -> CompletionResponse:
        parts: list[str] = []
        finish_reason: Optional[str] = None

        async for chunk in self.generate_stream(request):
            if chunk.content:
                parts.append(chunk.content)
                if callbacks and callbacks.on_token:
                    callbacks.on_token(chunk.content)
            if chunk.is_complete:
                finish_reason = chunk.finish_reason

        full = "".join(parts)
        if callbacks and callbacks.on_done:
            callbacks.on_done(full)

        logger.debug(f"{self.kind} completed {request.model}: {len(full)} chars")
        return CompletionResponse(content=full, model=request.model, finish_reason=finish_reason)

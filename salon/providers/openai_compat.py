"""Providers speaking the OpenAI chat-completions protocol.

OpenRouter, llama.cpp/vLLM style servers and Ollama all expose an
OpenAI-compatible endpoint, so one client implementation serves all three;
the subclasses only differ in defaults and credentials.
"""

import logging
import os
from typing import Any, AsyncIterator, NoReturn, Optional

from salon.errors import (
    APIError,
    AuthenticationError,
    InvalidConfigError,
    ProviderError,
    RateLimitError,
)

from .base import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, CompletionProvider
from .types import CompletionRequest, ModelInfo, StreamChunk

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OLLAMA_BASE_URL = "http://localhost:11434"

# Appended when a stream hits its token limit so readers see the cut
TRUNCATION_MARK = " …"


def _retry_after(e: Exception) -> Optional[float]:
    """Seconds from the response's Retry-After header, when it holds a number."""
    response = getattr(e, "response", None)
    headers = getattr(response, "headers", None) or {}
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class OpenAICompatProvider(CompletionProvider):
    """Client for any OpenAI-compatible chat-completions server."""

    kind = "openai-compat"
    display_name = "OpenAI-compat"

    # Retry once without temperature when the server refuses our default
    retry_without_temperature = True

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        super().__init__(base_url, api_key)
        self.base_url = self._resolve_base_url(base_url)
        self.api_key = self._resolve_api_key(api_key)

        # Lazy import to keep construction cheap
        self._client = None

    def _resolve_base_url(self, base_url: Optional[str]) -> str:
        if not base_url:
            raise InvalidConfigError(
                "base_url", base_url, "openai-compat provider requires a base_url"
            )
        return base_url.rstrip("/")

    def _resolve_api_key(self, api_key: Optional[str]) -> Optional[str]:
        return api_key or None

    def _default_headers(self) -> dict[str, str]:
        return {}

    def _get_client(self) -> Any:
        """Get or create the OpenAI client."""
        if self._client is None:
            try:
                import openai

                self._client = openai.AsyncOpenAI(
                    base_url=self.base_url,
                    # The SDK insists on a key even for servers that ignore it
                    api_key=self.api_key or "not-needed",
                    default_headers=self._default_headers() or None,
                    max_retries=0,
                )
            except ImportError:
                raise ImportError(
                    "openai package not installed. Run: pip install openai"
                )
        return self._client

    def _check_credentials(self) -> None:
        """Raise before any network traffic when credentials are missing."""

    def _handle_api_error(self, e: Exception) -> NoReturn:
        """Convert OpenAI SDK exceptions to our error types."""
        if isinstance(e, ProviderError):
            raise e

        import openai

        if isinstance(e, openai.RateLimitError):
            raise RateLimitError(self.display_name, retry_after=_retry_after(e)) from e
        elif isinstance(e, openai.AuthenticationError):
            raise AuthenticationError(self.display_name, str(e)) from e
        elif isinstance(e, openai.APIStatusError):
            raise APIError(
                f"{self.display_name} {e.status_code}: {e.message}",
                provider=self.kind,
                status_code=e.status_code,
                response_body=getattr(e.response, "text", None),
            ) from e
        elif isinstance(e, openai.APIError):
            raise APIError(f"{self.display_name}: {e}", provider=self.kind) from e
        raise APIError(f"{self.display_name}: {e}", provider=self.kind) from e

    def _build_kwargs(self, request: CompletionRequest) -> dict[str, Any]:
        temperature = request.temperature
        if temperature is None:
            temperature = DEFAULT_TEMPERATURE
        return {
            "model": request.model,
            "messages": [m.to_dict() for m in request.messages],
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "temperature": temperature,
            "stream": True,
        }

    async def _open_stream(self, client: Any, request: CompletionRequest) -> Any:
        kwargs = self._build_kwargs(request)
        try:
            return await client.chat.completions.create(**kwargs)
        except Exception as e:
            # Only drop a temperature we guessed, never one from config
            guessed = request.temperature is None
            if (
                self.retry_without_temperature
                and guessed
                and "temperature" in str(e).lower()
            ):
                logger.warning(
                    f"{self.display_name} rejected temperature for {request.model}, retrying without it"
                )
                kwargs.pop("temperature", None)
                return await client.chat.completions.create(**kwargs)
            raise

    async def generate_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """Stream a chat completion."""
        self._check_credentials()
        client = self._get_client()

        try:
            stream = await self._open_stream(client, request)
            finish_reason: Optional[str] = None

            async for chunk in stream:
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta
                if delta is not None and delta.content:
                    yield StreamChunk(content=delta.content)

                if choice.finish_reason:
                    finish_reason = choice.finish_reason

            if finish_reason == "length":
                yield StreamChunk(content=TRUNCATION_MARK)

            yield StreamChunk(is_complete=True, finish_reason=finish_reason or "stop")

        except Exception as e:
            self._handle_api_error(e)

    async def list_models(self) -> list[ModelInfo]:
        """List models from the server's /models endpoint."""
        self._check_credentials()
        client = self._get_client()
        try:
            models = []
            async for model in client.models.list():
                models.append(ModelInfo(id=model.id, name=getattr(model, "name", None) or model.id))
            return models
        except Exception as e:
            self._handle_api_error(e)


class OpenRouterProvider(OpenAICompatProvider):
    """Client for OpenRouter."""

    kind = "openrouter"
    display_name = "OpenRouter"
    retry_without_temperature = False

    def _resolve_base_url(self, base_url: Optional[str]) -> str:
        url = base_url or os.environ.get("OPENROUTER_BASE_URL") or OPENROUTER_BASE_URL
        return url.rstrip("/")

    def _resolve_api_key(self, api_key: Optional[str]) -> Optional[str]:
        return api_key or os.environ.get("OPENROUTER_API_KEY")

    def _default_headers(self) -> dict[str, str]:
        return {
            "HTTP-Referer": "https://github.com/salon-rooms/salon",
            "X-Title": "salon",
        }

    def _check_credentials(self) -> None:
        if not self.api_key:
            raise AuthenticationError(self.display_name, "OPENROUTER_API_KEY not set")


class OllamaProvider(OpenAICompatProvider):
    """Client for a local Ollama server via its OpenAI-compatible API."""

    kind = "ollama"
    display_name = "Ollama"
    retry_without_temperature = False

    def _resolve_base_url(self, base_url: Optional[str]) -> str:
        url = (base_url or os.environ.get("OLLAMA_BASE_URL") or OLLAMA_BASE_URL).rstrip("/")
        if not url.endswith("/v1"):
            url += "/v1"
        return url

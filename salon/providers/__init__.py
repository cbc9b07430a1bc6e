"""Completion providers and registry for salon."""

import logging
from typing import Callable, Optional, Type

from salon.core.types import AgentConfig
from salon.errors import UnknownProviderError

from .base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    CompletionProvider,
)
from .openai_compat import (
    OLLAMA_BASE_URL,
    OPENROUTER_BASE_URL,
    OllamaProvider,
    OpenAICompatProvider,
    OpenRouterProvider,
)
from .types import (
    ChatMessage,
    ChatRole,
    CompletionRequest,
    CompletionResponse,
    ModelInfo,
    StreamCallbacks,
    StreamChunk,
)

logger = logging.getLogger(__name__)

# Registry mapping provider kinds to client classes
PROVIDER_CLASSES: dict[str, Type[CompletionProvider]] = {
    "openrouter": OpenRouterProvider,
    "openai-compat": OpenAICompatProvider,
    "ollama": OllamaProvider,
}

# Builds the provider an agent talks to
ProviderFactory = Callable[[AgentConfig], CompletionProvider]


def get_provider(
    kind: str,
    base_url: Optional[str] = None,
    api_key: Optional[str] = None,
) -> CompletionProvider:
    """Create a provider by kind.

    Args:
        kind: Provider kind ('openrouter', 'openai-compat', 'ollama')
        base_url: Optional endpoint override
        api_key: Optional API key override

    Returns:
        Initialized CompletionProvider instance

    Raises:
        UnknownProviderError: If the kind is not recognized
        InvalidConfigError: If the provider needs settings that are missing
    """
    if kind not in PROVIDER_CLASSES:
        raise UnknownProviderError(kind, known=list(PROVIDER_CLASSES.keys()))

    return PROVIDER_CLASSES[kind](base_url=base_url, api_key=api_key)


def create_provider(agent: AgentConfig) -> CompletionProvider:
    """Create the provider for an agent, honoring its per-agent overrides."""
    return get_provider(agent.provider, base_url=agent.base_url, api_key=agent.api_key)


__all__ = [
    # Base
    "CompletionProvider",
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_TEMPERATURE",
    # Implementations
    "OpenAICompatProvider",
    "OpenRouterProvider",
    "OllamaProvider",
    "OPENROUTER_BASE_URL",
    "OLLAMA_BASE_URL",
    # Registry
    "PROVIDER_CLASSES",
    "ProviderFactory",
    "create_provider",
    "get_provider",
    # Types
    "ChatMessage",
    "ChatRole",
    "CompletionRequest",
    "CompletionResponse",
    "ModelInfo",
    "StreamCallbacks",
    "StreamChunk",
]

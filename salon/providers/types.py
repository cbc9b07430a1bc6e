"""Request/response types for completion providers."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class ChatRole(str, Enum):
    """Role of a prompt message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ChatMessage:
    """One message in a completion prompt."""

    role: ChatRole
    content: str

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role=ChatRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=ChatRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(role=ChatRole.ASSISTANT, content=content)

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class CompletionRequest:
    """A single completion call.

    ``temperature`` is None when nobody configured one; providers then fall
    back to their default and may drop it if the API refuses it.
    """

    model: str
    messages: list[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class CompletionResponse:
    """Full text of a finished completion."""

    content: str
    model: str
    finish_reason: Optional[str] = None


@dataclass
class StreamChunk:
    """A chunk from a streaming response."""

    content: str = ""
    is_complete: bool = False
    finish_reason: Optional[str] = None


@dataclass
class StreamCallbacks:
    """Push-style observers for a streaming completion.

    ``on_token`` gets each text chunk in order; ``on_done`` gets the full
    text once the stream ends.
    """

    on_token: Optional[Callable[[str], None]] = None
    on_done: Optional[Callable[[str], None]] = None


@dataclass
class ModelInfo:
    """A model advertised by a provider."""

    id: str
    name: Optional[str] = None

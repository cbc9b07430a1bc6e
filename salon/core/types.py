"""Core types shared by the scheduler, churn evaluator and engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

AgentColor = Literal[
    "black", "red", "green", "yellow", "blue", "magenta", "cyan", "white",
    "gray", "redBright", "greenBright", "yellowBright", "blueBright",
    "magentaBright", "cyanBright", "whiteBright",
]

ProviderKind = Literal["openrouter", "ollama", "openai-compat"]

# Reserved agent names for messages that no personality authored
SYSTEM_AGENT = "SYSTEM"
USER_AGENT = "YOU"


class MessageKind(str, Enum):
    """Kind of a room message."""

    CHAT = "chat"
    JOIN = "join"
    LEAVE = "leave"
    SYSTEM = "system"
    USER = "user"

    @property
    def is_content(self) -> bool:
        """Chat and user messages are substantive conversational turns."""
        return self in (MessageKind.CHAT, MessageKind.USER)

    @property
    def is_event(self) -> bool:
        """Join, leave and system messages are membership/narration notices."""
        return not self.is_content


@dataclass(frozen=True)
class Personality:
    """Descriptive record for an agent's character."""

    name: str
    color: AgentColor
    tagline: str
    traits: tuple[str, ...]
    style: tuple[str, ...]
    bias: str
    chattiness: float  # baseline eagerness to speak, 0-1
    contrarianism: float  # used in prompts only, 0-1


@dataclass(frozen=True)
class AgentConfig:
    """A personality bound to a completion endpoint."""

    personality: Personality
    provider: ProviderKind
    model: str
    provider_name: Optional[str] = None  # key in the providers map, shown on join
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: Optional[float] = None
    # Lower is higher priority. None means lowest priority and evictable.
    priority: Optional[int] = None

    @property
    def name(self) -> str:
        return self.personality.name

    @property
    def has_priority(self) -> bool:
        return self.priority is not None


@dataclass
class RoomMessage:
    """An entry in the room's append-only history."""

    agent: str
    content: str
    kind: MessageKind
    color: AgentColor = "white"
    id: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)
    provider_label: Optional[str] = None
    model_label: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> "RoomMessage":
        """Create a system narration/diagnostic message."""
        return cls(agent=SYSTEM_AGENT, content=content, kind=MessageKind.SYSTEM, color="gray")

    @classmethod
    def user(cls, content: str) -> "RoomMessage":
        """Create a message from the human host."""
        return cls(agent=USER_AGENT, content=content, kind=MessageKind.USER, color="whiteBright")

    @classmethod
    def chat(cls, agent: AgentConfig, content: str, id: Optional[int] = None) -> "RoomMessage":
        """Create a chat message spoken by an agent."""
        return cls(
            agent=agent.name,
            content=content,
            kind=MessageKind.CHAT,
            color=agent.personality.color,
            id=id,
        )

    @classmethod
    def join(cls, agent: AgentConfig, content: str) -> "RoomMessage":
        """Create a join event carrying provider/model display labels."""
        return cls(
            agent=agent.name,
            content=content,
            kind=MessageKind.JOIN,
            color=agent.personality.color,
            provider_label=agent.provider_name,
            model_label=agent.model,
        )

    @classmethod
    def leave(cls, agent: AgentConfig, content: str) -> "RoomMessage":
        """Create a leave event."""
        return cls(
            agent=agent.name,
            content=content,
            kind=MessageKind.LEAVE,
            color=agent.personality.color,
        )

    @property
    def is_content(self) -> bool:
        return self.kind.is_content

    @property
    def is_event(self) -> bool:
        return self.kind.is_event


class RoomConfig(BaseModel):
    """Tuning parameters for a room."""

    topic: str = ""
    language: str = "English"
    context_window: int = Field(default=30, ge=1)
    max_tokens: int = Field(default=512, ge=1)
    turn_delay_ms: int = Field(default=800, ge=0)
    min_agents: int = Field(default=3, ge=1)
    max_agents: int = Field(default=5, ge=1)
    churn_interval_turns: int = Field(default=4, ge=1)

    @model_validator(mode="after")
    def check_agent_bounds(self) -> "RoomConfig":
        if self.min_agents > self.max_agents:
            raise ValueError(
                f"min_agents ({self.min_agents}) cannot exceed max_agents ({self.max_agents})"
            )
        return self

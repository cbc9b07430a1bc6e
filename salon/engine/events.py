"""Salon engine event types.

Events are pushed by the engine to registered listeners. ``MESSAGE`` is the
only authoritative channel; the streaming events exist for live
presentation and may be dropped by consumers that only care about history.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional

from salon.core.types import RoomMessage


class EventType(Enum):
    """Types of events emitted by the engine."""

    MESSAGE = auto()  # A finalized message was appended to history
    THINKING = auto()  # An agent's completion request is starting
    STREAM_TOKEN = auto()  # Streaming text chunk received
    STREAM_DONE = auto()  # Streaming finished for an agent


@dataclass(frozen=True)
class SalonEvent:
    """Event emitted by the engine.

    The type field determines which other fields are populated:
    - MESSAGE: message
    - THINKING: agent, message_id (the pre-allocated id)
    - STREAM_TOKEN: agent, token
    - STREAM_DONE: agent

    A THINKING id is a reservation, not a commitment. If the turn ends in a
    chat message or a diagnostic, that MESSAGE carries the id. If the room
    is stopped mid-turn, the agent gets a STREAM_DONE with no MESSAGE and
    the id is released, so the next message appended (typically a host
    message held during the turn) is given the same id. Consumers that key
    streamed text by the THINKING id should drop it on that STREAM_DONE.
    """

    type: EventType
    agent: Optional[str] = None
    message: Optional[RoomMessage] = None
    message_id: Optional[int] = None
    token: Optional[str] = None

    @classmethod
    def message_event(cls, message: RoomMessage) -> "SalonEvent":
        """Create a MESSAGE event."""
        return cls(type=EventType.MESSAGE, agent=message.agent, message=message, message_id=message.id)

    @classmethod
    def thinking(cls, agent: str, message_id: int) -> "SalonEvent":
        """Create a THINKING event."""
        return cls(type=EventType.THINKING, agent=agent, message_id=message_id)

    @classmethod
    def stream_token(cls, agent: str, token: str) -> "SalonEvent":
        """Create a STREAM_TOKEN event."""
        return cls(type=EventType.STREAM_TOKEN, agent=agent, token=token)

    @classmethod
    def stream_done(cls, agent: str) -> "SalonEvent":
        """Create a STREAM_DONE event."""
        return cls(type=EventType.STREAM_DONE, agent=agent)


# Listener signature
EventListener = Callable[[SalonEvent], None]

"""Conversation engine: turn loop, events, roster state and prompts."""

from .engine import SalonEngine, StepOptions, create_engine, strip_self_prefix
from .events import EventListener, EventType, SalonEvent
from .prompts import build_messages, build_system_prompt
from .state import ENTRY_SILENCE, JOIN_SILENCE, RosterState

__all__ = [
    # Engine
    "SalonEngine",
    "StepOptions",
    "create_engine",
    "strip_self_prefix",
    # Events
    "EventListener",
    "EventType",
    "SalonEvent",
    # Prompts
    "build_messages",
    "build_system_prompt",
    # State
    "ENTRY_SILENCE",
    "JOIN_SILENCE",
    "RosterState",
]

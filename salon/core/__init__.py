"""Pure conversation logic: types, message ids, speaker selection and churn.

Nothing in this package performs I/O. All randomness comes from an injected
:class:`RandomSource`.
"""

from .cancel import CancellationToken
from .chance import RandomSource, default_source, pick, shuffled
from .colors import AGENT_COLORS, ANSI_TO_AGENT_COLOR, normalize_color
from .churn import (
    JOIN_PROBABILITY,
    LEAVE_BASE_PROBABILITY,
    ChurnBounds,
    ChurnDecision,
    evaluate_churn,
    leave_probability,
)
from .roster import (
    JOIN_GREETINGS,
    LEAVE_EXCUSES,
    PERSONALITY_PRESETS,
    initial_active_count,
    partition_roster,
    random_join_greeting,
    random_leave_excuse,
)
from .sequence import (
    MessageSequencer,
    format_message_id,
    is_content_kind,
    parse_message_id,
)
from .speaker import (
    RECENCY_CAP,
    RECENCY_STEP,
    peek_candidates,
    select_candidates,
    should_speak,
    speak_probability,
)
from .types import (
    SYSTEM_AGENT,
    USER_AGENT,
    AgentColor,
    AgentConfig,
    MessageKind,
    Personality,
    ProviderKind,
    RoomConfig,
    RoomMessage,
)

__all__ = [
    # Types
    "AgentColor",
    "AgentConfig",
    "MessageKind",
    "Personality",
    "ProviderKind",
    "RoomConfig",
    "RoomMessage",
    "SYSTEM_AGENT",
    "USER_AGENT",
    # Cancellation
    "CancellationToken",
    # Colors
    "AGENT_COLORS",
    "ANSI_TO_AGENT_COLOR",
    "normalize_color",
    # Randomness
    "RandomSource",
    "default_source",
    "pick",
    "shuffled",
    # Message ids
    "MessageSequencer",
    "format_message_id",
    "is_content_kind",
    "parse_message_id",
    # Speaker selection
    "RECENCY_CAP",
    "RECENCY_STEP",
    "peek_candidates",
    "select_candidates",
    "should_speak",
    "speak_probability",
    # Churn
    "JOIN_PROBABILITY",
    "LEAVE_BASE_PROBABILITY",
    "ChurnBounds",
    "ChurnDecision",
    "evaluate_churn",
    "leave_probability",
    # Roster
    "JOIN_GREETINGS",
    "LEAVE_EXCUSES",
    "PERSONALITY_PRESETS",
    "initial_active_count",
    "partition_roster",
    "random_join_greeting",
    "random_leave_excuse",
]

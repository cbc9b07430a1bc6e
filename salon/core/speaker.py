"""Speaker selection for a turn.

Each active agent rolls against its chattiness plus a recency bonus that
grows the longer it has been silent. The previous speaker never gets a roll,
so nobody speaks twice in a row. When nobody volunteers, the longest-silent
agent is drafted so the conversation never stalls.
"""

import logging
from typing import Mapping, Optional, Sequence

from .chance import RandomSource
from .types import AgentConfig

logger = logging.getLogger(__name__)

# Recency bonus per silent turn, and its cap
RECENCY_STEP = 0.15
RECENCY_CAP = 0.4

# Silence assumed for agents with no recorded count
DEFAULT_SILENCE = 2
# Silence assumed for unknown agents when drafting a fallback speaker
FALLBACK_SILENCE = 99


def speak_probability(agent: AgentConfig, silence_turns: int) -> float:
    """Probability that the agent volunteers after ``silence_turns`` quiet turns."""
    bonus = min(silence_turns * RECENCY_STEP, RECENCY_CAP)
    return max(0.0, min(1.0, agent.personality.chattiness + bonus))


def should_speak(
    agent: AgentConfig,
    last_speaker: Optional[str],
    silence_turns: int,
    rng: RandomSource,
) -> bool:
    """Roll whether the agent volunteers this turn.

    The previous speaker is rejected without consuming a draw.
    """
    if agent.name == last_speaker:
        return False
    return rng.random() < speak_probability(agent, silence_turns)


def _longest_silent(
    active: Sequence[AgentConfig],
    last_speaker: Optional[str],
    silence_turns: Mapping[str, int],
) -> list[AgentConfig]:
    eligible = [a for a in active if a.name != last_speaker]
    if not eligible:
        return []
    # max() keeps the first of equal values, so ties go to roster order
    chosen = max(eligible, key=lambda a: silence_turns.get(a.name, FALLBACK_SILENCE))
    return [chosen]


def select_candidates(
    active: Sequence[AgentConfig],
    last_speaker: Optional[str],
    silence_turns: Mapping[str, int],
    rng: RandomSource,
) -> list[AgentConfig]:
    """Return the agents volunteering to speak this turn.

    Args:
        active: Active roster, in roster order
        last_speaker: Name of the agent who spoke last, if any
        silence_turns: Turns since each agent last spoke
        rng: Random source for the volunteer rolls

    Returns:
        Volunteers in roster order, or the single longest-silent agent
        when nobody volunteered. Empty only if no agent is eligible.
    """
    candidates = [
        agent
        for agent in active
        if should_speak(
            agent,
            last_speaker,
            silence_turns.get(agent.name, DEFAULT_SILENCE),
            rng,
        )
    ]

    if not candidates:
        candidates = _longest_silent(active, last_speaker, silence_turns)
        if candidates:
            logger.debug(f"Nobody volunteered, drafting {candidates[0].name}")

    return candidates


def peek_candidates(
    active: Sequence[AgentConfig],
    last_speaker: Optional[str],
    silence_turns: Mapping[str, int],
) -> list[AgentConfig]:
    """Deterministic preview of likely speakers.

    Includes every eligible agent that has been silent for at least one
    turn, with the same fallback as :func:`select_candidates`. Draws no
    randomness, so calling it never affects the next real turn.
    """
    candidates = [
        agent
        for agent in active
        if agent.name != last_speaker
        and silence_turns.get(agent.name, DEFAULT_SILENCE) >= 1
    ]
    if not candidates:
        return _longest_silent(active, last_speaker, silence_turns)
    return candidates

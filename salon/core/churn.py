"""Drop-in / drop-out decisions.

The evaluator only decides what should happen; the engine applies the
decision, moves agents between the active and benched sets and emits the
matching room messages.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from .chance import RandomSource, pick
from .types import AgentConfig

logger = logging.getLogger(__name__)

# Chance a picked evictee leaves, scaled by (1 - chattiness)
LEAVE_BASE_PROBABILITY = 0.25
# Chance someone from the bench drops in
JOIN_PROBABILITY = 0.3


class ChurnBounds(Protocol):
    """Anything carrying the active-roster size bounds (e.g. RoomConfig)."""

    min_agents: int
    max_agents: int


@dataclass(frozen=True)
class ChurnDecision:
    """Outcome of one churn evaluation. Either side may be None."""

    leave: Optional[AgentConfig] = None
    join: Optional[AgentConfig] = None

    @property
    def is_empty(self) -> bool:
        return self.leave is None and self.join is None


def leave_probability(agent: AgentConfig) -> float:
    """Quieter agents leave more readily."""
    return LEAVE_BASE_PROBABILITY * (1 - agent.personality.chattiness)


def evaluate_churn(
    active: Sequence[AgentConfig],
    benched: Sequence[AgentConfig],
    bounds: ChurnBounds,
    rng: RandomSource,
) -> ChurnDecision:
    """Decide whether one agent leaves and/or one benched agent joins.

    Draws happen in a fixed order: evictee pick, leave roll, join roll,
    joiner pick. Priority agents are never evicted and the active count
    never drops below ``min_agents`` or rises above ``max_agents``.

    Args:
        active: Agents currently in the room
        benched: Agents not in the room
        bounds: Active roster size bounds
        rng: Random source

    Returns:
        ChurnDecision with the leaver and/or joiner, if any
    """
    leaver: Optional[AgentConfig] = None
    joiner: Optional[AgentConfig] = None

    if len(active) > bounds.min_agents:
        evictable = [a for a in active if not a.has_priority]
        if evictable:
            candidate = pick(rng, evictable)
            if rng.random() < leave_probability(candidate):
                leaver = candidate

    active_after_leave = len(active) - (1 if leaver else 0)

    if benched and active_after_leave < bounds.max_agents:
        if rng.random() < JOIN_PROBABILITY:
            pool = [a for a in benched if leaver is None or a.name != leaver.name]
            if pool:
                joiner = pick(rng, pool)

    decision = ChurnDecision(leave=leaver, join=joiner)
    if not decision.is_empty:
        logger.debug(
            f"Churn decision: leave={leaver.name if leaver else None} "
            f"join={joiner.name if joiner else None}"
        )
    return decision

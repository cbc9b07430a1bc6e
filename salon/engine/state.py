"""Mutable roster state owned by a single engine."""

from dataclasses import dataclass, field
from typing import Optional

from salon.core.types import AgentConfig

# Silence given to agents when they enter the room at open/shuffle
ENTRY_SILENCE = 2
# Silence given to a churn joiner, nudging them to speak soon
JOIN_SILENCE = 3


@dataclass
class RosterState:
    """Active/benched partition plus per-agent silence counters.

    Every agent of the population is in exactly one of ``active`` or
    ``benched``.
    """

    active: list[AgentConfig] = field(default_factory=list)
    benched: list[AgentConfig] = field(default_factory=list)
    last_speaker: Optional[str] = None
    silence: dict[str, int] = field(default_factory=dict)

    @property
    def population(self) -> list[AgentConfig]:
        return [*self.active, *self.benched]

    @property
    def active_names(self) -> list[str]:
        return [a.name for a in self.active]

    def is_active(self, name: str) -> bool:
        return any(a.name == name for a in self.active)

    def find(self, name: str) -> Optional[AgentConfig]:
        """Look up an agent by name in either partition."""
        for agent in self.population:
            if agent.name == name:
                return agent
        return None

    def tick(self) -> None:
        """Another turn passed: every active agent has been silent one more turn."""
        for agent in self.active:
            self.silence[agent.name] = self.silence.get(agent.name, 0) + 1

    def bench(self, agent: AgentConfig) -> None:
        """Move an agent from active to benched."""
        self.active = [a for a in self.active if a.name != agent.name]
        self.benched.append(agent)

    def activate(self, agent: AgentConfig, silence: int = JOIN_SILENCE) -> None:
        """Move an agent from benched to active."""
        self.benched = [a for a in self.benched if a.name != agent.name]
        self.active.append(agent)
        self.silence[agent.name] = silence

    def record_speaker(self, name: str) -> None:
        self.last_speaker = name
        self.silence[name] = 0

    def reset(self, active: list[AgentConfig], benched: list[AgentConfig]) -> None:
        """Replace the partition and forget who spoke."""
        self.active = list(active)
        self.benched = list(benched)
        self.last_speaker = None
        self.silence.clear()

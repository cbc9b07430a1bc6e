"""Conversation engine for a salon room.

The SalonEngine owns everything that changes while a room runs:
1. The active/benched roster and per-agent silence counters
2. The append-only message history and its id sequencer
3. The room-wide cancellation token

Callers drive it one step at a time. The engine never schedules itself;
pacing (auto or governed) is the caller's business.
"""

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence

from salon.core.cancel import CancellationToken
from salon.core.chance import RandomSource, default_source, pick
from salon.core.churn import evaluate_churn
from salon.core.roster import partition_roster, random_join_greeting, random_leave_excuse
from salon.core.sequence import MessageSequencer
from salon.core.speaker import DEFAULT_SILENCE, peek_candidates, select_candidates
from salon.core.types import AgentConfig, RoomConfig, RoomMessage
from salon.errors import CompletionCancelledError, InvalidRosterError, ProviderError, RoomStateError
from salon.providers import CompletionProvider, ProviderFactory, create_provider
from salon.providers.types import CompletionRequest, StreamCallbacks

from .events import EventListener, EventType, SalonEvent
from .prompts import build_messages
from .state import ENTRY_SILENCE, JOIN_SILENCE, RosterState

if TYPE_CHECKING:
    from salon.config import Settings

logger = logging.getLogger(__name__)

# Verbose turns get at least this many tokens
VERBOSE_MIN_TOKENS = 2048


@dataclass
class StepOptions:
    """Per-step switches supplied by the caller."""

    verbose: bool = False  # long-form answer with a larger token budget
    churn: bool = False  # evaluate drop-in/drop-out on interval turns
    speaker: Optional[AgentConfig] = None  # force this agent to speak


def strip_self_prefix(name: str, content: str) -> str:
    """Remove a leading ``Name:`` / ``Name -`` / ``Name —`` echoed by the model."""
    pattern = re.compile(rf"^{re.escape(name)}\s*[:\-—]\s*", re.IGNORECASE)
    return pattern.sub("", content.strip(), count=1).strip()


class SalonEngine:
    """Turn-based engine for a multi-agent conversation room."""

    def __init__(
        self,
        config: RoomConfig,
        agents: Sequence[AgentConfig],
        history: Optional[Sequence[RoomMessage]] = None,
        preferred_roster: Optional[Sequence[str]] = None,
        provider_factory: ProviderFactory = create_provider,
        rng: Optional[RandomSource] = None,
    ):
        """Initialize the engine.

        Configuration problems surface here, before the room can open.

        Args:
            config: Room tuning parameters
            agents: Full agent population for the room
            history: Previously persisted messages to resume from
            preferred_roster: Ordered names to make active instead of the
                random initial split
            provider_factory: Builds the completion provider for an agent
            rng: Random source for speaker, churn and phrase picks

        Raises:
            InvalidRosterError: If the population is empty or names repeat
            UnknownProviderError: If an agent references an unknown provider
            InvalidConfigError: If a provider is missing required settings
        """
        if not agents:
            raise InvalidRosterError("the room has no agents")

        seen: set[str] = set()
        for agent in agents:
            if agent.name in seen:
                raise InvalidRosterError("agent names must be unique", agent=agent.name)
            seen.add(agent.name)

        self.config = config
        self._agents = list(agents)
        self._rng = rng or default_source()

        self._providers: dict[str, CompletionProvider] = {
            agent.name: provider_factory(agent) for agent in self._agents
        }

        self._sequencer, self._history = MessageSequencer.resume(history or [])

        active, benched = partition_roster(self._agents, config, self._rng, preferred_roster)
        self._state = RosterState(active=active, benched=benched)

        self._cancel = CancellationToken()
        self._listeners: list[EventListener] = []
        self._pending: list[RoomMessage] = []

        self._opened = False
        self._running = False
        self._in_flight = False
        self._turn_count = 0

        logger.debug(
            f"Engine ready: {len(self._agents)} agents, active={self._state.active_names}, "
            f"resuming {len(self._history)} messages at id {self._sequencer.next_id}"
        )

    # -- State -----------------------------------------------------------------

    @property
    def agents(self) -> list[AgentConfig]:
        """The full population in roster order."""
        return list(self._agents)

    @property
    def active_agents(self) -> list[AgentConfig]:
        return list(self._state.active)

    @property
    def benched_agents(self) -> list[AgentConfig]:
        return list(self._state.benched)

    @property
    def history(self) -> list[RoomMessage]:
        """Snapshot of the message history, oldest first."""
        return list(self._history)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def turn_count(self) -> int:
        return self._turn_count

    @property
    def last_speaker(self) -> Optional[str]:
        return self._state.last_speaker

    @property
    def next_message_id(self) -> int:
        return self._sequencer.next_id

    @property
    def cancel_token(self) -> CancellationToken:
        return self._cancel

    def silence_of(self, name: str) -> Optional[int]:
        """Turns since the agent last spoke, if tracked."""
        return self._state.silence.get(name)

    # -- Events ----------------------------------------------------------------

    def add_listener(self, listener: EventListener) -> None:
        """Register a callback for every engine event."""
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def on(self, event_type: EventType, handler: EventListener) -> EventListener:
        """Register a callback for a single event type.

        Returns:
            The wrapping listener, usable with :meth:`remove_listener`
        """

        def listener(event: SalonEvent) -> None:
            if event.type == event_type:
                handler(event)

        self.add_listener(listener)
        return listener

    def _emit(self, event: SalonEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Listener failed on {event.type.name} event")

    def _push(self, message: RoomMessage, message_id: Optional[int] = None) -> RoomMessage:
        """Finalize a message: assign its id, append it and announce it."""
        if message_id is not None:
            message.id = message_id
        self._sequencer.assign(message)
        self._history.append(message)
        self._emit(SalonEvent.message_event(message))
        return message

    # -- Lifecycle -------------------------------------------------------------

    def open(self) -> None:
        """Announce the topic and the initial roster, then start the room.

        Raises:
            RoomStateError: If the room was already opened
        """
        if self._opened:
            raise RoomStateError("open", "the room was already opened")

        self._opened = True
        self._running = True

        self._push(RoomMessage.system(f'Topic: "{self.config.topic}"'))
        for agent in self._state.active:
            self._state.silence[agent.name] = ENTRY_SILENCE
            self._push(RoomMessage.join(agent, agent.personality.tagline))

        logger.info(f"Room opened on {self.config.topic!r} with {', '.join(self._state.active_names)}")

    def stop(self) -> None:
        """Stop the room and abort any in-flight completion. Idempotent."""
        if self._running:
            logger.info(f"Room stopped after {self._turn_count} turns")
        self._running = False
        self._cancel.cancel()

    async def sleep(self, seconds: float) -> bool:
        """Pacing delay that returns early once the room is stopped.

        Returns:
            True if the delay was cut short
        """
        return await self._cancel.sleep(seconds)

    # -- Turns -----------------------------------------------------------------

    async def step(self, options: Optional[StepOptions] = None) -> Optional[AgentConfig]:
        """Run one turn.

        Args:
            options: Verbose/churn/forced-speaker switches

        Returns:
            The agent that took the turn, or None if the room is not
            running, nobody could speak, or the room stopped mid-turn

        Raises:
            RoomStateError: If another step is still awaiting its completion,
                or the forced speaker is not part of this room
        """
        options = options or StepOptions()
        if not self._running:
            return None
        if self._in_flight:
            raise RoomStateError("step", "a turn is already in progress")
        if options.speaker is not None and options.speaker.name not in self._providers:
            raise RoomStateError("step", f"{options.speaker.name} is not part of this room")

        self._turn_count += 1
        self._state.tick()

        if options.churn and self._turn_count % self.config.churn_interval_turns == 0:
            self._apply_churn()

        speaker = options.speaker or self._choose_speaker()
        if speaker is None:
            logger.debug(f"Turn {self._turn_count}: nobody can speak")
            return None

        await self._agent_speak(speaker, options.verbose)
        return speaker if self._running else None

    def _choose_speaker(self) -> Optional[AgentConfig]:
        candidates = select_candidates(
            self._state.active,
            self._state.last_speaker,
            self._state.silence,
            self._rng,
        )
        if not candidates:
            return None
        speaker = pick(self._rng, candidates)
        logger.debug(
            f"Turn {self._turn_count}: candidates {[c.name for c in candidates]}, picked {speaker.name}"
        )
        return speaker

    def _apply_churn(self) -> None:
        decision = evaluate_churn(self._state.active, self._state.benched, self.config, self._rng)

        if decision.leave is not None:
            agent = decision.leave
            self._state.bench(agent)
            self._push(RoomMessage.leave(agent, random_leave_excuse(self._rng)))
            logger.info(f"{agent.name} left the room")

        if decision.join is not None:
            agent = decision.join
            self._state.activate(agent, silence=JOIN_SILENCE)
            greeting = random_join_greeting(self._rng)
            self._push(RoomMessage.join(agent, f"{agent.personality.tagline} — {greeting}"))
            logger.info(f"{agent.name} joined the room")

    async def _agent_speak(self, agent: AgentConfig, verbose: bool) -> None:
        provider = self._providers[agent.name]

        message_id = self._sequencer.allocate()
        self._emit(SalonEvent.thinking(agent.name, message_id))

        max_tokens = self.config.max_tokens
        if verbose:
            max_tokens = max(max_tokens * 2, VERBOSE_MIN_TOKENS)

        request = CompletionRequest(
            model=agent.model,
            messages=build_messages(
                agent,
                self.config.topic,
                self._history,
                self.config.context_window,
                verbose=verbose,
                language=self.config.language,
            ),
            temperature=agent.temperature,
            max_tokens=max_tokens,
        )
        callbacks = StreamCallbacks(
            on_token=lambda token: self._emit(SalonEvent.stream_token(agent.name, token)),
            on_done=lambda _text: self._emit(SalonEvent.stream_done(agent.name)),
        )

        self._in_flight = True
        try:
            response = await provider.complete(request, callbacks, self._cancel)

        except CompletionCancelledError:
            self._abandon_turn(agent, message_id)

        except ProviderError as e:
            if self._cancel.cancelled:
                self._abandon_turn(agent, message_id)
            else:
                logger.warning(f"Provider error from {agent.name}: {e}")
                self._push(RoomMessage.system(f"[{agent.name} error: {e.message}]"), message_id)

        except Exception as e:
            if self._cancel.cancelled:
                self._abandon_turn(agent, message_id)
            else:
                logger.exception(f"Unexpected error from {agent.name}")
                self._push(RoomMessage.system(f"[{agent.name} error: {e}]"), message_id)

        else:
            content = strip_self_prefix(agent.name, response.content)
            if not content:
                logger.warning(f"{agent.name} returned an empty response")
                self._push(RoomMessage.system(f"[{agent.name} returned an empty response]"), message_id)
            else:
                self._push(RoomMessage.chat(agent, content), message_id)
                self._state.record_speaker(agent.name)

        finally:
            self._in_flight = False
            self._flush_pending()

    def _abandon_turn(self, agent: AgentConfig, message_id: int) -> None:
        """Close a cancelled turn. The announced id goes back to the sequencer."""
        logger.debug(f"Turn for {agent.name} cancelled, releasing id {message_id}")
        self._sequencer.release(message_id)
        self._emit(SalonEvent.stream_done(agent.name))

    # -- Host actions ----------------------------------------------------------

    def inject_user_message(self, text: str) -> Optional[RoomMessage]:
        """Add a message from the human host.

        While a completion is in flight the message is held and appended
        right after that turn's outcome.

        Returns:
            The message, or None for blank input
        """
        text = text.strip()
        if not text:
            return None

        message = RoomMessage.user(text)
        if self._in_flight:
            self._pending.append(message)
        else:
            self._push(message)
        return message

    def _flush_pending(self) -> None:
        pending, self._pending = self._pending, []
        for message in pending:
            self._push(message)

    def peek_next_speaker(self) -> Optional[AgentConfig]:
        """Preview who is likely up next. Draws no randomness."""
        candidates = peek_candidates(
            self._state.active,
            self._state.last_speaker,
            self._state.silence,
        )
        if not candidates:
            return None
        return max(candidates, key=lambda a: self._state.silence.get(a.name, DEFAULT_SILENCE))

    def shuffle(self) -> None:
        """Everyone leaves, a fresh roster is drawn and announced.

        Raises:
            RoomStateError: If a turn is still awaiting its completion
        """
        if self._in_flight:
            raise RoomStateError("shuffle", "a turn is already in progress")

        for agent in list(self._state.active):
            self._push(RoomMessage.leave(agent, random_leave_excuse(self._rng)))

        active, benched = partition_roster(self._agents, self.config, self._rng)
        self._state.reset(active, benched)

        for agent in self._state.active:
            self._state.silence[agent.name] = ENTRY_SILENCE
            greeting = random_join_greeting(self._rng)
            self._push(RoomMessage.join(agent, f"{agent.personality.tagline} — {greeting}"))

        logger.info(f"Roster shuffled: {', '.join(self._state.active_names)}")


def create_engine(
    settings: "Settings",
    topic: str,
    language: Optional[str] = None,
    history: Optional[Sequence[RoomMessage]] = None,
    preferred_roster: Optional[Sequence[str]] = None,
    rng: Optional[RandomSource] = None,
) -> SalonEngine:
    """Factory function to create an engine from loaded settings.

    Args:
        settings: Application settings
        topic: Room topic
        language: Overrides the configured language
        history: Persisted messages to resume from
        preferred_roster: Ordered names to keep active when resuming
        rng: Random source

    Returns:
        Configured SalonEngine instance
    """
    from salon.config import resolve_roster

    update = {"topic": topic}
    if language:
        update["language"] = language
    config = settings.room.model_copy(update=update)

    return SalonEngine(
        config=config,
        agents=resolve_roster(settings),
        history=history,
        preferred_roster=preferred_roster,
        rng=rng,
    )

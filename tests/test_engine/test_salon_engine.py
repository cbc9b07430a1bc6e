"""Tests for the salon conversation engine."""

import asyncio
import random

import pytest
from conftest import FakeProvider, ScriptedRandom, make_agent

from salon.core.roster import JOIN_GREETINGS, LEAVE_EXCUSES
from salon.core.types import MessageKind, RoomConfig, RoomMessage
from salon.engine import (
    ENTRY_SILENCE,
    JOIN_SILENCE,
    EventType,
    SalonEngine,
    SalonEvent,
    StepOptions,
    strip_self_prefix,
)
from salon.errors import (
    APIError,
    InvalidConfigError,
    InvalidRosterError,
    RoomStateError,
    UnknownProviderError,
)
from salon.utils import LogCapture


def record(engine: SalonEngine) -> list[SalonEvent]:
    events: list[SalonEvent] = []
    engine.add_listener(events.append)
    return events


class TestStripSelfPrefix:
    """Tests for removing an echoed speaker name."""

    @pytest.mark.parametrize(
        "content,expected",
        [
            ("Riko: hello there", "hello there"),
            ("riko - hello", "hello"),
            ("RIKO — hello", "hello"),
            ("  Riko:hello  ", "hello"),
            ("Rikochet: hello", "Rikochet: hello"),
            ("I agree with Riko: yes", "I agree with Riko: yes"),
            ("Riko:", ""),
        ],
    )
    def test_strip(self, content: str, expected: str) -> None:
        assert strip_self_prefix("Riko", content) == expected


class TestConstruction:
    """Configuration problems surface before the room opens."""

    def test_empty_roster(self, room_config: RoomConfig) -> None:
        with pytest.raises(InvalidRosterError):
            SalonEngine(room_config, [], provider_factory=lambda a: FakeProvider())

    def test_duplicate_names(self, room_config: RoomConfig) -> None:
        agents = [make_agent("Sage"), make_agent("Sage")]
        with pytest.raises(InvalidRosterError) as exc_info:
            SalonEngine(room_config, agents, provider_factory=lambda a: FakeProvider())
        assert exc_info.value.details["agent"] == "Sage"

    def test_unknown_provider_kind(self, room_config: RoomConfig) -> None:
        agents = [make_agent("Sage", provider="bogus"), make_agent("Riko")]
        with pytest.raises(UnknownProviderError):
            SalonEngine(room_config, agents)

    def test_openai_compat_requires_base_url(self, room_config: RoomConfig) -> None:
        agents = [make_agent("Sage", provider="openai-compat"), make_agent("Riko")]
        with pytest.raises(InvalidConfigError):
            SalonEngine(room_config, agents)

    def test_one_provider_per_agent(self, room_config, agents) -> None:
        built = []

        def factory(agent):
            built.append(agent.name)
            return FakeProvider()

        SalonEngine(room_config, agents, provider_factory=factory)

        assert built == ["Sage", "Riko", "Nova", "Wren"]

    def test_preferred_roster(self, make_engine) -> None:
        engine = make_engine()
        assert [a.name for a in engine.active_agents] == ["Sage", "Riko", "Nova"]
        assert [a.name for a in engine.benched_agents] == ["Wren"]

    def test_random_split(self, make_engine) -> None:
        engine = make_engine(preferred_roster=None, rng=random.Random(3))
        assert len(engine.active_agents) == 2
        assert len(engine.active_agents) + len(engine.benched_agents) == 4


class TestLifecycle:
    """Tests for open/stop/sleep."""

    def test_open_announces_topic_and_roster(self, make_engine) -> None:
        engine = make_engine()
        events = record(engine)

        engine.open()

        messages = [e.message for e in events if e.type == EventType.MESSAGE]
        assert [m.id for m in messages] == [0, 1, 2, 3]
        assert messages[0].kind == MessageKind.SYSTEM
        assert messages[0].content == 'Topic: "Testing"'
        assert [m.agent for m in messages[1:]] == ["Sage", "Riko", "Nova"]
        assert all(m.kind == MessageKind.JOIN for m in messages[1:])
        assert messages[1].content == "Sage the tester"
        assert messages[1].provider_label == "test"
        assert messages[1].model_label == "test/model"
        assert engine.running
        assert all(engine.silence_of(n) == ENTRY_SILENCE for n in ("Sage", "Riko", "Nova"))
        assert engine.history == messages

    def test_open_twice(self, make_engine) -> None:
        engine = make_engine()
        engine.open()
        with pytest.raises(RoomStateError):
            engine.open()

    @pytest.mark.asyncio
    async def test_step_before_open(self, make_engine, fake_provider) -> None:
        engine = make_engine()
        assert await engine.step() is None
        assert fake_provider.requests == []
        assert engine.turn_count == 0

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, make_engine) -> None:
        engine = make_engine()
        engine.open()

        engine.stop()
        engine.stop()

        assert not engine.running
        assert engine.cancel_token.cancelled
        assert await asyncio.wait_for(engine.sleep(60), timeout=1) is True
        assert await engine.step() is None

    @pytest.mark.asyncio
    async def test_sleep_while_running(self, make_engine) -> None:
        engine = make_engine()
        engine.open()
        assert await engine.sleep(0) is False

    def test_listener_errors_are_logged(self, make_engine) -> None:
        engine = make_engine()

        def broken(event: SalonEvent) -> None:
            raise RuntimeError("listener bug")

        engine.add_listener(broken)
        events = record(engine)

        with LogCapture() as capture:
            engine.open()

        assert len(events) == 4
        assert capture.has_message("Listener failed")

    def test_on_filters_and_removes(self, make_engine) -> None:
        engine = make_engine()
        seen: list[SalonEvent] = []
        listener = engine.on(EventType.MESSAGE, seen.append)

        engine.open()
        engine.remove_listener(listener)
        engine.inject_user_message("hello")

        assert len(seen) == 4


class TestTurns:
    """Tests for step()."""

    @pytest.mark.asyncio
    async def test_forced_speaker(self, make_engine, agents, fake_provider) -> None:
        engine = make_engine()
        engine.open()
        events = record(engine)

        speaker = await engine.step(StepOptions(speaker=agents[1]))

        assert speaker is agents[1]
        thinking = [e for e in events if e.type == EventType.THINKING]
        assert len(thinking) == 1
        assert thinking[0].agent == "Riko"
        assert thinking[0].message_id == 4

        tokens = "".join(e.token for e in events if e.type == EventType.STREAM_TOKEN)
        assert tokens == "Interesting point."
        assert [e.type for e in events][-2:] == [EventType.STREAM_DONE, EventType.MESSAGE]

        chat = engine.history[-1]
        assert chat.kind == MessageKind.CHAT
        assert chat.agent == "Riko"
        assert chat.id == 4
        assert chat.content == "Interesting point."
        assert chat.color == "cyan"

        assert engine.last_speaker == "Riko"
        assert engine.silence_of("Riko") == 0
        assert engine.silence_of("Sage") == ENTRY_SILENCE + 1
        assert engine.turn_count == 1

    @pytest.mark.asyncio
    async def test_unknown_forced_speaker(self, make_engine) -> None:
        engine = make_engine()
        engine.open()
        with pytest.raises(RoomStateError):
            await engine.step(StepOptions(speaker=make_agent("Ghost")))
        assert engine.turn_count == 0

    @pytest.mark.asyncio
    async def test_request_contents(self, make_engine, agents, fake_provider) -> None:
        engine = make_engine()
        engine.open()

        await engine.step(StepOptions(speaker=agents[0]))

        request = fake_provider.requests[0]
        assert request.model == "test/model"
        assert request.max_tokens == 512
        assert request.temperature is None
        assert request.messages[0].role.value == "system"
        assert "You are Sage" in request.messages[0].content
        assert 'The room is discussing: "Testing"' in request.messages[0].content
        assert len(request.messages) == 5

    @pytest.mark.asyncio
    async def test_agent_temperature_is_passed(self, make_engine) -> None:
        provider = FakeProvider()
        population = [make_agent("Sage", temperature=0.3), make_agent("Riko"), make_agent("Nova")]
        engine = make_engine(provider=provider, population=population)
        engine.open()

        await engine.step(StepOptions(speaker=population[0]))

        assert provider.requests[0].temperature == 0.3

    @pytest.mark.asyncio
    async def test_verbose_budget(self, make_engine, agents, fake_provider) -> None:
        engine = make_engine()
        engine.open()

        await engine.step(StepOptions(verbose=True, speaker=agents[0]))

        request = fake_provider.requests[0]
        assert request.max_tokens == 2048
        assert "2-4 short paragraphs" in request.messages[0].content

    @pytest.mark.asyncio
    async def test_verbose_budget_doubles_large_limits(self, make_engine, agents, fake_provider) -> None:
        config = RoomConfig(topic="Testing", min_agents=2, max_agents=3, max_tokens=1500)
        engine = make_engine(config=config)
        engine.open()

        await engine.step(StepOptions(verbose=True, speaker=agents[0]))

        assert fake_provider.requests[0].max_tokens == 3000

    @pytest.mark.asyncio
    async def test_echoed_name_is_stripped(self, make_engine, agents) -> None:
        provider = FakeProvider(replies=["Sage: I disagree."])
        engine = make_engine(provider=provider)
        engine.open()

        await engine.step(StepOptions(speaker=agents[0]))

        assert engine.history[-1].content == "I disagree."

    @pytest.mark.asyncio
    async def test_scheduled_speaker_never_repeats(self, make_engine) -> None:
        engine = make_engine(rng=random.Random(7))
        engine.open()

        previous = None
        for _ in range(30):
            speaker = await engine.step()
            assert speaker is not None
            assert speaker.name != previous
            previous = speaker.name

        chats = [m for m in engine.history if m.kind == MessageKind.CHAT]
        assert len(chats) == 30
        assert [m.id for m in engine.history] == list(range(len(engine.history)))


class TestChurn:
    """Tests for churn applied on interval turns."""

    @pytest.mark.asyncio
    async def test_leave_then_join_then_speak(self, make_engine) -> None:
        # evictee pick, leave roll, join roll, joiner pick, leave excuse
        rng = ScriptedRandom([0.0, 0.1, 0.1, 0.0, 0.0])
        engine = make_engine(rng=rng)
        engine.open()

        speaker = await engine.step(StepOptions(churn=True))

        leave, join, chat = engine.history[4:]
        assert leave.kind == MessageKind.LEAVE
        assert leave.agent == "Sage"
        assert leave.id == 4
        assert leave.content == LEAVE_EXCUSES[0]

        assert join.kind == MessageKind.JOIN
        assert join.agent == "Wren"
        assert join.id == 5
        assert join.content == f"Wren the tester — {JOIN_GREETINGS[3]}"

        assert chat.kind == MessageKind.CHAT
        assert chat.agent == "Riko"
        assert chat.id == 6
        assert speaker is not None and speaker.name == "Riko"

        assert [a.name for a in engine.active_agents] == ["Riko", "Nova", "Wren"]
        assert [a.name for a in engine.benched_agents] == ["Sage"]
        assert engine.silence_of("Wren") == JOIN_SILENCE

    @pytest.mark.asyncio
    async def test_churn_only_when_requested(self, make_engine) -> None:
        rng = ScriptedRandom([0.0, 0.1, 0.1, 0.0, 0.0])
        engine = make_engine(rng=rng)
        engine.open()

        await engine.step()

        assert [a.name for a in engine.active_agents] == ["Sage", "Riko", "Nova"]
        assert not any(m.kind == MessageKind.LEAVE for m in engine.history)

    @pytest.mark.asyncio
    async def test_churn_respects_interval(self, make_engine) -> None:
        config = RoomConfig(topic="Testing", min_agents=2, max_agents=3, churn_interval_turns=2)
        rng = ScriptedRandom([0.0, 0.1, 0.1, 0.0, 0.0])
        engine = make_engine(rng=rng, config=config)
        engine.open()

        # Turn 1: off-interval, and a forced speaker needs no draws
        await engine.step(StepOptions(churn=True, speaker=engine.active_agents[0]))
        assert not any(m.kind == MessageKind.LEAVE for m in engine.history)
        assert rng.calls == 0

        # Turn 2: churn evaluated
        await engine.step(StepOptions(churn=True, speaker=engine.active_agents[1]))
        assert any(m.kind == MessageKind.LEAVE for m in engine.history)


class TestFailures:
    """Provider failures become diagnostics, cancellations stay silent."""

    @pytest.mark.asyncio
    async def test_provider_error(self, make_engine, agents) -> None:
        provider = FakeProvider(error=APIError("upstream 500", provider="openrouter"))
        engine = make_engine(provider=provider)
        engine.open()

        with LogCapture() as capture:
            speaker = await engine.step(StepOptions(speaker=agents[1]))

        assert speaker is agents[1]
        diagnostic = engine.history[-1]
        assert diagnostic.kind == MessageKind.SYSTEM
        assert diagnostic.content == "[Riko error: upstream 500]"
        assert diagnostic.id == 4
        assert engine.last_speaker is None
        assert capture.has_message("Provider error from Riko")

    @pytest.mark.asyncio
    async def test_unexpected_error(self, make_engine, agents) -> None:
        provider = FakeProvider(error=RuntimeError("socket closed"))
        engine = make_engine(provider=provider)
        engine.open()

        await engine.step(StepOptions(speaker=agents[1]))

        assert engine.history[-1].content == "[Riko error: socket closed]"
        assert engine.history[-1].id == 4
        assert engine.running

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["", "   ", "Riko:  "])
    async def test_empty_response(self, make_engine, agents, reply: str) -> None:
        provider = FakeProvider(replies=[reply])
        engine = make_engine(provider=provider)
        engine.open()

        await engine.step(StepOptions(speaker=agents[1]))

        diagnostic = engine.history[-1]
        assert diagnostic.kind == MessageKind.SYSTEM
        assert diagnostic.content == "[Riko returned an empty response]"
        assert diagnostic.id == 4
        assert engine.last_speaker is None

    @pytest.mark.asyncio
    async def test_stop_mid_flight_releases_id(self, make_engine, agents) -> None:
        provider = FakeProvider(hang=True)
        engine = make_engine(provider=provider)
        engine.open()
        events = record(engine)

        task = asyncio.create_task(engine.step(StepOptions(speaker=agents[1])))
        await asyncio.wait_for(provider.started.wait(), timeout=1)
        engine.stop()

        assert await asyncio.wait_for(task, timeout=1) is None
        assert len(engine.history) == 4
        assert engine.next_message_id == 4
        assert not any(e.type == EventType.MESSAGE for e in events)
        assert [e.message_id for e in events if e.type == EventType.THINKING] == [4]
        assert events[-1].type == EventType.STREAM_DONE
        assert events[-1].agent == "Riko"

    @pytest.mark.asyncio
    async def test_step_while_in_flight(self, make_engine, agents) -> None:
        gate = asyncio.Event()
        provider = FakeProvider(gate=gate)
        engine = make_engine(provider=provider)
        engine.open()

        task = asyncio.create_task(engine.step(StepOptions(speaker=agents[1])))
        await asyncio.wait_for(provider.started.wait(), timeout=1)

        with pytest.raises(RoomStateError):
            await engine.step()
        with pytest.raises(RoomStateError):
            engine.shuffle()

        gate.set()
        assert await asyncio.wait_for(task, timeout=1) is agents[1]


class TestHostMessages:
    """Tests for inject_user_message."""

    def test_inject(self, make_engine) -> None:
        engine = make_engine()
        engine.open()

        message = engine.inject_user_message("  what about costs?  ")

        assert message is not None
        assert message.kind == MessageKind.USER
        assert message.agent == "YOU"
        assert message.content == "what about costs?"
        assert message.id == 4
        assert engine.history[-1] is message

    def test_blank_is_ignored(self, make_engine) -> None:
        engine = make_engine()
        engine.open()
        assert engine.inject_user_message("   ") is None
        assert len(engine.history) == 4

    @pytest.mark.asyncio
    async def test_host_message_in_prompt(self, make_engine, agents, fake_provider) -> None:
        engine = make_engine()
        engine.open()
        engine.inject_user_message("Sage, what do you think?")

        await engine.step(StepOptions(speaker=agents[0]))

        assert fake_provider.requests[0].messages[-1].content == "[HOST]: Sage, what do you think?"

    @pytest.mark.asyncio
    async def test_held_during_flight(self, make_engine, agents) -> None:
        gate = asyncio.Event()
        provider = FakeProvider(gate=gate)
        engine = make_engine(provider=provider)
        engine.open()

        task = asyncio.create_task(engine.step(StepOptions(speaker=agents[1])))
        await asyncio.wait_for(provider.started.wait(), timeout=1)

        message = engine.inject_user_message("hold on")
        assert message is not None
        assert message.id is None
        assert engine.history[-1].kind == MessageKind.JOIN

        gate.set()
        await asyncio.wait_for(task, timeout=1)

        chat, user = engine.history[-2:]
        assert (chat.kind, chat.id) == (MessageKind.CHAT, 4)
        assert (user.kind, user.id) == (MessageKind.USER, 5)

    @pytest.mark.asyncio
    async def test_held_message_survives_cancel(self, make_engine, agents) -> None:
        """The cancelled turn's id is closed with STREAM_DONE, then goes to the held message."""
        provider = FakeProvider(hang=True)
        engine = make_engine(provider=provider)
        engine.open()
        events = record(engine)

        task = asyncio.create_task(engine.step(StepOptions(speaker=agents[1])))
        await asyncio.wait_for(provider.started.wait(), timeout=1)
        engine.inject_user_message("bye")
        engine.stop()
        await asyncio.wait_for(task, timeout=1)

        assert engine.history[-1].kind == MessageKind.USER
        assert engine.history[-1].id == 4
        assert any(e.type == EventType.STREAM_TOKEN for e in events)
        assert [
            (e.type, e.agent, e.message_id) for e in events if e.type != EventType.STREAM_TOKEN
        ] == [
            (EventType.THINKING, "Riko", 4),
            (EventType.STREAM_DONE, "Riko", None),
            (EventType.MESSAGE, "YOU", 4),
        ]
        assert engine.next_message_id == 5


class TestPeek:
    """Tests for peek_next_speaker."""

    @pytest.mark.asyncio
    async def test_peek(self, make_engine, agents) -> None:
        rng = ScriptedRandom()
        engine = make_engine(rng=rng)
        engine.open()

        assert engine.peek_next_speaker().name == "Sage"

        await engine.step(StepOptions(speaker=agents[0]))
        calls = rng.calls

        assert engine.peek_next_speaker().name == "Riko"
        assert rng.calls == calls

    def test_peek_before_any_turn(self, make_engine) -> None:
        engine = make_engine()
        assert engine.peek_next_speaker().name == "Sage"


class TestShuffle:
    """Tests for shuffle()."""

    @pytest.mark.asyncio
    async def test_shuffle(self, make_engine, agents) -> None:
        engine = make_engine(rng=random.Random(11))
        engine.open()
        await engine.step(StepOptions(speaker=agents[0]))
        before = len(engine.history)

        engine.shuffle()

        added = engine.history[before:]
        leaves = [m for m in added if m.kind == MessageKind.LEAVE]
        joins = [m for m in added if m.kind == MessageKind.JOIN]
        assert [m.agent for m in leaves] == ["Sage", "Riko", "Nova"]
        assert [m.agent for m in joins] == [a.name for a in engine.active_agents]
        assert added == leaves + joins
        assert all(" — " in m.content for m in joins)

        assert len(engine.active_agents) == 2
        names = sorted(a.name for a in engine.active_agents + engine.benched_agents)
        assert names == ["Nova", "Riko", "Sage", "Wren"]
        assert engine.last_speaker is None
        for agent in engine.active_agents:
            assert engine.silence_of(agent.name) == ENTRY_SILENCE
        assert [m.id for m in engine.history] == list(range(len(engine.history)))

    def test_shuffle_keeps_priority_agents(self, make_engine) -> None:
        population = [
            make_agent("Sage", priority=1),
            make_agent("Riko"),
            make_agent("Nova"),
            make_agent("Wren"),
        ]
        engine = make_engine(population=population, rng=random.Random(5))
        engine.open()

        for _ in range(5):
            engine.shuffle()
            assert engine.active_agents[0].name == "Sage"


class TestResume:
    """Tests for resuming from persisted history."""

    def test_ids_continue(self, make_engine) -> None:
        old = RoomMessage.system("earlier")
        old.id = 7
        legacy = RoomMessage.user("no id")

        engine = make_engine(history=[old, legacy])

        assert [m.id for m in engine.history] == [7, 1]
        assert engine.next_message_id == 8

        engine.open()
        assert engine.history[2].id == 8
        assert engine.history[2].content == 'Topic: "Testing"'

    @pytest.mark.asyncio
    async def test_resumed_history_in_prompt(self, make_engine, agents, fake_provider) -> None:
        old = RoomMessage(agent="Nova", content="Equity first.", kind=MessageKind.CHAT, id=0)
        engine = make_engine(history=[old])
        engine.open()

        await engine.step(StepOptions(speaker=agents[0]))

        contents = [m.content for m in fake_provider.requests[0].messages]
        assert "[Nova]: Equity first." in contents

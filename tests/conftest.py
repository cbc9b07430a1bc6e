"""Pytest configuration and fixtures for salon tests."""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import AsyncIterator, Callable, Generator, Optional, Sequence

import pytest

from salon.config import reset_settings
from salon.core.types import AgentConfig, Personality, RoomConfig
from salon.engine import SalonEngine
from salon.providers import CompletionProvider
from salon.providers.types import CompletionRequest, ModelInfo, StreamChunk


class ScriptedRandom:
    """Random source that replays a fixed list of draws, then a default."""

    def __init__(self, draws: Sequence[float] = (), default: float = 0.5):
        self.draws = list(draws)
        self.default = default
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        if self.draws:
            return self.draws.pop(0)
        return self.default


def make_personality(name: str, chattiness: float = 0.5, color: str = "cyan") -> Personality:
    return Personality(
        name=name,
        color=color,  # type: ignore[arg-type]
        tagline=f"{name} the tester",
        traits=("curious", "direct"),
        style=("Short sentences",),
        bias="Believes tests should be readable.",
        chattiness=chattiness,
        contrarianism=0.3,
    )


def make_agent(
    name: str,
    chattiness: float = 0.5,
    priority: Optional[int] = None,
    provider: str = "openrouter",
    temperature: Optional[float] = None,
) -> AgentConfig:
    return AgentConfig(
        personality=make_personality(name, chattiness),
        provider=provider,  # type: ignore[arg-type]
        model="test/model",
        provider_name="test",
        temperature=temperature,
        priority=priority,
    )


class FakeProvider(CompletionProvider):
    """In-memory provider streaming canned replies.

    Args:
        replies: Replies handed out in order (the last one repeats)
        error: Raised instead of streaming, if set
        gate: When set, the stream pauses before completing until the event fires
        hang: Never finish the stream
        chunk_size: Characters per streamed chunk
    """

    kind = "openrouter"
    display_name = "Fake"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        replies: Sequence[str] = ("Interesting point.",),
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
        hang: bool = False,
        chunk_size: int = 4,
    ):
        super().__init__(base_url, api_key)
        self.replies = list(replies)
        self.error = error
        self.gate = gate
        self.hang = hang
        self.chunk_size = chunk_size
        self.requests: list[CompletionRequest] = []
        self.started = asyncio.Event()

    def _next_reply(self) -> str:
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0]

    async def generate_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        self.requests.append(request)
        self.started.set()
        if self.error is not None:
            raise self.error

        text = self._next_reply()
        for i in range(0, len(text), self.chunk_size):
            yield StreamChunk(content=text[i:i + self.chunk_size])

        if self.gate is not None:
            await self.gate.wait()
        if self.hang:
            await asyncio.Event().wait()

        yield StreamChunk(is_complete=True, finish_reason="stop")

    async def list_models(self) -> list[ModelInfo]:
        return [ModelInfo(id="test/model")]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Clear provider and salon environment variables for the test."""
    original = {
        var: os.environ.pop(var)
        for var in list(os.environ)
        if var.startswith("SALON_")
        or var in ("OPENROUTER_API_KEY", "OPENROUTER_BASE_URL", "OLLAMA_BASE_URL")
    }

    reset_settings()

    yield

    for var in list(os.environ):
        if var.startswith("SALON_") or var in ("OPENROUTER_API_KEY", "OPENROUTER_BASE_URL", "OLLAMA_BASE_URL"):
            del os.environ[var]
    os.environ.update(original)

    reset_settings()


@pytest.fixture
def room_config() -> RoomConfig:
    """Small room: 2-3 active agents, churn checked every turn."""
    return RoomConfig(
        topic="Testing",
        min_agents=2,
        max_agents=3,
        churn_interval_turns=1,
        turn_delay_ms=0,
    )


@pytest.fixture
def agents() -> list[AgentConfig]:
    return [
        make_agent("Sage", chattiness=0.0),
        make_agent("Riko", chattiness=0.0),
        make_agent("Nova", chattiness=0.0),
        make_agent("Wren", chattiness=0.0),
    ]


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def make_engine(
    room_config: RoomConfig,
    agents: list[AgentConfig],
    fake_provider: FakeProvider,
) -> Callable[..., SalonEngine]:
    """Build an engine on the fake provider.

    Defaults to Sage, Riko and Nova active with Wren benched.
    """

    def factory(
        rng=None,
        provider: Optional[FakeProvider] = None,
        config: Optional[RoomConfig] = None,
        population: Optional[Sequence[AgentConfig]] = None,
        preferred_roster: Optional[Sequence[str]] = ("Sage", "Riko", "Nova"),
        history=None,
    ) -> SalonEngine:
        chosen = provider or fake_provider
        return SalonEngine(
            config=config or room_config,
            agents=population or agents,
            history=history,
            preferred_roster=preferred_roster,
            provider_factory=lambda agent: chosen,
            rng=rng or ScriptedRandom(),
        )

    return factory

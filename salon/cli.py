"""CLI entry point for salon."""

import asyncio
import random
import re
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from salon import __version__
from salon.config import Settings, load_settings, resolve_roster
from salon.core.types import AgentConfig, MessageKind, RoomMessage
from salon.engine import EventType, SalonEngine, StepOptions, create_engine
from salon.errors import ConfigurationError, PersistenceError, ProviderError
from salon.providers import get_provider
from salon.rooms import RoomMeta, RoomStore, TranscriptWriter, parse_seed_to_messages
from salon.ui import (
    AGENT_COLOR_STYLES,
    RoomRenderer,
    render_header,
    render_presence,
    render_simulation_report,
)
from salon.utils import setup_logging

app = typer.Typer(
    name="salon",
    help="Multi-agent conversation rooms - language-model personalities debating a topic",
    add_completion=True,
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

# Extra random pause on top of turn_delay_ms in free mode, in seconds
FREE_MODE_JITTER = 3.0
# Simulation gives up after this many steps per requested message
SIMULATE_STEP_FACTOR = 5


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]salon[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """salon - drop-in/drop-out group chats between AI personalities."""


def _load(config: Optional[Path], verbose: bool = False) -> Settings:
    setup_logging(verbose=verbose)
    try:
        return load_settings(config_path=config, force_reload=True)
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error: {e.message}[/red]")
        raise typer.Exit(1)


def room_slug(name: str) -> str:
    """Normalize a room name into its directory name."""
    return re.sub(r"\s+", "-", name.strip().lower())


@app.command()
def room(
    name: str = typer.Argument(..., help="Room name (created if it doesn't exist)"),
    topic: Optional[str] = typer.Option(None, "--topic", "-t", help="Topic for a new room"),
    lang: Optional[str] = typer.Option(None, "--lang", "-l", help="Language agents must use"),
    turns: Optional[int] = typer.Option(None, "--turns", "-n", min=1, help="Stop after N turns"),
    governed: bool = typer.Option(
        False, "--governed", "-g", help="Step turn by turn instead of auto-pacing"
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to salon.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Open a room, resuming its previous sessions if it exists."""
    settings = _load(config, verbose)
    store = RoomStore(settings.rooms_dir)
    slug = room_slug(name)
    if not slug:
        err_console.print("[red]Room name cannot be empty[/red]")
        raise typer.Exit(1)

    try:
        asyncio.run(_run_room(settings, store, slug, topic, lang, turns, governed))
    except KeyboardInterrupt:
        console.print("\n[dim]Left the room.[/dim]")
    except (ConfigurationError, PersistenceError) as e:
        err_console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)


def _prepare_room(
    settings: Settings,
    store: RoomStore,
    slug: str,
    topic: Optional[str],
    lang: Optional[str],
) -> tuple[RoomMeta, list[RoomMessage], bool]:
    """Load or create the room, returning its metadata and preloaded history."""
    history: list[RoomMessage] = []
    meta = store.load_meta(slug) if store.exists(slug) else None
    if meta is not None:
        if lang:
            meta.language = lang
        history = store.load_previous_sessions(slug, settings.room.context_window)
        return meta, history, True

    seed = store.load_seed_material(slug) if store.exists(slug) else None
    if seed:
        history = parse_seed_to_messages(seed)
        heading = re.search(r"^#\s+(.+)", seed, re.MULTILINE)
        if not topic and heading:
            topic = heading.group(1).strip()

    if not topic:
        topic = typer.prompt(f'Creating room "{slug}". Topic').strip()
    if not topic:
        raise typer.Exit(0)

    meta = RoomMeta(topic=topic, language=lang or settings.room.language)
    store.save_meta(slug, meta)
    return meta, history, False


async def _run_room(
    settings: Settings,
    store: RoomStore,
    slug: str,
    topic: Optional[str],
    lang: Optional[str],
    turns: Optional[int],
    governed: bool,
) -> None:
    meta, history, resumed = _prepare_room(settings, store, slug, topic, lang)

    session = store.next_session_number(slug)
    engine = create_engine(
        settings,
        meta.topic,
        language=meta.language,
        history=history,
        preferred_roster=meta.active_roster,
    )
    transcript = store.open_transcript(slug, session, meta.topic)
    transcript.start([a.name for a in engine.agents])

    meta.last_session = session
    store.save_meta(slug, meta)

    render_header(console, meta.topic, slug, session, resumed, len(history))
    engine.on(EventType.MESSAGE, lambda event: transcript.append(event.message))
    engine.add_listener(RoomRenderer(console, engine.agents))

    try:
        engine.open()
        render_presence(console, engine.active_agents)
        if governed:
            await _governed_loop(engine, turns)
        else:
            await _free_loop(engine, turns)
    finally:
        engine.stop()
        _close_room(store, slug, meta, engine, transcript)


def _close_room(
    store: RoomStore,
    slug: str,
    meta: RoomMeta,
    engine: SalonEngine,
    transcript: TranscriptWriter,
) -> None:
    transcript.finalize()
    meta.active_roster = [a.name for a in engine.active_agents]
    store.save_meta(slug, meta)


async def _free_loop(engine: SalonEngine, turns: Optional[int]) -> None:
    """Auto-paced turns with churn, until stopped or out of turns."""
    delay = engine.config.turn_delay_ms / 1000
    while engine.running and (turns is None or engine.turn_count < turns):
        if await engine.sleep(delay + random.uniform(0, FREE_MODE_JITTER)):
            break
        await engine.step(StepOptions(churn=True))


async def _governed_loop(engine: SalonEngine, turns: Optional[int]) -> None:
    """One turn per Enter. Text is sent to the room as the host first."""
    console.print(
        "[dim]Enter: next turn · text: reply as host · /who · /shuffle · /free · /quit[/dim]"
    )
    while engine.running and (turns is None or engine.turn_count < turns):
        upcoming = engine.peek_next_speaker()
        if upcoming is not None:
            console.print(f"[dim]  {escape(f'[{upcoming.name} is ready]')}[/dim]")

        try:
            line = console.input("[bold bright_white]<YOU>[/bold bright_white] ").strip()
        except EOFError:
            break

        if line == "/quit":
            break
        if line == "/who":
            render_presence(console, engine.active_agents)
            continue
        if line == "/shuffle":
            engine.shuffle()
            continue
        if line == "/free":
            await _free_loop(engine, turns)
            break
        if line:
            engine.inject_user_message(line)

        await engine.step(StepOptions(verbose=True))


@app.command()
def simulate(
    topic: str = typer.Argument(..., help="Topic to discuss"),
    messages: int = typer.Option(10, "--messages", "-m", min=1, help="Chat messages to collect"),
    lang: Optional[str] = typer.Option(None, "--lang", "-l", help="Language agents must use"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to salon.yaml"),
) -> None:
    """Run a headless room and print the conversation as markdown."""
    settings = _load(config)
    try:
        report = asyncio.run(_simulate(settings, topic.strip(), messages, lang))
    except ConfigurationError as e:
        err_console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)
    typer.echo(report, nl=False)


async def _simulate(settings: Settings, topic: str, target: int, lang: Optional[str]) -> str:
    language = lang or settings.room.language
    engine = create_engine(settings, topic, language=language)

    err_console.print(f'\nSimulating: "{topic}"\nLanguage: {language}\nTarget: {target} chat messages\n')

    collected: list[RoomMessage] = []
    engine.on(EventType.MESSAGE, lambda event: collected.append(event.message))
    engine.open()

    chat_count = 0
    steps = 0
    while chat_count < target and steps < target * SIMULATE_STEP_FACTOR:
        steps += 1
        speaker = await engine.step(StepOptions(verbose=True))
        count = sum(1 for m in collected if m.kind == MessageKind.CHAT)
        if count > chat_count:
            chat_count = count
            err_console.print(f"  [{chat_count}/{target}] {speaker.name if speaker else '?'}")

    engine.stop()
    if chat_count < target:
        err_console.print(f"[yellow]Stopped after {steps} turns with {chat_count} messages[/yellow]")

    return render_simulation_report(topic, language, collected, engine.agents)


@app.command()
def rooms(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to salon.yaml"),
) -> None:
    """List rooms and their sessions."""
    settings = _load(config)
    listings = RoomStore(settings.rooms_dir).list_rooms()

    if not listings:
        console.print("[dim]No rooms found.[/dim]")
        return

    table = Table(title="Rooms")
    table.add_column("Room", style="cyan", no_wrap=True)
    table.add_column("Topic", style="green")
    table.add_column("Language", style="blue")
    table.add_column("Sessions", justify="right")
    table.add_column("Seed", justify="center")

    for listing in listings:
        meta = listing.meta
        table.add_row(
            listing.name,
            meta.topic if meta else "-",
            meta.language if meta else "-",
            str(listing.sessions),
            "✓" if listing.has_seed else "",
        )

    console.print(table)


@app.command()
def models(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to salon.yaml"),
) -> None:
    """Show the roster and the models each configured provider serves."""
    settings = _load(config)

    try:
        roster = resolve_roster(settings)
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error: {e.message}[/red]")
        raise typer.Exit(1)

    table = Table(title="Roster")
    table.add_column("Agent", style="bold")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("Priority", justify="right")
    for agent in roster:
        table.add_row(
            _agent_label(agent),
            agent.provider_name or agent.provider,
            agent.model,
            "" if agent.priority is None else str(agent.priority),
        )
    console.print(table)

    asyncio.run(_list_provider_models(settings))


def _agent_label(agent: AgentConfig) -> str:
    color = AGENT_COLOR_STYLES.get(agent.personality.color, "white")
    return f"[{color}]{agent.name}[/{color}]"


async def _list_provider_models(settings: Settings) -> None:
    for key, entry in settings.providers.items():
        try:
            provider = get_provider(entry.kind, base_url=entry.base_url, api_key=entry.api_key)
            available = await provider.list_models()
        except (ConfigurationError, ProviderError) as e:
            console.print(f"[bold]{key}[/bold] ({entry.kind}): [red]{e.message}[/red]")
            continue

        console.print(f"[bold]{key}[/bold] ({entry.kind}): {len(available)} models")
        for model in available[:50]:
            console.print(f"  {model.id}")
        if len(available) > 50:
            console.print(f"  [dim]... and {len(available) - 50} more[/dim]")


if __name__ == "__main__":
    app()

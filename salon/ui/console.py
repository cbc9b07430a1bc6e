"""Terminal rendering of a running room with Rich."""

from datetime import datetime
from typing import Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.style import Style
from rich.text import Text

from salon.core.types import AgentColor, AgentConfig, MessageKind, RoomMessage
from salon.engine.events import EventType, SalonEvent

# AgentColor names mapped to Rich color names
AGENT_COLOR_STYLES: dict[str, str] = {
    "black": "black",
    "red": "red",
    "green": "green",
    "yellow": "yellow",
    "blue": "blue",
    "magenta": "magenta",
    "cyan": "cyan",
    "white": "white",
    "gray": "grey50",
    "redBright": "bright_red",
    "greenBright": "bright_green",
    "yellowBright": "bright_yellow",
    "blueBright": "bright_blue",
    "magentaBright": "bright_magenta",
    "cyanBright": "bright_cyan",
    "whiteBright": "bright_white",
}

DIM = Style(dim=True)
TIME_STYLE = Style(color="grey50")
SYSTEM_STYLE = Style(color="grey50", italic=True)


def agent_style(color: AgentColor, bold: bool = True) -> Style:
    """Get a Style for an agent color, with fallback to white."""
    return Style(color=AGENT_COLOR_STYLES.get(color, "white"), bold=bold)


def _time(message: Optional[RoomMessage] = None) -> Text:
    stamp = message.timestamp if message is not None else datetime.now()
    return Text(stamp.strftime("%H:%M"), style=TIME_STYLE)


def render_message(message: RoomMessage) -> Optional[Text]:
    """Build the IRC-style line for a finalized message.

    Returns None for user messages, which the host already typed.
    """
    line = _time(message)
    line.append(" ")

    if message.kind == MessageKind.JOIN:
        line.append("-->> ", style=DIM)
        line.append(message.agent, style=agent_style(message.color))
        line.append(" has joined ", style=DIM)
        label = f" [{message.provider_label}/{message.model_label}]" if message.model_label else ""
        line.append(f"({message.content}){label}", style=Style(italic=True))
    elif message.kind == MessageKind.LEAVE:
        line.append("<<-- ", style=DIM)
        line.append(message.agent, style=agent_style(message.color))
        line.append(" has left ", style=DIM)
        line.append(f"({message.content})", style=Style(italic=True))
    elif message.kind == MessageKind.SYSTEM:
        line.append(f"  * {message.content}", style=SYSTEM_STYLE)
    elif message.kind == MessageKind.USER:
        return None
    else:
        line.append(f"<{message.agent}> ", style=agent_style(message.color))
        line.append(message.content)
    return line


class RoomRenderer:
    """Engine listener that prints a room as it happens.

    Chat messages are shown token by token while they stream; the final
    MESSAGE event only prints chat text that never streamed.
    """

    def __init__(self, console: Console, roster: Sequence[AgentConfig] = ()):
        self.console = console
        self._colors: dict[str, AgentColor] = {a.name: a.personality.color for a in roster}
        self._streaming: Optional[str] = None
        self._streamed: set[str] = set()

    def __call__(self, event: SalonEvent) -> None:
        if event.type == EventType.STREAM_TOKEN:
            self._on_token(event.agent or "", event.token or "")
        elif event.type == EventType.STREAM_DONE:
            self._end_stream()
        elif event.type == EventType.MESSAGE and event.message is not None:
            self._on_message(event.message)

    def _on_token(self, agent: str, token: str) -> None:
        if self._streaming != agent:
            self._end_stream()
            self._streaming = agent
            prefix = _time()
            prefix.append(" ")
            prefix.append(f"<{agent}> ", style=agent_style(self._colors.get(agent, "white")))
            self.console.print(prefix, end="")
        self._streamed.add(agent)
        self.console.print(token, end="", markup=False, highlight=False)

    def _end_stream(self) -> None:
        if self._streaming is not None:
            self.console.print()
            self._streaming = None

    def _on_message(self, message: RoomMessage) -> None:
        if message.kind == MessageKind.CHAT and message.agent in self._streamed:
            self._streamed.discard(message.agent)
            return
        self._end_stream()
        line = render_message(message)
        if line is not None:
            self.console.print(line)


def render_header(
    console: Console,
    topic: str,
    room_name: Optional[str] = None,
    session: Optional[int] = None,
    resumed: bool = False,
    context_count: int = 0,
) -> None:
    """Print the room banner."""
    body = Text()
    if room_name:
        body.append("Room: ")
        body.append(room_name, style=Style(bold=True))
        if session:
            body.append(f"  session {session}", style=DIM)
        if resumed:
            body.append(f"  (resumed, {context_count} messages of context)", style=DIM)
        body.append("\n")
    body.append("Topic: ")
    body.append(topic, style=Style(bold=True))
    console.print(Panel(body, title="salon", border_style="grey50"))


def render_presence(console: Console, agents: Sequence[AgentConfig]) -> None:
    """Print who is currently in the room."""
    line = Text("  In room: ", style=DIM)
    for i, agent in enumerate(agents):
        if i:
            line.append(", ", style=DIM)
        line.append(agent.name, style=agent_style(agent.personality.color, bold=False))
    console.print(line)

"""Markdown report for headless simulation runs."""

from datetime import datetime
from typing import Sequence

from salon.core.types import USER_AGENT, AgentConfig, MessageKind, RoomMessage


def render_simulation_report(
    topic: str,
    language: str,
    messages: Sequence[RoomMessage],
    roster: Sequence[AgentConfig],
) -> str:
    """Render a finished simulation as a markdown document.

    Args:
        topic: Room topic
        language: Language the agents spoke
        messages: Every message the room emitted, in order
        roster: Full agent population, used for the participant notes

    Returns:
        Markdown text ending with a newline
    """
    chat_count = sum(1 for m in messages if m.kind == MessageKind.CHAT)
    appeared: list[str] = []
    for m in messages:
        if m.kind in (MessageKind.CHAT, MessageKind.JOIN) and m.agent not in appeared:
            appeared.append(m.agent)

    lines = [
        "# Simulation Report",
        "",
        f"**Topic:** {topic}",
        f"**Language:** {language}",
        "**Mode:** simulation",
        f"**Messages:** {chat_count} chat messages",
        f"**Participants:** {', '.join(appeared)}",
        f"**Generated:** {datetime.now().isoformat(timespec='seconds')}",
        "",
        "---",
        "",
        "## Conversation",
        "",
    ]

    for m in messages:
        if m.kind == MessageKind.SYSTEM:
            lines += [f"*[{m.content}]*", ""]
        elif m.kind == MessageKind.JOIN:
            lines += [f"*→ **{m.agent}** joined — {m.content}*", ""]
        elif m.kind == MessageKind.LEAVE:
            lines += [f"*← **{m.agent}** left — {m.content}*", ""]
        elif m.kind == MessageKind.USER:
            lines += [f"**[{USER_AGENT}]**", m.content, ""]
        else:
            lines += [f"### {m.agent}", "", m.content, ""]

    lines += ["---", "", "## Participants", ""]

    by_name = {a.name: a for a in roster}
    for name in appeared:
        agent = by_name.get(name)
        if agent is None:
            continue
        p = agent.personality
        lines += [f"**{p.name}** — {p.tagline}", f"> {' · '.join(p.traits)}", ""]

    return "\n".join(lines) + "\n"

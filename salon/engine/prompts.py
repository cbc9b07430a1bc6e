"""Prompt templates and prompt assembly for agent turns."""

from typing import Sequence

from salon.core.types import USER_AGENT, AgentConfig, MessageKind, Personality, RoomMessage
from salon.providers.types import ChatMessage

SYSTEM_PROMPT_TEMPLATE = """You are {name}, a participant in a live group chat room.

Who you are: {tagline}
Traits: {traits}
Style: {style}
Perspective: {bias}

The room is discussing: "{topic}"

How the room works:
- Other participants' messages are marked with a [Name]: prefix.
- Messages marked [HOST]: come from the human hosting the room. Take them seriously
  and respond to them directly when relevant.
- Lines starting with * are people joining or leaving.
- Stay in character as {name}. Never write other participants' lines.
- Do not start your reply with your own name.
- Always respond in {language}.

{length_rules}"""

CONCISE_RULES = """Length:
- Keep it short: 1-3 sentences, like a real chat message.
- One idea per message. React to what was just said.
- No lists, no headings, no markdown."""

VERBOSE_RULES = """Length:
- Take room to develop the point: 2-4 short paragraphs.
- Engage specifically with what others said, quoting or naming them.
- Plain prose only. No lists, no headings."""


def build_system_prompt(
    personality: Personality,
    topic: str,
    verbose: bool = False,
    language: str = "English",
) -> str:
    """Fill the system prompt template for an agent."""
    return SYSTEM_PROMPT_TEMPLATE.format(
        name=personality.name,
        tagline=personality.tagline,
        traits=", ".join(personality.traits),
        style=". ".join(personality.style),
        bias=personality.bias,
        topic=topic,
        language=language,
        length_rules=VERBOSE_RULES if verbose else CONCISE_RULES,
    )


def format_history_entry(agent: AgentConfig, message: RoomMessage) -> ChatMessage:
    """Render one room message from the point of view of ``agent``."""
    if message.kind == MessageKind.USER or message.agent == USER_AGENT:
        return ChatMessage.user(f"[HOST]: {message.content}")
    if message.kind == MessageKind.JOIN:
        return ChatMessage.user(f"* {message.agent} has joined the room — {message.content}")
    if message.kind == MessageKind.LEAVE:
        return ChatMessage.user(f"* {message.agent} has left the room — {message.content}")
    if message.kind == MessageKind.SYSTEM:
        return ChatMessage.user(f"[SYSTEM]: {message.content}")
    if message.agent == agent.name:
        return ChatMessage.assistant(message.content)
    return ChatMessage.user(f"[{message.agent}]: {message.content}")


def build_messages(
    agent: AgentConfig,
    topic: str,
    history: Sequence[RoomMessage],
    context_window: int,
    verbose: bool = False,
    language: str = "English",
) -> list[ChatMessage]:
    """Build the prompt for an agent's turn.

    Args:
        agent: The agent about to speak
        topic: Room topic
        history: Full room history, oldest first
        context_window: How many recent history entries to include
        verbose: Use the long-form length rules
        language: Language the agent must answer in

    Returns:
        System prompt followed by the recent history as chat messages
    """
    messages = [ChatMessage.system(build_system_prompt(agent.personality, topic, verbose, language))]
    recent = list(history)[-context_window:] if context_window > 0 else []
    messages.extend(format_history_entry(agent, m) for m in recent)
    return messages

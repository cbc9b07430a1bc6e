"""Markdown session transcripts.

A session file starts with YAML frontmatter followed by one block per
message, separated by blank lines:

    > **SYSTEM** *14:02* #0000-e — Topic: "..."
    > **Sage** *14:02* #0001-e [join] — Stoic philosopher and systems thinker

    **Sage** *14:03* #0002-m
    The message text, possibly over several paragraphs.
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

import yaml

from salon.core.sequence import format_message_id, parse_message_id
from salon.core.types import SYSTEM_AGENT, USER_AGENT, MessageKind, RoomMessage
from salon.errors import PersistenceError

logger = logging.getLogger(__name__)

# Agent name used for assistant turns imported from seed discussions
PRIOR_AGENT = "PRIOR"

# Seed blocks shorter than this are treated as noise
MIN_SEED_BLOCK_LENGTH = 20

# Delimiters must sit on their own lines; a "---" inside a value is not one
_FRONTMATTER = re.compile(r"\A---\n(.*?)^---[ \t]*(?:\n+|\Z)", re.DOTALL | re.MULTILINE)

_EVENT_LINE = re.compile(
    r"^>\s*\*\*([^*\n]+)\*\*\s*\*(\d{2}):(\d{2})\*\s*"
    r"(?:#(\d{4,}-[me])\s*)?(?:\[(\w+)\]\s*)?—\s*(.*)$",
    re.DOTALL,
)
_CONTENT_HEADER = re.compile(
    r"^\*\*([^*\n]+)\*\*\s*\*(\d{2}):(\d{2})\*(?:\s*#(\d{4,}-[me]))?\s*$"
)


def format_message_markdown(message: RoomMessage) -> str:
    """Render one message as a transcript block, including its trailing blank line."""
    time = message.timestamp.strftime("%H:%M")
    id_tag = f" #{format_message_id(message.id, message.kind)}" if message.id is not None else ""

    if message.kind == MessageKind.SYSTEM:
        return f"> **{SYSTEM_AGENT}** *{time}*{id_tag} — {message.content}\n\n"
    if message.kind in (MessageKind.JOIN, MessageKind.LEAVE):
        return f"> **{message.agent}** *{time}*{id_tag} [{message.kind.value}] — {message.content}\n\n"
    if message.kind == MessageKind.USER:
        return f"**{USER_AGENT}** *{time}*{id_tag}\n{message.content}\n\n"
    return f"**{message.agent}** *{time}*{id_tag}\n{message.content}\n\n"


def _timestamp(hour: str, minute: str) -> datetime:
    return datetime.now().replace(hour=int(hour), minute=int(minute), second=0, microsecond=0)


def _parse_id(tag: Optional[str]) -> Optional[int]:
    if not tag:
        return None
    seq, _ = parse_message_id(tag)
    return seq if seq >= 0 else None


def render_frontmatter(data: dict[str, Any]) -> str:
    """Render a session header block, followed by the blank line before the body."""
    body = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=None)
    return f"---\n{body}---\n\n"


def read_frontmatter(content: str) -> dict[str, Any]:
    """Load a transcript's header, or an empty dict if it has none.

    Raises:
        yaml.YAMLError: If the header is not valid YAML
    """
    match = _FRONTMATTER.match(content)
    if match is None:
        return {}
    data = yaml.safe_load(match.group(1))
    return data if isinstance(data, dict) else {}


def strip_frontmatter(content: str) -> str:
    return _FRONTMATTER.sub("", content, count=1)


def parse_session_markdown(content: str) -> list[RoomMessage]:
    """Parse a session transcript back into messages.

    Blocks that match neither header form are continuation paragraphs of the
    preceding chat/user message.
    """
    body = strip_frontmatter(content).strip()
    if not body:
        return []

    messages: list[RoomMessage] = []
    open_content: Optional[RoomMessage] = None

    for block in re.split(r"\n\n+", body):
        block = block.strip()
        if not block:
            continue

        event = _EVENT_LINE.match(block)
        if event:
            agent, hour, minute, tag, kind_tag, text = event.groups()
            if kind_tag == "join":
                kind = MessageKind.JOIN
            elif kind_tag == "leave":
                kind = MessageKind.LEAVE
            else:
                kind = MessageKind.SYSTEM
            messages.append(
                RoomMessage(
                    agent=agent.strip(),
                    content=text.strip(),
                    kind=kind,
                    color="gray" if kind == MessageKind.SYSTEM else "white",
                    id=_parse_id(tag),
                    timestamp=_timestamp(hour, minute),
                )
            )
            open_content = None
            continue

        header, _, rest = block.partition("\n")
        match = _CONTENT_HEADER.match(header)
        if match:
            agent, hour, minute, tag = match.groups()
            agent = agent.strip()
            is_user = agent == USER_AGENT
            open_content = RoomMessage(
                agent=agent,
                content=rest.strip(),
                kind=MessageKind.USER if is_user else MessageKind.CHAT,
                color="whiteBright" if is_user else "white",
                id=_parse_id(tag),
                timestamp=_timestamp(hour, minute),
            )
            messages.append(open_content)
            continue

        if open_content is not None:
            open_content.content = f"{open_content.content}\n\n{block}".strip()
        else:
            logger.debug(f"Skipping unrecognized transcript block: {block[:40]!r}")

    return messages


def parse_seed_to_messages(seed_content: str) -> list[RoomMessage]:
    """Turn free-form seed material into context messages.

    Understands exported discussions made of ``## User`` and
    ``## Assistant (...)`` sections separated by ``---`` rules. A ``# Title``
    section becomes a system note; other substantial blocks are kept as
    system context.
    """
    content = re.sub(r"^---\s+\S+\s+---\n", "", seed_content).strip()
    messages: list[RoomMessage] = []

    for section in re.split(r"\n-{3,}\n", content):
        section = section.strip()
        if not section:
            continue

        if section.startswith("## User"):
            body = re.sub(r"^## User\s*", "", section).strip()
            if body:
                messages.append(RoomMessage.user(body))
            continue

        assistant = re.match(r"^## Assistant\s*(?:\(([^)]*)\))?\s*(.*)$", section, re.DOTALL)
        if assistant:
            body = assistant.group(2).strip()
            if body:
                messages.append(
                    RoomMessage(agent=PRIOR_AGENT, content=body, kind=MessageKind.CHAT, color="gray")
                )
            continue

        heading = re.match(r"^#\s+(.+)", section)
        if heading:
            messages.append(RoomMessage.system(f"Prior discussion: {heading.group(1).strip()}"))
            continue

        if len(section) > MIN_SEED_BLOCK_LENGTH:
            messages.append(RoomMessage.system(section))

    return messages


class TranscriptWriter:
    """Appends a session's messages to its markdown file as they happen.

    The file is only created once the first chat or user message arrives;
    join/leave/system messages before that are buffered so a session where
    nobody spoke leaves no file behind.
    """

    def __init__(self, path: Path, topic: str, session: int):
        self.path = Path(path)
        self.topic = topic
        self.session = session
        self.participants: list[str] = []
        self._started = False
        self._has_content = False
        self._pending: list[RoomMessage] = []

    @property
    def has_content(self) -> bool:
        return self._has_content

    def start(self, participants: Sequence[str]) -> None:
        """Record the opening roster and begin accepting messages."""
        self.participants = list(participants)
        self._started = True

    def _frontmatter(self) -> str:
        return render_frontmatter(
            {
                "topic": self.topic,
                "session": self.session,
                "started": datetime.now().isoformat(timespec="seconds"),
                "participants": self.participants,
            }
        )

    def _write(self, text: str, mode: str = "a") -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, mode, encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            raise PersistenceError("transcript write", str(self.path), e) from e

    def append(self, message: RoomMessage) -> None:
        """Add a message to the transcript.

        Raises:
            PersistenceError: If the file cannot be written
        """
        if not self._started:
            return

        if not self._has_content:
            if not message.is_content:
                self._pending.append(message)
                return
            self._has_content = True
            if not self.path.exists():
                self._write(self._frontmatter(), mode="w")
            pending, self._pending = self._pending, []
            for buffered in pending:
                self._write(format_message_markdown(buffered))

        self._write(format_message_markdown(message))

    def finalize(self) -> None:
        """Stamp the frontmatter with the session's end time."""
        if not self._started or not self.path.exists():
            return

        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError("transcript finalize", str(self.path), e) from e

        try:
            header = read_frontmatter(content)
        except yaml.YAMLError as e:
            raise PersistenceError("transcript finalize", f"bad header in {self.path}", e) from e

        header["ended"] = datetime.now().isoformat(timespec="seconds")
        updated = render_frontmatter(header) + strip_frontmatter(content)
        self._write(updated, mode="w")
        logger.debug(f"Finalized transcript {self.path}")

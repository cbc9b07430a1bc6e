"""Message identity: id allocation and the content/event id tag.

Ids are plain non-negative integers handed out in emission order. Some
collaborators index derived artifacts purely by id, so the persisted form
carries an explicit kind flag: ``0042-m`` for content (chat/user) and
``0007-e`` for events (join/leave/system).
"""

import re
from dataclasses import replace
from typing import Iterable, Optional, Union

from .types import MessageKind, RoomMessage

CONTENT_SUFFIX = "m"
EVENT_SUFFIX = "e"

_ID_PATTERN = re.compile(r"^(\d{4,})-([me])$")


def is_content_kind(kind: Union[MessageKind, str]) -> bool:
    """Return True for chat/user kinds, False for join/leave/system."""
    return MessageKind(kind).is_content


def format_message_id(seq: int, kind: Union[MessageKind, str]) -> str:
    """Render an id as a zero-padded tag with its kind flag."""
    if seq < 0:
        raise ValueError(f"Message ids are non-negative, got {seq}")
    suffix = CONTENT_SUFFIX if is_content_kind(kind) else EVENT_SUFFIX
    return f"{seq:04d}-{suffix}"


def parse_message_id(tag: str) -> tuple[int, bool]:
    """Parse an id tag into ``(seq, is_content)``.

    Returns ``(-1, False)`` for anything that isn't a valid tag.
    """
    match = _ID_PATTERN.match(tag.strip()) if tag else None
    if not match:
        return -1, False
    return int(match.group(1)), match.group(2) == CONTENT_SUFFIX


class MessageSequencer:
    """Hands out strictly increasing message ids."""

    def __init__(self, next_id: int = 0):
        if next_id < 0:
            raise ValueError(f"next_id must be non-negative, got {next_id}")
        self._next_id = next_id

    @property
    def next_id(self) -> int:
        """The id the next allocation will return."""
        return self._next_id

    def allocate(self) -> int:
        """Reserve and return the next id."""
        seq = self._next_id
        self._next_id += 1
        return seq

    def release(self, seq: int) -> bool:
        """Give back an id that was never used.

        Only the most recent allocation can be returned, so ids stay
        gap-free without ever being handed out twice.
        """
        if seq == self._next_id - 1:
            self._next_id = seq
            return True
        return False

    def assign(self, message: RoomMessage) -> RoomMessage:
        """Give the message an id if it doesn't carry a pre-allocated one."""
        if message.id is None:
            message.id = self.allocate()
        return message

    @classmethod
    def resume(cls, history: Iterable[RoomMessage]) -> tuple["MessageSequencer", list[RoomMessage]]:
        """Build a sequencer that continues after already-persisted history.

        Existing ids are kept verbatim. Legacy messages without an id get
        their position as a stable fallback. New ids start above the highest
        id seen.
        """
        restored: list[RoomMessage] = []
        highest: Optional[int] = None
        for index, message in enumerate(history):
            if message.id is None:
                message = replace(message, id=index)
            restored.append(message)
            if highest is None or message.id > highest:
                highest = message.id
        next_id = 0 if highest is None else highest + 1
        return cls(next_id), restored

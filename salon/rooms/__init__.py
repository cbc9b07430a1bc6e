"""Room persistence: metadata, seed material and session transcripts."""

from .store import META_FILENAME, RoomListing, RoomMeta, RoomStore
from .transcript import (
    PRIOR_AGENT,
    TranscriptWriter,
    format_message_markdown,
    parse_seed_to_messages,
    parse_session_markdown,
    read_frontmatter,
)

__all__ = [
    "META_FILENAME",
    "PRIOR_AGENT",
    "RoomListing",
    "RoomMeta",
    "RoomStore",
    "TranscriptWriter",
    "format_message_markdown",
    "parse_seed_to_messages",
    "parse_session_markdown",
    "read_frontmatter",
]

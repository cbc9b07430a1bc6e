"""Room directories on disk.

    rooms/
    ├── ai-thoughts/
    │   ├── room.yaml          # topic, language, roster of the last session
    │   ├── seed.md            # optional starting material
    │   ├── 001-session.md     # session transcripts
    │   └── 002-session.md
    └── climate-policy/
        └── seed.md
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from salon.core.types import RoomMessage
from salon.errors import PersistenceError

from .transcript import TranscriptWriter, parse_session_markdown

logger = logging.getLogger(__name__)

META_FILENAME = "room.yaml"
SESSION_PATTERN = re.compile(r"^(\d{3})-session\.md$")


class RoomMeta(BaseModel):
    """Contents of a room's room.yaml."""

    topic: str
    language: str = "English"
    created: str = Field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))
    last_session: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("last_session", "lastSession")
    )
    # Agents active in the last session, so a resumed room keeps its roster
    active_roster: Optional[list[str]] = Field(
        default=None, validation_alias=AliasChoices("active_roster", "activeRoster")
    )


@dataclass
class RoomListing:
    """Summary of a room directory."""

    name: str
    meta: Optional[RoomMeta]
    sessions: int
    has_seed: bool


class RoomStore:
    """Reads and writes room directories under a root folder."""

    def __init__(self, root: Union[str, Path] = "rooms"):
        """Initialize the store.

        Args:
            root: Directory holding one subdirectory per room
        """
        self.root = Path(root).expanduser()

    def room_dir(self, name: str) -> Path:
        return self.root / name

    def exists(self, name: str) -> bool:
        return self.room_dir(name).is_dir()

    def create(self, name: str) -> Path:
        """Create the room directory if needed."""
        path = self.room_dir(name)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError("create", str(path), e) from e
        return path

    # Metadata

    def load_meta(self, name: str) -> Optional[RoomMeta]:
        """Load room.yaml, or None if the room has none.

        Raises:
            PersistenceError: If the file exists but cannot be read
        """
        path = self.room_dir(name) / META_FILENAME
        if not path.exists():
            return None
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            return RoomMeta.model_validate(data)
        except (OSError, yaml.YAMLError, ValidationError) as e:
            raise PersistenceError("load", f"cannot read {path}", e) from e

    def save_meta(self, name: str, meta: RoomMeta) -> None:
        """Write room.yaml, creating the room directory if needed."""
        path = self.create(name) / META_FILENAME
        data = meta.model_dump(exclude_none=True)
        try:
            path.write_text(
                yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8"
            )
        except OSError as e:
            raise PersistenceError("save", f"cannot write {path}", e) from e

    # Seed material

    def seed_files(self, name: str) -> list[Path]:
        """Markdown files in the room that are not session transcripts."""
        path = self.room_dir(name)
        if not path.is_dir():
            return []
        return sorted(
            f for f in path.iterdir()
            if f.suffix == ".md" and not SESSION_PATTERN.match(f.name)
        )

    def load_seed_material(self, name: str) -> Optional[str]:
        """Concatenate the room's seed files, each under a ``--- file ---`` header."""
        files = self.seed_files(name)
        if not files:
            return None
        parts = [f"--- {f.name} ---\n{f.read_text(encoding='utf-8').strip()}" for f in files]
        return "\n\n".join(parts)

    # Sessions

    def session_files(self, name: str) -> list[Path]:
        """Session transcripts in chronological order."""
        path = self.room_dir(name)
        if not path.is_dir():
            return []
        return sorted(f for f in path.iterdir() if SESSION_PATTERN.match(f.name))

    def session_path(self, name: str, session: int) -> Path:
        return self.room_dir(name) / f"{session:03d}-session.md"

    def next_session_number(self, name: str) -> int:
        numbers = [int(SESSION_PATTERN.match(f.name).group(1)) for f in self.session_files(name)]
        return max(numbers) + 1 if numbers else 1

    def load_previous_sessions(self, name: str, max_messages: int) -> list[RoomMessage]:
        """Load the last ``max_messages`` messages across all past sessions."""
        messages: list[RoomMessage] = []
        for path in self.session_files(name):
            try:
                messages.extend(parse_session_markdown(path.read_text(encoding="utf-8")))
            except OSError as e:
                raise PersistenceError("load", f"cannot read {path}", e) from e
        if max_messages <= 0:
            return []
        return messages[-max_messages:]

    def open_transcript(self, name: str, session: int, topic: str) -> TranscriptWriter:
        """Create the writer for a new session of the room."""
        self.create(name)
        return TranscriptWriter(self.session_path(name, session), topic, session)

    def list_rooms(self) -> list[RoomListing]:
        """Summarize every room under the root, sorted by name."""
        if not self.root.is_dir():
            return []
        listings = []
        for path in sorted(p for p in self.root.iterdir() if p.is_dir()):
            try:
                meta = self.load_meta(path.name)
            except PersistenceError as e:
                logger.warning(f"Skipping metadata for room {path.name}: {e.message}")
                meta = None
            listings.append(
                RoomListing(
                    name=path.name,
                    meta=meta,
                    sessions=len(self.session_files(path.name)),
                    has_seed=bool(self.seed_files(path.name)),
                )
            )
        return listings

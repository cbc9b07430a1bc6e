"""Tests for room directories on disk."""

from pathlib import Path

import pytest
from conftest import make_agent

from salon.core.types import RoomMessage
from salon.errors import PersistenceError
from salon.rooms import META_FILENAME, RoomMeta, RoomStore, format_message_markdown


@pytest.fixture
def store(temp_dir: Path) -> RoomStore:
    return RoomStore(temp_dir / "rooms")


def write_session(store: RoomStore, name: str, session: int, messages: list[RoomMessage]) -> Path:
    path = store.session_path(name, session)
    path.parent.mkdir(parents=True, exist_ok=True)
    body = "".join(format_message_markdown(m) for m in messages)
    path.write_text(f"---\ntopic: \"t\"\nsession: {session}\n---\n\n{body}", encoding="utf-8")
    return path


def chat(text: str, id: int) -> RoomMessage:
    message = RoomMessage.chat(make_agent("Sage"), text)
    message.id = id
    return message


class TestRoomMeta:
    """Tests for room.yaml handling."""

    def test_missing_meta(self, store: RoomStore) -> None:
        assert not store.exists("cities")
        assert store.load_meta("cities") is None

    def test_save_and_load(self, store: RoomStore) -> None:
        meta = RoomMeta(topic="Cities", language="Spanish", active_roster=["Sage", "Riko"])
        meta.last_session = 2

        store.save_meta("cities", meta)
        loaded = store.load_meta("cities")

        assert store.exists("cities")
        assert loaded is not None
        assert loaded.topic == "Cities"
        assert loaded.language == "Spanish"
        assert loaded.last_session == 2
        assert loaded.active_roster == ["Sage", "Riko"]
        assert loaded.created == meta.created

    def test_none_roster_not_written(self, store: RoomStore) -> None:
        store.save_meta("cities", RoomMeta(topic="Cities"))
        text = (store.room_dir("cities") / META_FILENAME).read_text(encoding="utf-8")
        assert "active_roster" not in text

    def test_camel_case_keys(self, store: RoomStore) -> None:
        store.create("old")
        (store.room_dir("old") / META_FILENAME).write_text(
            "topic: Old room\nlastSession: 4\nactiveRoster: [Nova, Wren]\n", encoding="utf-8"
        )

        meta = store.load_meta("old")

        assert meta.last_session == 4
        assert meta.active_roster == ["Nova", "Wren"]
        assert meta.language == "English"

    def test_invalid_meta(self, store: RoomStore) -> None:
        store.create("broken")
        (store.room_dir("broken") / META_FILENAME).write_text("language: French\n", encoding="utf-8")

        with pytest.raises(PersistenceError):
            store.load_meta("broken")


class TestSeedMaterial:
    """Tests for seed files."""

    def test_no_seed(self, store: RoomStore) -> None:
        store.create("cities")
        assert store.load_seed_material("cities") is None

    def test_seed_files_exclude_sessions(self, store: RoomStore) -> None:
        room = store.create("cities")
        (room / "seed.md").write_text("# Cities\n\nNotes", encoding="utf-8")
        (room / "extra.md").write_text("More notes\n", encoding="utf-8")
        (room / "001-session.md").write_text("---\n---\n", encoding="utf-8")
        (room / "notes.txt").write_text("ignored", encoding="utf-8")

        assert [f.name for f in store.seed_files("cities")] == ["extra.md", "seed.md"]
        assert store.load_seed_material("cities") == (
            "--- extra.md ---\nMore notes\n\n--- seed.md ---\n# Cities\n\nNotes"
        )


class TestSessions:
    """Tests for session numbering and history loading."""

    def test_first_session(self, store: RoomStore) -> None:
        assert store.next_session_number("cities") == 1
        assert store.session_path("cities", 1).name == "001-session.md"

    def test_next_session_number(self, store: RoomStore) -> None:
        write_session(store, "cities", 1, [chat("a", 0)])
        write_session(store, "cities", 3, [chat("b", 1)])
        assert store.next_session_number("cities") == 4

    def test_load_previous_sessions(self, store: RoomStore) -> None:
        write_session(store, "cities", 1, [chat("one", 0), chat("two", 1)])
        write_session(store, "cities", 2, [chat("three", 2), chat("four", 3)])

        messages = store.load_previous_sessions("cities", 3)

        assert [m.content for m in messages] == ["two", "three", "four"]
        assert [m.id for m in messages] == [1, 2, 3]

    def test_load_previous_sessions_zero(self, store: RoomStore) -> None:
        write_session(store, "cities", 1, [chat("one", 0)])
        assert store.load_previous_sessions("cities", 0) == []

    def test_open_transcript(self, store: RoomStore) -> None:
        writer = store.open_transcript("cities", 2, "Cities")
        assert writer.path == store.session_path("cities", 2)
        assert writer.session == 2
        assert store.exists("cities")


class TestListRooms:
    """Tests for list_rooms."""

    def test_no_root(self, store: RoomStore) -> None:
        assert store.list_rooms() == []

    def test_listing(self, store: RoomStore) -> None:
        store.save_meta("b-room", RoomMeta(topic="B"))
        write_session(store, "b-room", 1, [chat("x", 0)])
        seeded = store.create("a-room")
        (seeded / "seed.md").write_text("# A\n", encoding="utf-8")
        store.create("c-broken")
        (store.room_dir("c-broken") / META_FILENAME).write_text("language: French\n", encoding="utf-8")

        listings = store.list_rooms()

        assert [r.name for r in listings] == ["a-room", "b-room", "c-broken"]
        assert listings[0].meta is None
        assert listings[0].has_seed
        assert listings[1].meta.topic == "B"
        assert listings[1].sessions == 1
        assert not listings[1].has_seed
        assert listings[2].meta is None

from __future__ import annotations

import json
import os
from datetime import datetime, timezone

import pytest

from scrolls.errors import CaptureError, NotFoundError, StorageError, ValidationError
from scrolls.store import NoteStore

from fakes import TickingClock, failing_capture, silent_capture, writing_capture


def _document(store: NoteStore) -> dict:
    return json.loads(store.path.read_text(encoding="utf-8"))


def test_gate_code_scenario(store) -> None:
    note = store.create_text("Gate Code", "4471", ["security", "door"])
    assert note.id == 1
    assert [n.id for n in store.list_notes()] == [1]
    assert [n.id for n in store.search("door")] == [1]
    assert store.search("nope") == []

    store.delete(1)
    assert store.list_notes() == []


def test_ids_strictly_increase_and_are_never_reused(store) -> None:
    first = store.create_text("one", "", [])
    second = store.create_text("two", "", [])
    store.delete(second.id)
    third = store.create_text("three", "", [])

    assert first.id < second.id < third.id
    assert third.id == 3
    assert third in store.list_notes()


def test_create_requires_title(store) -> None:
    with pytest.raises(ValidationError):
        store.create_text("   ", "body", [])
    assert len(store) == 0
    assert store.next_id == 1
    assert not store.path.exists()


def test_tags_are_trimmed_and_duplicates_kept(store) -> None:
    note = store.create_text("t", "", ["  a ", "a", "b  "])
    assert note.tags == ["a", "a", "b"]


def test_list_is_newest_first(store) -> None:
    for title in ("old", "middle", "new"):
        store.create_text(title, "", [])
    assert [n.title for n in store.list_notes()] == ["new", "middle", "old"]


def test_document_shape(store) -> None:
    store.create_text("words", "body", ["x"])
    store.create_image("picture", [], writing_capture)

    doc = _document(store)
    assert doc["nextId"] == 3
    text, image = doc["notes"]
    assert text["kind"] == "text"
    assert text["content"] == "body"
    assert "imagePath" not in text
    assert image["kind"] == "image"
    assert "content" not in image
    assert image["imagePath"].endswith(".png")
    assert {"createdAt", "updatedAt"} <= set(text)


def test_reload_round_trip(home, store) -> None:
    store.create_text("a", "alpha", ["one"])
    store.create_image("b", ["two"], writing_capture)

    reloaded = NoteStore(home)
    assert [n.to_document() for n in reloaded.list_notes()] == [
        n.to_document() for n in store.list_notes()
    ]
    assert reloaded.next_id == store.next_id
    assert reloaded.load_error is None


def test_garbled_document_loads_empty(home, store) -> None:
    store.create_text("a", "alpha", [])
    store.path.write_text('{"notes": [{"id": 1, "tit', encoding="utf-8")

    reloaded = NoteStore(home)
    assert reloaded.list_notes() == []
    assert reloaded.next_id == 1
    assert reloaded.load_error

    assert reloaded.create_text("fresh", "", []).id == 1


def test_stale_next_id_is_reconciled(home, clock) -> None:
    home.mkdir(parents=True)
    (home / "scrolls.json").write_text(
        json.dumps(
            {
                "notes": [
                    {
                        "id": 5,
                        "title": "five",
                        "kind": "text",
                        "content": "",
                        "tags": [],
                        "createdAt": "2026-01-01T00:00:00+00:00",
                        "updatedAt": "2026-01-01T00:00:00+00:00",
                    }
                ],
                "nextId": 2,
            }
        ),
        encoding="utf-8",
    )

    store = NoteStore(home, clock=clock)
    assert store.next_id == 6
    assert store.create_text("six", "", []).id == 6


def test_missing_next_id_is_recomputed(home) -> None:
    home.mkdir(parents=True)
    (home / "scrolls.json").write_text(
        json.dumps(
            {
                "notes": [
                    {
                        "id": 9,
                        "title": "nine",
                        "kind": "text",
                        "createdAt": "2026-01-01T00:00:00+00:00",
                        "updatedAt": "2026-01-01T00:00:00+00:00",
                    }
                ]
            }
        ),
        encoding="utf-8",
    )
    store = NoteStore(home)
    assert store.next_id == 10
    assert store.get(9).content == ""


def test_loads_older_archive_format(home) -> None:
    home.mkdir(parents=True)
    (home / "scrolls.json").write_text(
        json.dumps(
            {
                "notes": [
                    {
                        "id": 3,
                        "title": "Old capture",
                        "content": "",
                        "tags": None,
                        "created_at": "2024-01-02T15:04:05-05:00",
                        "updated_at": "2024-01-02T15:04:05-05:00",
                        "type": "screenshot",
                        "file_path": "/tmp/scroll_capture_20240102_150405_3.png",
                        "screenshot": "scroll_capture_20240102_150405_3.png",
                    }
                ],
                "next_id": 4,
                "NotesDir": "/somewhere",
            }
        ),
        encoding="utf-8",
    )

    store = NoteStore(home)
    note = store.get(3)
    assert note.kind == "image"
    assert note.image_path == "/tmp/scroll_capture_20240102_150405_3.png"
    assert note.content is None
    assert note.tags == []
    assert store.next_id == 4

    store.retitle(3, "Migrated")
    doc = _document(store)
    assert doc["nextId"] == 4
    assert doc["notes"][0]["imagePath"] == note.image_path
    assert "next_id" not in doc


def test_search_matches_title_content_and_tags(store) -> None:
    store.create_text("Grocery List", "milk and EGGS", ["home"])
    store.create_text("Meeting", "quarterly numbers", ["Work", "finance"])
    store.create_image("Whiteboard eggs", ["work"], writing_capture)

    assert [n.title for n in store.search("grocery")] == ["Grocery List"]
    assert [n.title for n in store.search("eggs")] == ["Whiteboard eggs", "Grocery List"]
    assert [n.title for n in store.search("WORK")] == ["Whiteboard eggs", "Meeting"]
    assert store.search("zebra") == []

    for query in ("e", "fin", "milk"):
        expected = [
            n
            for n in store.list_notes()
            if query in n.title.lower()
            or query in (n.content or "").lower()
            or any(query in t.lower() for t in n.tags)
        ]
        assert store.search(query) == expected


def test_get_unknown_id(store) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        store.get(42)
    assert excinfo.value.note_id == 42


def test_delete_leaves_other_notes_alone(store) -> None:
    keep = store.create_text("keep", "", [])
    gone = store.create_text("gone", "", [])

    store.delete(gone.id)

    with pytest.raises(NotFoundError):
        store.get(gone.id)
    assert store.get(keep.id).updated_at == keep.updated_at
    with pytest.raises(NotFoundError):
        store.delete(gone.id)


def test_edit_bumps_updated_at(store) -> None:
    note = store.create_text("draft", "first", [])

    edited = store.edit_text(note.id, title="final", content="second")

    assert edited.title == "final"
    assert edited.content == "second"
    assert edited.updated_at > note.updated_at
    assert edited.updated_at != edited.created_at
    assert _document(store)["notes"][0]["title"] == "final"


def test_keep_current_edit_is_a_no_op(store) -> None:
    note = store.create_text("same", "body", ["t"])
    before = store.path.read_text(encoding="utf-8")

    unchanged = store.edit_text(note.id, title="", content="  ", tags=None)

    assert unchanged.updated_at == note.updated_at
    assert unchanged.updated_at == unchanged.created_at
    assert store.path.read_text(encoding="utf-8") == before


def test_edit_content_of_image_is_rejected(store) -> None:
    note = store.create_image("pic", [], writing_capture)
    with pytest.raises(ValidationError):
        store.edit_text(note.id, content="words")
    assert store.get(note.id).content is None

    retitled = store.edit_text(note.id, title="renamed")
    assert retitled.title == "renamed"


def test_retitle_and_retag(store) -> None:
    note = store.create_text("t", "", ["a", "b"])

    retitled = store.retitle(note.id, "  New title ")
    assert retitled.title == "New title"
    assert retitled.updated_at > note.updated_at

    with pytest.raises(ValidationError):
        store.retitle(note.id, "")

    cleared = store.retag(note.id, [])
    assert cleared.tags == []
    assert cleared.updated_at > retitled.updated_at
    assert _document(store)["notes"][0]["tags"] == []


def test_kind_never_changes(store) -> None:
    note = store.create_text("t", "body", [])
    store.edit_text(note.id, title="x", content="y", tags=["z"])
    store.retitle(note.id, "again")
    assert store.get(note.id).kind == "text"


def test_create_image(store) -> None:
    note = store.create_image("Screen", ["ui"], writing_capture)

    assert note.id == 1
    assert note.kind == "image"
    assert os.path.exists(note.image_path)
    assert os.path.dirname(note.image_path) == str(store.screenshots_dir)
    assert os.path.basename(note.image_path).startswith("scroll_capture_")
    assert os.path.basename(note.image_path).endswith("_1.png")


@pytest.mark.parametrize("capture", [failing_capture, silent_capture])
def test_failed_capture_changes_nothing(store, capture) -> None:
    store.create_text("existing", "", [])
    before = store.path.read_text(encoding="utf-8")

    with pytest.raises(CaptureError):
        store.create_image("nothing", [], capture)

    assert store.next_id == 2
    assert len(store) == 1
    assert store.path.read_text(encoding="utf-8") == before
    assert store.create_text("next", "", []).id == 2


def test_replace_image_on_text_note_is_rejected(store) -> None:
    note = store.create_text("Gate Code", "4471", [])
    before = store.path.read_text(encoding="utf-8")
    calls = []

    def capture(target):
        calls.append(target)
        return writing_capture(target)

    with pytest.raises(ValidationError):
        store.replace_image(note.id, capture, delete_old=True)

    assert calls == []
    assert store.get(note.id) == note
    assert store.path.read_text(encoding="utf-8") == before


def test_replace_image_keeps_or_removes_old_file(store) -> None:
    note = store.create_image("pic", [], writing_capture)
    old_path = note.image_path

    kept, problem = store.replace_image(note.id, writing_capture, delete_old=False)
    assert problem is None
    assert kept.image_path != old_path
    assert os.path.exists(old_path)
    assert kept.updated_at > note.updated_at

    replaced, problem = store.replace_image(note.id, writing_capture, delete_old=True)
    assert problem is None
    assert not os.path.exists(kept.image_path)
    assert os.path.exists(replaced.image_path)
    assert _document(store)["notes"][0]["imagePath"] == replaced.image_path


def test_replace_image_warns_when_old_file_is_gone(store) -> None:
    note = store.create_image("pic", [], writing_capture)
    os.remove(note.image_path)

    updated, problem = store.replace_image(note.id, writing_capture, delete_old=True)

    assert problem and "Could not delete" in problem
    assert store.get(note.id).image_path == updated.image_path


def test_replace_image_capture_failure_keeps_note(store) -> None:
    note = store.create_image("pic", [], writing_capture)
    with pytest.raises(CaptureError):
        store.replace_image(note.id, failing_capture, delete_old=True)
    assert store.get(note.id) == note
    assert os.path.exists(note.image_path)


def test_replace_image_unknown_id(store) -> None:
    with pytest.raises(NotFoundError):
        store.replace_image(7, writing_capture)


def test_delete_image_note_optionally_removes_only_its_file(store) -> None:
    first = store.create_image("first", [], writing_capture)
    second = store.create_image("second", [], writing_capture)
    third = store.create_image("third", [], writing_capture)

    store.delete(first.id, delete_image_file=False)
    assert os.path.exists(first.image_path)

    _, problem = store.delete(second.id, delete_image_file=True)
    assert problem is None
    assert not os.path.exists(second.image_path)
    assert os.path.exists(third.image_path)


def test_failed_save_rolls_back(store, monkeypatch) -> None:
    note = store.create_text("t", "", [])

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", broken_replace)

    with pytest.raises(StorageError):
        store.create_text("lost", "", [])
    with pytest.raises(StorageError):
        store.retitle(note.id, "lost")
    with pytest.raises(StorageError):
        store.delete(note.id)

    assert store.next_id == 2
    assert store.list_notes() == [note]


def test_custom_start_time_orders_by_creation(home) -> None:
    store = NoteStore(home, clock=TickingClock(datetime(2030, 5, 1, tzinfo=timezone.utc)))
    a = store.create_text("a", "", [])
    b = store.create_text("b", "", [])
    assert b.created_at > a.created_at
    assert store.list_notes()[0] == b


def test_failed_save_discards_the_temporary_file(store, monkeypatch) -> None:
    store.create_text("t", "", [])

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", broken_replace)
    with pytest.raises(StorageError):
        store.create_text("lost", "", [])

    assert not store.path.with_suffix(".tmp").exists()
    assert store.path.exists()


def test_failed_save_removes_fresh_captures(store, monkeypatch) -> None:
    note = store.create_image("pic", [], writing_capture)
    before = store.path.read_text(encoding="utf-8")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", broken_replace)

    with pytest.raises(StorageError):
        store.create_image("lost", [], writing_capture)
    with pytest.raises(StorageError):
        store.replace_image(note.id, writing_capture, delete_old=True)

    assert sorted(p.name for p in store.screenshots_dir.iterdir()) == [
        os.path.basename(note.image_path)
    ]
    assert store.get(note.id) == note
    assert store.list_notes() == [note]
    assert store.next_id == 2
    assert store.path.read_text(encoding="utf-8") == before


def test_capture_error_from_the_program_changes_nothing(store) -> None:
    def no_program(target):
        raise CaptureError("No screenshot program found.")

    with pytest.raises(CaptureError, match="No screenshot program"):
        store.create_image("nothing", [], no_program)
    assert store.next_id == 1
    assert len(store) == 0


def test_timestamps_without_offset_are_comparable(home, clock) -> None:
    home.mkdir(parents=True)
    (home / "scrolls.json").write_text(
        json.dumps(
            {
                "notes": [
                    {
                        "id": 1,
                        "title": "naive",
                        "kind": "text",
                        "content": "old",
                        "tags": ["legacy"],
                        "createdAt": "2025-12-01T00:00:00",
                        "updatedAt": "2025-12-01T00:00:00",
                    }
                ],
                "nextId": 2,
            }
        ),
        encoding="utf-8",
    )

    store = NoteStore(home, clock=clock)
    assert store.get(1).created_at.tzinfo is not None

    store.create_text("new", "", ["legacy"])
    assert [n.title for n in store.list_notes()] == ["new", "naive"]
    assert [n.title for n in store.search("legacy")] == ["new", "naive"]
    assert NoteStore(home).get(1).created_at == store.get(1).created_at

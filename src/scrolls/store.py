"""
Note store for Scrolls.

The whole archive lives in memory and is rewritten to a single JSON
document after every successful mutation.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from scrolls.config import ensure_dirs, get_collection_path, get_screenshots_dir
from scrolls.errors import CaptureError, NotFoundError, StorageError
from scrolls.errors import ValidationError as ScrollValidationError

logger = logging.getLogger(__name__)

# Given a target path, try to write an image there. True on success;
# may raise CaptureError to explain why nothing could be captured.
CaptureFn = Callable[[Path], bool]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Note(BaseModel):
    """A single scroll: either inscribed text or a captured image."""

    id: int = Field(gt=0)
    title: str
    kind: Literal["text", "image"] = Field(
        default="text", validation_alias=AliasChoices("kind", "type")
    )
    content: str | None = None
    image_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("imagePath", "image_path", "file_path"),
        serialization_alias="imagePath",
    )
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )
    updated_at: datetime = Field(
        validation_alias=AliasChoices("updatedAt", "updated_at"),
        serialization_alias="updatedAt",
    )

    @field_validator("kind", mode="before")
    @classmethod
    def _legacy_kind(cls, value: Any) -> Any:
        # Older archives called image scrolls "screenshot"
        if value == "screenshot":
            return "image"
        return value

    @field_validator("created_at", "updated_at")
    @classmethod
    def _aware_timestamps(cls, value: datetime) -> datetime:
        # Offset-less timestamps are read as local time
        if value.tzinfo is None:
            return value.astimezone()
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _fields_for_kind(self) -> "Note":
        if self.kind == "text":
            self.content = self.content or ""
            self.image_path = None
        else:
            self.content = None
        return self

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Collection(BaseModel):
    """On-disk shape: {"notes": [...], "nextId": N}."""

    notes: list[Note] = Field(default_factory=list)
    next_id: int = Field(
        default=1,
        validation_alias=AliasChoices("nextId", "next_id"),
        serialization_alias="nextId",
    )

    @field_validator("notes", mode="before")
    @classmethod
    def _null_notes(cls, value: Any) -> Any:
        return [] if value is None else value


def clean_tags(tags: list[str] | None) -> list[str]:
    """Trim surrounding whitespace from each tag."""
    return [tag.strip() for tag in (tags or [])]


def matches(note: Note, query: str) -> bool:
    """Case-insensitive substring match on title, content or any tag."""
    q = query.lower()
    if q in note.title.lower():
        return True
    if note.kind == "text" and q in (note.content or "").lower():
        return True
    return any(q in tag.lower() for tag in note.tags)


def remove_file(path: str | None) -> str | None:
    """
    Best-effort delete of an image file.

    Returns a warning message on failure, None on success.
    """
    if not path:
        return None
    try:
        os.remove(path)
    except OSError as e:
        logger.warning("Could not remove image %s: %s", path, e)
        return f"Could not delete image {path}: {e}"
    logger.info("Removed image %s", path)
    return None


class NoteStore:
    """In-memory archive with whole-document JSON persistence."""

    def __init__(self, home: Path, clock: Callable[[], datetime] | None = None):
        self.home = home
        self.path = get_collection_path(home)
        self.screenshots_dir = get_screenshots_dir(home)
        self.clock = clock or utcnow
        self.load_error: str | None = None
        self._notes: list[Note] = []
        self._next_id = 1

        # The one fatal error: let OSError propagate to the caller
        ensure_dirs(home)
        self.load()

    @property
    def next_id(self) -> int:
        return self._next_id

    def load(self) -> None:
        """
        Load the collection document.

        Missing or malformed documents leave an empty archive. The next ID
        is always reconciled against the largest ID actually present.
        """
        self._notes = []
        self._next_id = 1
        self.load_error = None

        if not self.path.exists():
            return

        try:
            raw = self.path.read_text(encoding="utf-8")
            collection = Collection.model_validate_json(raw)
        except (OSError, ValueError) as e:
            # pydantic's ValidationError is a ValueError; so is bad UTF-8
            summary = str(e).splitlines()[0] if str(e) else type(e).__name__
            logger.warning("Could not load %s, starting empty: %s", self.path, summary)
            self.load_error = summary
            return

        self._notes = collection.notes
        highest = max((note.id for note in self._notes), default=0)
        self._next_id = max(collection.next_id, highest + 1, 1)
        if self._next_id != collection.next_id:
            logger.info(
                "Reconciled next ID from %d to %d", collection.next_id, self._next_id
            )
        logger.debug("Loaded %d scrolls from %s", len(self._notes), self.path)

    def _write(self, notes: list[Note], next_id: int) -> None:
        """Serialize the whole archive, replacing the document in one move."""
        document = {
            "notes": [note.to_document() for note in notes],
            "nextId": next_id,
        }

        tmp_path = self.path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("Could not save %s: %s", self.path, e)
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Error saving scrolls: {e}") from e

    def _commit(self, notes: list[Note], next_id: int | None = None) -> None:
        """Persist a candidate state; adopt it only once it is on disk."""
        next_id = self._next_id if next_id is None else next_id
        self._write(notes, next_id)
        self._notes = notes
        self._next_id = next_id

    def _index(self, note_id: int) -> int:
        for i, note in enumerate(self._notes):
            if note.id == note_id:
                return i
        raise NotFoundError(note_id)

    def _replace(self, index: int, note: Note) -> list[Note]:
        notes = list(self._notes)
        notes[index] = note
        return notes

    def _image_path_for(self, note_id: int, exclude: str | None = None) -> Path:
        """Timestamped capture path that collides with nothing on disk."""
        stamp = self.clock().astimezone().strftime("%Y%m%d_%H%M%S")
        base = f"scroll_capture_{stamp}_{note_id}"
        path = self.screenshots_dir / f"{base}.png"
        n = 1
        while path.exists() or str(path) == exclude:
            path = self.screenshots_dir / f"{base}_{n}.png"
            n += 1
        return path

    # ---- creation ----

    def create_text(self, title: str, content: str = "", tags: list[str] | None = None) -> Note:
        title = title.strip()
        if not title:
            raise ScrollValidationError("A scroll needs a title.")

        now = self.clock()
        note = Note(
            id=self._next_id,
            title=title,
            kind="text",
            content=content,
            tags=clean_tags(tags),
            created_at=now,
            updated_at=now,
        )
        self._commit(self._notes + [note], self._next_id + 1)
        logger.info("Created text scroll #%d", note.id)
        return note

    def create_image(self, title: str, tags: list[str] | None, capture: CaptureFn) -> Note:
        title = title.strip()
        if not title:
            raise ScrollValidationError("A captured image needs a title.")

        note_id = self._next_id
        target = self._image_path_for(note_id)
        if not capture(target) or not target.exists():
            logger.warning("Capture for scroll #%d produced no file at %s", note_id, target)
            raise CaptureError("Knowledge capture cancelled or failed.")

        now = self.clock()
        note = Note(
            id=note_id,
            title=title,
            kind="image",
            image_path=str(target),
            tags=clean_tags(tags),
            created_at=now,
            updated_at=now,
        )
        try:
            self._commit(self._notes + [note], note_id + 1)
        except StorageError:
            remove_file(str(target))
            raise
        logger.info("Created image scroll #%d at %s", note.id, target)
        return note

    # ---- queries ----

    def list_notes(self) -> list[Note]:
        """All scrolls, newest first."""
        return sorted(self._notes, key=lambda n: (n.created_at, n.id), reverse=True)

    def get(self, note_id: int) -> Note:
        return self._notes[self._index(note_id)]

    def search(self, query: str) -> list[Note]:
        return [note for note in self.list_notes() if matches(note, query)]

    def __len__(self) -> int:
        return len(self._notes)

    # ---- mutation ----

    def edit_text(
        self,
        note_id: int,
        title: str | None = None,
        content: str | None = None,
        tags: list[str] | None = None,
    ) -> Note:
        """
        Apply the supplied fields, keeping the rest.

        Blank title or content means "keep current". tags=None keeps the
        current tags; a list (even empty) replaces them.
        """
        index = self._index(note_id)
        note = self._notes[index]
        changes: dict[str, Any] = {}

        if title is not None and title.strip():
            changes["title"] = title.strip()
        if content is not None and content.strip():
            if note.kind != "text":
                raise ScrollValidationError(
                    f"Scroll #{note_id} is a captured image and has no text content."
                )
            changes["content"] = content
        if tags is not None:
            changes["tags"] = clean_tags(tags)

        changes = {k: v for k, v in changes.items() if getattr(note, k) != v}
        if not changes:
            return note

        changes["updated_at"] = self.clock()
        updated = note.model_copy(update=changes)
        self._commit(self._replace(index, updated))
        logger.info("Edited scroll #%d (%s)", note_id, ", ".join(sorted(changes)))
        return updated

    def retitle(self, note_id: int, title: str) -> Note:
        index = self._index(note_id)
        title = title.strip()
        if not title:
            raise ScrollValidationError("A scroll needs a title.")

        updated = self._notes[index].model_copy(
            update={"title": title, "updated_at": self.clock()}
        )
        self._commit(self._replace(index, updated))
        logger.info("Retitled scroll #%d", note_id)
        return updated

    def retag(self, note_id: int, tags: list[str]) -> Note:
        """Replace all tags. An empty list clears them."""
        index = self._index(note_id)
        updated = self._notes[index].model_copy(
            update={"tags": clean_tags(tags), "updated_at": self.clock()}
        )
        self._commit(self._replace(index, updated))
        logger.info("Retagged scroll #%d", note_id)
        return updated

    def replace_image(
        self, note_id: int, capture: CaptureFn, delete_old: bool = False
    ) -> tuple[Note, str | None]:
        """
        Capture a fresh image for an image scroll.

        Returns the updated note and a warning if the old file could not
        be removed.
        """
        index = self._index(note_id)
        note = self._notes[index]
        if note.kind != "image":
            raise ScrollValidationError(
                f"Scroll #{note_id} is not a captured image. Cannot recapture."
            )

        old_path = note.image_path
        target = self._image_path_for(note_id, exclude=old_path)
        if not capture(target) or not target.exists():
            logger.warning("Recapture for scroll #%d produced no file at %s", note_id, target)
            raise CaptureError("Knowledge recapture cancelled or failed.")

        updated = note.model_copy(
            update={"image_path": str(target), "updated_at": self.clock()}
        )
        try:
            self._commit(self._replace(index, updated))
        except StorageError:
            remove_file(str(target))
            raise
        logger.info("Recaptured image for scroll #%d at %s", note_id, target)

        warning = remove_file(old_path) if delete_old else None
        return updated, warning

    def delete(self, note_id: int, delete_image_file: bool = False) -> tuple[Note, str | None]:
        """
        Remove a scroll, and optionally its captured image.

        Returns the removed note and a warning if its image could not be
        removed.
        """
        index = self._index(note_id)
        note = self._notes[index]
        self._commit(self._notes[:index] + self._notes[index + 1:])
        logger.info("Erased scroll #%d", note_id)

        warning = None
        if note.kind == "image" and delete_image_file:
            warning = remove_file(note.image_path)
        return note, warning

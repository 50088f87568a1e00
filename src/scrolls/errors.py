"""
Error kinds for Scrolls.

Everything the store raises derives from ScrollsError, so the command loop
can report it and carry on.
"""


class ScrollsError(Exception):
    """Base class for errors reported to the user."""


class ValidationError(ScrollsError):
    """A required field is empty or the note is the wrong kind."""


class NotFoundError(ScrollsError):
    """No scroll with the requested ID."""

    def __init__(self, note_id: int):
        super().__init__(f"Scroll with ID {note_id} not found in the archives.")
        self.note_id = note_id


class StorageError(ScrollsError):
    """The collection document could not be written."""


class CaptureError(ScrollsError):
    """The screenshot program failed or produced no file."""

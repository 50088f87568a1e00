"""
CLI for Scrolls.

An interactive menu over stdin/stdout. Every command is reachable by its
number or by one of its words; the mapping is a fixed table built once.

Usage:
    scrolls                       # open the archives
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from scrolls.capture import make_capture, open_file
from scrolls.config import ensure_dirs, get_default_config, get_log_path, get_scrolls_home, load_config
from scrolls.errors import ScrollsError, ValidationError
from scrolls.store import CaptureFn, NoteStore
from scrolls.surfacing import (
    DEFAULT_TAGS_WIDTH,
    DEFAULT_TITLE_WIDTH,
    error,
    format_note,
    format_table,
    format_tags,
    warning,
)

logger = logging.getLogger(__name__)

PROMPT = "\nSpeak your command, seeker of knowledge (or 'wisdom' for guidance): "
FAREWELL = "May the ancient wisdom guide you on your journey. Farewell!"
INVALID_ID = "Invalid scroll ID. Please enter a number."


@dataclass
class Session:
    """Everything a command handler needs: the store and the terminal."""

    store: NoteStore
    capture: CaptureFn
    config: dict[str, Any] = field(default_factory=dict)
    input_fn: Callable[[str], str] = input
    output: Callable[[str], None] = print
    opener: Callable[[str], bool] = open_file

    def say(self, text: str = "") -> None:
        self.output(text)

    def ask(self, prompt: str) -> str:
        """Read one line. EOFError propagates and ends the session."""
        return self.input_fn(prompt).strip()

    def ask_id(self, prompt: str) -> int | None:
        raw = self.ask(prompt)
        try:
            return int(raw)
        except ValueError:
            self.say(error(INVALID_ID))
            return None

    def confirm(self, prompt: str) -> bool:
        return self.ask(prompt).lower() in ("y", "yes")

    def ask_tags(self, prompt: str) -> list[str]:
        return parse_tags(self.ask(prompt))

    def widths(self) -> dict[str, int]:
        display = self.config.get("display", {})
        return {
            "title_width": int(display.get("title_width", DEFAULT_TITLE_WIDTH)),
            "tags_width": int(display.get("tags_width", DEFAULT_TAGS_WIDTH)),
        }


def parse_tags(text: str) -> list[str]:
    """Split comma-separated tags, trimming each and dropping blanks."""
    return [tag.strip() for tag in text.split(",") if tag.strip()]


def cmd_inscribe(session: Session) -> None:
    """Create a text scroll."""
    title = session.ask("Enter the title of your scroll: ")
    if not title:
        raise ValidationError("A scroll needs a title. Nothing was inscribed.")
    content = session.ask("Inscribe your knowledge: ")
    tags = session.ask_tags("Mark with ancient runes (tags, comma-separated, optional): ")

    note = session.store.create_text(title, content, tags)
    session.say(f"Created scroll #{note.id}: {note.title}")


def cmd_capture(session: Session) -> None:
    """Create an image scroll from a screenshot."""
    title = session.ask("Enter the title for your captured image: ")
    if not title:
        raise ValidationError("A captured image needs a title. Nothing was captured.")
    tags = session.ask_tags("Mark with ancient runes (tags, comma-separated, optional): ")

    session.say("Capturing ancient knowledge... (follow system prompts)")
    note = session.store.create_image(title, tags, session.capture)
    session.say(f"Scroll captured and saved as scroll #{note.id}: {note.title}")


def cmd_archive(session: Session) -> None:
    """List every scroll, newest first."""
    session.say(format_table(session.store.list_notes(), **session.widths()))


def cmd_reveal(session: Session) -> None:
    """Show one scroll in full."""
    note_id = session.ask_id("Enter the scroll ID to reveal: ")
    if note_id is None:
        return

    note = session.store.get(note_id)
    session.say(format_note(note))

    if note.kind == "image" and note.image_path:
        if session.confirm("Would you like to reveal this captured image? (y/n): "):
            if not session.opener(note.image_path):
                session.say(warning(f"Could not open {note.image_path}"))


def cmd_seek(session: Session) -> None:
    """Search titles, content and tags."""
    query = session.ask("What knowledge do you seek?: ")
    if not query:
        session.say(error("You must speak your query to seek knowledge."))
        return

    found = session.store.search(query)
    if not found:
        session.say(f"No scrolls found containing '{query}' in the archives")
        return
    session.say(format_table(found, heading=f"Ancient Knowledge Found: '{query}'", **session.widths()))


def cmd_modify(session: Session) -> None:
    """Edit title, content and tags; Enter keeps the current value."""
    note_id = session.ask_id("Enter the scroll ID to modify: ")
    if note_id is None:
        return

    note = session.store.get(note_id)
    session.say(f"\n=== Modifying Scroll of Skelos #{note.id} ===")
    session.say(f"Current Title: {note.title}")
    session.say(f"Type: {note.kind}")

    title = session.ask("Enter new title (press Enter to keep current): ")
    content = None
    if note.kind == "text":
        session.say(f"Current content:\n{note.content}\n")
        content = session.ask("Enter new content (press Enter to keep current): ")

    session.say(f"Current runes (tags): {format_tags(note.tags)}")
    tags_input = session.ask("Enter new runes (comma-separated, press Enter to keep current): ")
    tags = parse_tags(tags_input) if tags_input else None

    updated = session.store.edit_text(note_id, title=title, content=content, tags=tags)
    if updated.updated_at == note.updated_at:
        session.say(f"Scroll #{note_id} is unchanged.")
    else:
        session.say(f"Scroll #{note_id} has been modified in the archives.")


def cmd_retitle(session: Session) -> None:
    note_id = session.ask_id("Enter the scroll ID to retitle: ")
    if note_id is None:
        return

    note = session.store.get(note_id)
    session.say(f"Current title: {note.title}")
    title = session.ask("Enter new title: ")
    if not title:
        session.say("Title unchanged.")
        return

    session.store.retitle(note_id, title)
    session.say(f"Scroll #{note_id} has been retitled to: {title}")


def cmd_retag(session: Session) -> None:
    """Replace a scroll's tags; an empty answer removes them all."""
    note_id = session.ask_id("Enter the scroll ID to retag: ")
    if note_id is None:
        return

    note = session.store.get(note_id)
    session.say(f"Current runes (tags): {format_tags(note.tags)}")
    tags = session.ask_tags("Enter new runes (comma-separated, leave empty to remove all): ")

    updated = session.store.retag(note_id, tags)
    if updated.tags:
        session.say(f"Scroll #{note_id} runes updated to: {format_tags(updated.tags)}")
    else:
        session.say(f"All runes removed from scroll #{note_id}")


def cmd_recapture(session: Session) -> None:
    """Replace the image behind an image scroll."""
    note_id = session.ask_id("Enter the scroll ID to recapture: ")
    if note_id is None:
        return

    note = session.store.get(note_id)
    if note.kind != "image":
        raise ValidationError(f"Scroll #{note_id} is not a captured image. Cannot recapture.")

    old_name = os.path.basename(note.image_path or "")
    delete_old = session.confirm(f"Delete the old captured image '{old_name}'? (y/n): ")

    session.say("Recapturing ancient knowledge... (follow system prompts)")
    updated, problem = session.store.replace_image(note_id, session.capture, delete_old=delete_old)
    if problem:
        session.say(warning(problem))
    session.say(
        f"Scroll #{note_id} image has been recaptured: {os.path.basename(updated.image_path or '')}"
    )


def cmd_erase(session: Session) -> None:
    """Delete a scroll after explicit confirmation."""
    note_id = session.ask_id("Enter the scroll ID to erase from existence: ")
    if note_id is None:
        return

    note = session.store.get(note_id)
    if not session.confirm(
        f"Are you certain you wish to erase scroll #{note_id} from the archives? (y/n): "
    ):
        session.say("The scroll remains preserved in the archives.")
        return

    delete_image = False
    if note.kind == "image":
        name = os.path.basename(note.image_path or "")
        delete_image = session.confirm(
            f"Destroy the captured image '{name}' from the archives as well? (y/n): "
        )

    _, problem = session.store.delete(note_id, delete_image_file=delete_image)
    if problem:
        session.say(warning(problem))
    session.say(f"Scroll #{note_id} has been erased from the archives.")


def cmd_wisdom(session: Session) -> None:
    session.say(help_text())


def cmd_depart(session: Session) -> bool:
    session.say(FAREWELL)
    return True


# (code, words, handler, description)
COMMANDS: list[tuple[str, tuple[str, ...], Callable[[Session], bool | None], str]] = [
    ("1", ("inscribe", "add", "create"), cmd_inscribe, "Inscribe a new text scroll"),
    ("2", ("capture", "screenshot"), cmd_capture, "Capture an image scroll"),
    ("3", ("archive", "list"), cmd_archive, "View all scrolls in the archive"),
    ("4", ("reveal", "view"), cmd_reveal, "Reveal a specific scroll"),
    ("5", ("seek", "search"), cmd_seek, "Seek knowledge within scrolls"),
    ("6", ("modify", "edit"), cmd_modify, "Modify an existing scroll"),
    ("7", ("retitle",), cmd_retitle, "Change a scroll's title"),
    ("8", ("retag",), cmd_retag, "Update a scroll's ancient runes"),
    ("9", ("recapture",), cmd_recapture, "Replace a captured image"),
    ("10", ("erase", "delete"), cmd_erase, "Erase a scroll from existence"),
    ("11", ("wisdom", "help"), cmd_wisdom, "Show these ancient commands"),
    ("12", ("depart", "quit", "exit"), cmd_depart, "Depart from the archives"),
]


def build_dispatch() -> dict[str, Callable[[Session], bool | None]]:
    """Map every code and word to its handler."""
    table = {}
    for code, words, handler, _ in COMMANDS:
        table[code] = handler
        for word in words:
            table[word] = handler
    return table


def help_text() -> str:
    lines = ["\n=== The Scrolls of Skelos - Ancient Commands ===", "Available commands:"]
    for code, words, _, description in COMMANDS:
        label = f"{code} or {words[0]}"
        lines.append(f"  {label:17} - {description}")
    return "\n".join(lines)


def run(session: Session) -> int:
    """
    The read-eval-print loop.

    Returns 0 on quit or end of input. Store errors are reported and the
    loop carries on.
    """
    dispatch = build_dispatch()

    while True:
        try:
            command = session.ask(PROMPT)
        except (EOFError, KeyboardInterrupt):
            session.say()
            session.say(FAREWELL)
            return 0

        if not command:
            continue

        handler = dispatch.get(command.lower())
        if handler is None:
            session.say(error(f"Unknown command: {command}"))
            session.say("Speak 'wisdom' to learn the ancient commands.")
            continue

        try:
            if handler(session):
                return 0
        except ScrollsError as e:
            session.say(error(str(e)))
        except (EOFError, KeyboardInterrupt):
            # Input ended mid-command: nothing half-done was saved
            session.say()
            session.say(FAREWELL)
            return 0


def setup_logging(home: Path, config: dict[str, Any]) -> None:
    """Send log records to scrolls.log so they stay out of the menu."""
    name = os.environ.get("SCROLLS_LOG_LEVEL") or config.get("logging", {}).get("level", "INFO")
    level = getattr(logging, str(name).upper(), None)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        filename=str(get_log_path(home)),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=level,
    )


def main() -> int:
    """Main entry point."""
    try:
        config = load_config()
    except (OSError, ValueError) as e:
        # tomli.TOMLDecodeError is a ValueError
        print(f"Error reading config, using defaults: {e}", file=sys.stderr)
        config = get_default_config()

    home = get_scrolls_home(config)
    try:
        ensure_dirs(home)
    except OSError as e:
        print(f"Error: cannot create archive directory {home}: {e}", file=sys.stderr)
        return 1

    setup_logging(home, config)
    logger.info("Opening archives at %s", home)

    try:
        store = NoteStore(home)
    except OSError as e:
        print(f"Error: cannot open archive directory {home}: {e}", file=sys.stderr)
        return 1

    session = Session(store=store, capture=make_capture(config), config=config)

    session.say("Welcome to The Scrolls of Skelos!")
    session.say(f"The ancient archives are stored in: {home}")
    if store.load_error:
        session.say(warning(f"Error loading scrolls ({store.load_error}). Starting with an empty archive."))
    session.say(help_text())

    return run(session)


if __name__ == "__main__":
    sys.exit(main())

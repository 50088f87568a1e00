"""
Surfacing module for Scrolls.

Renders scrolls as text: fixed-width summary tables and full detail views.
Truncation here is cosmetic only and never touches stored data.
"""

import os
import sys
from datetime import datetime

from scrolls.store import Note

ELLIPSIS = "..."
DEFAULT_TITLE_WIDTH = 30
DEFAULT_TAGS_WIDTH = 24


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"

    BRIGHT_CYAN = "\033[96m"
    BRIGHT_MAGENTA = "\033[95m"

    @classmethod
    def enabled(cls) -> bool:
        """Check if colors should be enabled."""
        # Disable if NO_COLOR is set or not a tty
        if os.environ.get("NO_COLOR"):
            return False
        return sys.stdout.isatty()


def c(text: str, *codes: str) -> str:
    """Apply color codes to text if colors are enabled."""
    if not Colors.enabled():
        return text
    return "".join(codes) + text + Colors.RESET


KIND_COLORS = {
    "text": Colors.BRIGHT_CYAN,
    "image": Colors.BRIGHT_MAGENTA,
}


def truncate(text: str, width: int) -> str:
    """Cut text to width, marking the cut with an ellipsis."""
    if len(text) <= width:
        return text
    if width <= len(ELLIPSIS):
        return text[:width]
    return text[: width - len(ELLIPSIS)] + ELLIPSIS


def format_timestamp(ts: datetime, seconds: bool = False) -> str:
    """Render a stored timestamp in local time."""
    fmt = "%Y-%m-%d %H:%M:%S" if seconds else "%Y-%m-%d %H:%M"
    return ts.astimezone().strftime(fmt)


def format_tags(tags: list[str]) -> str:
    return ", ".join(tags) if tags else "none"


def format_table(
    notes: list[Note],
    heading: str = "The Ancient Scrolls",
    title_width: int = DEFAULT_TITLE_WIDTH,
    tags_width: int = DEFAULT_TAGS_WIDTH,
) -> str:
    """Fixed-width summary: ID, title, created date, tags."""
    if not notes:
        return c("No scrolls found in the archives.", Colors.DIM)

    lines = [c(f"━━━ {heading} ━━━", Colors.BOLD, Colors.BLUE), ""]

    header = f"{'ID':>4}  {'TITLE':{title_width}}  {'KIND':5}  {'CREATED':10}  TAGS"
    lines.append(c(header, Colors.DIM))
    lines.append(c("─" * (len(header) - 4 + tags_width), Colors.DIM))

    for note in notes:
        title = truncate(note.title, title_width)
        kind = c(f"{note.kind:5}", KIND_COLORS.get(note.kind, ""))
        created = note.created_at.astimezone().strftime("%Y-%m-%d")
        tags = truncate(", ".join(note.tags), tags_width)
        lines.append(f"{note.id:>4}  {title:{title_width}}  {kind}  {created:10}  {tags}".rstrip())

    lines.append("")
    lines.append(c(f"{len(notes)} scroll(s)", Colors.DIM))
    return "\n".join(lines)


def format_note(note: Note) -> str:
    """Full detail view of one scroll."""
    lines = [
        c(f"=== Scroll of Skelos #{note.id} ===", Colors.BOLD, Colors.BLUE),
        f"Title: {note.title}",
        f"Type: {c(note.kind, KIND_COLORS.get(note.kind, ''))}",
        f"Created: {format_timestamp(note.created_at, seconds=True)}",
        f"Updated: {format_timestamp(note.updated_at, seconds=True)}",
    ]
    if note.tags:
        lines.append(f"Tags: {format_tags(note.tags)}")

    if note.kind == "text":
        lines.append("")
        lines.append("Content:")
        lines.append(note.content or c("(empty)", Colors.DIM))
    else:
        lines.append("")
        lines.append(f"Captured Image: {os.path.basename(note.image_path or '')}")
        lines.append(f"File path: {note.image_path}")
    return "\n".join(lines)


def error(message: str) -> str:
    return c(message, Colors.RED)


def warning(message: str) -> str:
    return c(f"Warning: {message}", Colors.YELLOW)

"""
Screen capture for Scrolls.

Shells out to whichever known screenshot program is installed, picked by
a fixed per-platform preference order. The store only sees a callable
that takes a target path and reports success.
"""

import logging
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable

from scrolls.errors import CaptureError

logger = logging.getLogger(__name__)

WINDOWS_CAPTURE_SCRIPT = (
    "Add-Type -AssemblyName System.Windows.Forms; "
    "Add-Type -AssemblyName System.Drawing; "
    "$Screen = [System.Windows.Forms.SystemInformation]::VirtualScreen; "
    "$bitmap = New-Object System.Drawing.Bitmap $Screen.Width, $Screen.Height; "
    "$graphic = [System.Drawing.Graphics]::FromImage($bitmap); "
    "$graphic.CopyFromScreen($Screen.Left, $Screen.Top, 0, 0, $bitmap.Size); "
    "$bitmap.Save('{path}'); "
    "$graphic.Dispose(); $bitmap.Dispose()"
)


def _grim(target: Path) -> list[str] | None:
    # Region select through slurp when it is around, full screen otherwise
    if shutil.which("slurp"):
        result = subprocess.run(["slurp"], capture_output=True, text=True)
        if result.returncode != 0 or not result.stdout.strip():
            return None
        return ["grim", "-g", result.stdout.strip(), str(target)]
    return ["grim", str(target)]


def _powershell(target: Path) -> list[str]:
    script = WINDOWS_CAPTURE_SCRIPT.format(path=str(target).replace("'", "''"))
    return ["powershell", "-NoProfile", "-Command", script]


# Program name -> argv builder. A builder returning None means the user
# cancelled before the capture started.
CAPTURE_COMMANDS: dict[str, Callable[[Path], list[str] | None]] = {
    "screencapture": lambda target: ["screencapture", "-i", str(target)],
    "gnome-screenshot": lambda target: ["gnome-screenshot", "-a", "-f", str(target)],
    "spectacle": lambda target: ["spectacle", "-b", "-n", "-r", "-o", str(target)],
    "grim": _grim,
    "maim": lambda target: ["maim", "-s", str(target)],
    "scrot": lambda target: ["scrot", "-s", str(target)],
    "import": lambda target: ["import", str(target)],
    "powershell": _powershell,
}

PREFERENCE_ORDER = {
    "darwin": ["screencapture"],
    "linux": ["gnome-screenshot", "spectacle", "grim", "maim", "scrot", "import"],
    "win32": ["powershell"],
}

OPEN_COMMANDS = {
    "darwin": ["open"],
    "linux": ["xdg-open"],
    "win32": ["cmd", "/c", "start", ""],
}


def preference_order(platform: str | None = None) -> list[str]:
    """Screenshot programs to try on this platform, best first."""
    platform = platform or sys.platform
    for prefix, tools in PREFERENCE_ORDER.items():
        if platform.startswith(prefix):
            return list(tools)
    # Other unixes usually carry the X11 tools
    return PREFERENCE_ORDER["linux"][3:]


def find_tool(tools: list[str] | None = None) -> str | None:
    """Return the first installed screenshot program, or None."""
    for name in tools or preference_order():
        if name not in CAPTURE_COMMANDS:
            logger.warning("Unknown capture tool in config: %s", name)
            continue
        if shutil.which(name):
            return name
    return None


def capture_screenshot(target: Path, tools: list[str] | None = None) -> bool:
    """
    Capture an image to target.

    Blocks until the program exits; there is no timeout, so a hung
    program hangs the caller. Raises CaptureError when no screenshot
    program is installed.
    """
    tool = find_tool(tools)
    if tool is None:
        logger.error("No screenshot program found (tried %s)", tools or preference_order())
        raise CaptureError(
            "No screenshot program found. Install gnome-screenshot, spectacle, grim, maim or scrot."
        )

    target.parent.mkdir(parents=True, exist_ok=True)
    cmd = CAPTURE_COMMANDS[tool](target)
    if cmd is None:
        logger.info("Capture with %s cancelled before start", tool)
        return False

    logger.info("Capturing with %s to %s", tool, target)
    try:
        result = subprocess.run(cmd, check=False)
    except OSError as e:
        logger.error("Could not run %s: %s", tool, e)
        return False

    if result.returncode != 0:
        logger.warning("%s exited with status %d", tool, result.returncode)
        return False
    return target.exists()


def make_capture(config: dict[str, Any]) -> Callable[[Path], bool]:
    """Build the capture callable from the [capture] config section."""
    tools = config.get("capture", {}).get("tools") or None

    def capture(target: Path) -> bool:
        return capture_screenshot(target, tools)

    return capture


def open_file(path: str) -> bool:
    """Open a file with the desktop's default viewer. Best-effort."""
    cmd = next(
        (opener for prefix, opener in OPEN_COMMANDS.items() if sys.platform.startswith(prefix)),
        OPEN_COMMANDS["linux"],
    )
    try:
        result = subprocess.run([*cmd, path], check=False, capture_output=True)
    except OSError as e:
        logger.warning("Could not open %s: %s", path, e)
        return False
    return result.returncode == 0

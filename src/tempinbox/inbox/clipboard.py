"""System clipboard access.

Shells out to the first available clipboard tool. Failure is reported
as False; copying is never fatal to the inbox session.
"""

from __future__ import annotations

import logging
import shutil
import subprocess

logger = logging.getLogger(__name__)

# Tried in order; the first one found on PATH is used.
CLIPBOARD_COMMANDS: list[list[str]] = [
    ["pbcopy"],
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
    ["clip"],
]


def find_clipboard_command() -> list[str] | None:
    for cmd in CLIPBOARD_COMMANDS:
        if shutil.which(cmd[0]):
            return cmd
    return None


def copy_text(text: str) -> bool:
    """Copy text to the system clipboard. Returns True on success."""
    cmd = find_clipboard_command()
    if cmd is None:
        logger.debug("No clipboard tool found on PATH")
        return False
    try:
        result = subprocess.run(
            cmd,
            input=text,
            text=True,
            capture_output=True,
            timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired):
        logger.warning("Clipboard command %s failed", cmd[0], exc_info=True)
        return False
    if result.returncode != 0:
        logger.warning("Clipboard command %s exited %d", cmd[0], result.returncode)
        return False
    return True

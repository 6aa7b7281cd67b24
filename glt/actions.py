"""Quick actions on the selected node: copy its URL, open it in a browser."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import webbrowser

logger = logging.getLogger("gitlab_tree.actions")


def clipboard_commands() -> list[list[str]]:
    """Clipboard tools to try for the current platform, in order of preference."""
    if sys.platform == "darwin":
        return [["pbcopy"]]
    if os.name == "nt":
        return [["clip"]]

    commands: list[list[str]] = []
    if os.environ.get("WAYLAND_DISPLAY"):
        commands.append(["wl-copy"])
    commands.extend(
        [
            ["xclip", "-selection", "clipboard"],
            ["xsel", "--clipboard", "--input"],
        ]
    )
    return commands


def copy_text_to_clipboard(text: str) -> bool:
    """Best-effort clipboard copy across macOS, Windows, and common Linux tools."""
    if not text:
        return False

    for command in clipboard_commands():
        if shutil.which(command[0]) is None:
            continue
        try:
            proc = subprocess.run(
                command,
                input=text,
                text=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError as e:
            logger.debug("Clipboard command %s failed: %s", command[0], e)
            continue
        if proc.returncode == 0:
            return True
    return False


def open_in_browser(url: str) -> bool:
    if not url:
        return False
    try:
        return webbrowser.open(url)
    except webbrowser.Error as e:
        logger.warning("Could not open %s: %s", url, e)
        return False

"""Open a match in the user's editor."""

import os
import shlex
import subprocess

from loguru import logger

from vgrep.errors import EditorError


def get_editor() -> list[str]:
    """EDITOR split into argv (default: vim)."""
    return shlex.split(os.environ.get("EDITOR") or "vim")


def get_line_flag() -> str:
    return os.environ.get("EDITORLINEFLAG") or "+"


def line_flag_first() -> bool:
    """Some editors want the line flag before the path."""
    return bool(os.environ.get("EDITORLINEFLAGREVERSE"))


def editor_command(path: str, line: int) -> list[str]:
    flag = f"{get_line_flag()}{line}"
    if line_flag_first():
        return get_editor() + [flag, path]
    return get_editor() + [path, flag]


def open_in_editor(path: str, line: int):
    cmd = editor_command(path, line)
    logger.debug("opening {}:{} via {}", path, line, cmd)
    try:
        subprocess.run(cmd)
    except OSError as e:
        raise EditorError(f"Couldn't open match: {e}") from e

"""
Terminal noise removal for winget output.

winget writes for an interactive console even when piped: colour codes,
spinner frames and progress bars redrawn with carriage returns.
"""

from __future__ import annotations

import re

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]|\x1b\][^\x07]*\x07")
PROGRESS_GLYPHS = re.compile(r"[█▓▒░]")
_SPINNER_FRAME = re.compile(r"^\s*[-\\|/]\s*$")


def _final_frame(line: str) -> str:
    # A carriage return redraws the line; only the last frame is visible.
    if "\r" not in line:
        return line
    frames = [f for f in line.split("\r") if f.strip()]
    return frames[-1] if frames else ""


def clean_output(output: str) -> str:
    """
    Return ``output`` as it would finally appear on screen.

    Removes ANSI escape sequences, resolves carriage-return overwrites,
    and drops spinner frames and progress-bar lines. Leading whitespace of
    kept lines is preserved so table columns stay aligned.
    """
    if not output:
        return ""

    text = ANSI_ESCAPE.sub("", output)
    kept: list[str] = []
    for raw in text.split("\n"):
        line = _final_frame(raw.rstrip("\r")).rstrip()
        if PROGRESS_GLYPHS.search(line):
            continue
        if _SPINNER_FRAME.match(line):
            continue
        kept.append(line)

    return "\n".join(kept).strip("\n")

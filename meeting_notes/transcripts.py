"""Helpers for reading transcripts and summaries supplied on the command line."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, TextIO

STDIN_MARKER = "-"


def read_text_source(source: Optional[str], stdin: Optional[TextIO] = None) -> str:
    """Return the text of ``source``; ``None`` or ``-`` reads standard input."""
    if source is None or source == STDIN_MARKER:
        stream = stdin if stdin is not None else sys.stdin
        return normalize_newlines(stream.read())

    path = Path(source).expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return normalize_newlines(path.read_text(encoding="utf-8"))


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")

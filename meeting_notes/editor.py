"""Interactive editing of a generated summary, backed by prompt_toolkit."""
from __future__ import annotations

from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.styles import Style

_STYLE = Style.from_dict({"prompt": "ansicyan bold", "bottom-toolbar": "reverse"})


def _toolbar() -> str:
    return " Esc-Enter: accept   Ctrl-C: keep original "


def edit_summary(text: str, session: Optional[PromptSession] = None) -> str:
    """Let the user edit ``text``; cancelling keeps it unchanged."""
    session = session or PromptSession(
        multiline=True,
        style=_STYLE,
        bottom_toolbar=_toolbar,
    )
    try:
        edited = session.prompt([("class:prompt", "Edit summary:\n")], default=text)
    except (KeyboardInterrupt, EOFError):
        return text
    return edited

"""Prompt rendering for meeting summaries."""
from __future__ import annotations

from typing import Optional, Union

from .types import InvalidInput, RenderedPrompt

DEFAULT_INSTRUCTIONS = "Summarize the key points and action items."

_FRAMING = (
    "Based on the following meeting transcript, create a professional summary for a CEO. "
    "The summary should be concise and use bullet points. "
    "The most important points should be highlighted in bold. "
    "Make sure to clearly separate key takeaways and actionable items. "
    "The tone should be formal and direct."
)

_TRANSCRIPT_DELIMITER = "---"

_FORMAT_TEMPLATE = (
    "Your summary format should be:\n"
    "\n"
    "**Key Takeaways**\n"
    "* Bullet point 1\n"
    "* **Bolded important point**\n"
    "* Bullet point 2\n"
    "\n"
    "**Action Items**\n"
    "* Action item 1\n"
    "* **Bolded important action item**\n"
    "* Action item 2"
)


def build_prompt(transcript: str, instructions: Optional[str] = DEFAULT_INSTRUCTIONS) -> Union[RenderedPrompt, InvalidInput]:
    """Render the generation prompt for ``transcript``.

    The transcript is embedded verbatim between delimiter lines. Empty
    ``instructions`` fall back to :data:`DEFAULT_INSTRUCTIONS`; an empty or
    whitespace-only transcript yields :class:`InvalidInput` rather than a
    prompt.
    """

    if not transcript or not transcript.strip():
        return InvalidInput("transcript is empty")

    directive = (instructions or "").strip() or DEFAULT_INSTRUCTIONS
    transcript_block = f"{_TRANSCRIPT_DELIMITER}\n{transcript}\n{_TRANSCRIPT_DELIMITER}"
    sections = [directive, _FRAMING, transcript_block, _FORMAT_TEMPLATE]
    return RenderedPrompt(text="\n\n".join(sections))

"""Caller-facing orchestration layer for generating and sharing summaries."""
from __future__ import annotations

import logging
from typing import Mapping, Optional, Union

from .gemini_client import GeminiClient
from .prompts import DEFAULT_INSTRUCTIONS, build_prompt
from .sharing import ShareDispatcher
from .types import (
    GenerationFailure,
    GenerationOutcome,
    GenerationSuccess,
    InvalidInput,
    RenderedPrompt,
    ShareOutcome,
    ShareRequest,
)


class SummaryService:
    """Public facade used by the CLI and any embedding application."""

    def __init__(
        self,
        client: Optional[GeminiClient] = None,
        dispatcher: Optional[ShareDispatcher] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._dispatcher = dispatcher
        self._logger = logger or logging.getLogger(__name__)

    def build_prompt(
        self, transcript: str, instructions: Optional[str] = DEFAULT_INSTRUCTIONS
    ) -> Union[RenderedPrompt, InvalidInput]:
        result = build_prompt(transcript, instructions)
        self._log_debug(
            "build-prompt",
            {
                "transcript_chars": len(transcript or ""),
                "result": _outcome_kind(result),
            },
        )
        return result

    async def generate_summary(self, prompt: RenderedPrompt) -> GenerationOutcome:
        client = self._require_client()
        outcome = await client.generate(prompt)
        extra: dict[str, object] = {"prompt_chars": len(prompt.text), "result": _outcome_kind(outcome)}
        if isinstance(outcome, GenerationSuccess):
            extra["attempts"] = outcome.attempts
            extra["summary_chars"] = len(outcome.text)
        elif isinstance(outcome, GenerationFailure):
            extra["reason"] = outcome.reason
        self._log_debug("generate", extra)
        return outcome

    async def summarize(
        self, transcript: str, instructions: Optional[str] = DEFAULT_INSTRUCTIONS
    ) -> Union[InvalidInput, GenerationOutcome]:
        """Build the prompt and generate; invalid input never reaches the network."""

        prompt = self.build_prompt(transcript, instructions)
        if isinstance(prompt, InvalidInput):
            return prompt
        return await self.generate_summary(prompt)

    async def share_summary(self, summary: str, recipient: str) -> ShareOutcome:
        dispatcher = self._require_dispatcher()
        outcome = await dispatcher.send(ShareRequest(summary_text=summary, recipient_address=recipient))
        self._log_debug("share", {"summary_chars": len(summary), "result": _outcome_kind(outcome)})
        return outcome

    def _require_client(self) -> GeminiClient:
        if not self._client:
            raise RuntimeError("SummaryService requires a GeminiClient to generate summaries")
        return self._client

    def _require_dispatcher(self) -> ShareDispatcher:
        if not self._dispatcher:
            raise RuntimeError("SummaryService requires a ShareDispatcher to share summaries")
        return self._dispatcher

    def _log_debug(self, event: str, extra: Mapping[str, object]) -> None:
        payload = {"event": event}
        payload.update(dict(extra))
        self._logger.debug("summary-service", extra={"summary": payload})


def _outcome_kind(value: object) -> str:
    return type(value).__name__

"""Shared exports for the meeting summaries feature."""
from __future__ import annotations

from .gemini_client import (
    AuthenticationError,
    GeminiClient,
    GenerationError,
    ResponseFormatError,
    TransientError,
)
from .prompts import DEFAULT_INSTRUCTIONS, build_prompt
from .service import SummaryService
from .sharing import MailTransport, ShareDispatcher, SimulatedMailTransport, WebhookMailTransport
from .types import (
    ClientState,
    GenerationFailure,
    GenerationOutcome,
    GenerationSuccess,
    InvalidInput,
    RenderedPrompt,
    ShareFailed,
    ShareOutcome,
    ShareRequest,
    ShareSent,
)


__all__ = [
    "DEFAULT_INSTRUCTIONS",
    "build_prompt",
    "RenderedPrompt",
    "InvalidInput",
    "GenerationOutcome",
    "GenerationSuccess",
    "GenerationFailure",
    "ClientState",
    "ShareRequest",
    "ShareOutcome",
    "ShareSent",
    "ShareFailed",
    "GeminiClient",
    "GenerationError",
    "AuthenticationError",
    "TransientError",
    "ResponseFormatError",
    "MailTransport",
    "ShareDispatcher",
    "SimulatedMailTransport",
    "WebhookMailTransport",
    "SummaryService",
]

"""Value objects shared across the summaries feature."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class RenderedPrompt:
    """Final prompt text sent to the generation endpoint."""

    text: str


@dataclass(frozen=True)
class InvalidInput:
    """Returned instead of raising when caller input cannot be used."""

    reason: str


@dataclass(frozen=True)
class GenerationSuccess:
    text: str
    attempts: int = 1


@dataclass(frozen=True)
class GenerationFailure:
    reason: str


GenerationOutcome = Union[GenerationSuccess, GenerationFailure]


@dataclass(frozen=True)
class ShareRequest:
    """Summary text paired with the address it should be sent to."""

    summary_text: str
    recipient_address: str

    def validate(self) -> Optional[InvalidInput]:
        if not self.summary_text.strip():
            return InvalidInput("summary text is empty")
        if not self.recipient_address.strip():
            return InvalidInput("recipient address is empty")
        return None


@dataclass(frozen=True)
class ShareSent:
    pass


@dataclass(frozen=True)
class ShareFailed:
    reason: str


ShareOutcome = Union[ShareSent, ShareFailed, InvalidInput]


class ClientState(enum.Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"

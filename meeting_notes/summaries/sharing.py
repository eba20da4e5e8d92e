"""Dispatching finished summaries to a recipient."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

import httpx

from .types import ShareFailed, ShareOutcome, ShareRequest, ShareSent


class MailTransport(Protocol):
    """Anything able to deliver ``content`` to ``recipient_address``."""

    async def send(self, recipient_address: str, content: str) -> None:
        ...


class SimulatedMailTransport:
    """Stand-in transport that waits briefly and always succeeds."""

    def __init__(
        self,
        delay: float = 1.5,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        self.delay = delay
        self._sleep = sleep or asyncio.sleep

    async def send(self, recipient_address: str, content: str) -> None:
        await self._sleep(self.delay)


class WebhookMailTransport:
    """Posts ``{"email", "content"}`` to a mail relay owned by the embedding app."""

    _DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        url: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not url:
            raise ValueError("webhook URL is required")
        self.url = url
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def send(self, recipient_address: str, content: str) -> None:
        response = await self._client.post(
            self.url, json={"email": recipient_address, "content": content}
        )
        response.raise_for_status()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class ShareDispatcher:
    """Single-attempt sender; transport errors become :class:`ShareFailed`."""

    def __init__(self, transport: MailTransport, logger: Optional[logging.Logger] = None) -> None:
        self._transport = transport
        self._logger = logger or logging.getLogger(__name__)

    async def send(self, request: ShareRequest) -> ShareOutcome:
        invalid = request.validate()
        if invalid is not None:
            self._logger.info("Share request rejected: %s", invalid.reason)
            return invalid

        try:
            await self._transport.send(request.recipient_address, request.summary_text)
        except Exception as exc:
            self._logger.error("Failed to send summary: %s", exc, exc_info=True)
            return ShareFailed(reason=str(exc) or type(exc).__name__)

        self._logger.info("Summary sent (%d chars)", len(request.summary_text))
        return ShareSent()

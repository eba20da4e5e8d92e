"""Thin Gemini ``generateContent`` wrapper used by the summaries service."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from .types import (
    ClientState,
    GenerationFailure,
    GenerationOutcome,
    GenerationSuccess,
    RenderedPrompt,
)

SleepFunc = Callable[[float], Awaitable[Any]]


class GenerationError(RuntimeError):
    """Base error raised for Gemini failures."""


class AuthenticationError(GenerationError):
    """Raised when the API key is missing."""


class TransientError(GenerationError):
    """Raised for network errors, timeouts and non-2xx responses."""


class ResponseFormatError(GenerationError):
    """Raised when the endpoint returns an unexpected payload."""


class GeminiClient:
    """Issues summary requests to Gemini with bounded exponential backoff.

    Every failed attempt (transport error, non-2xx status, malformed body) is
    retried until ``max_attempts`` requests have been made. After attempt
    ``n`` fails the client waits ``backoff_base * 2 ** n`` seconds through the
    injected ``sleep`` callable. The outcome is always returned, never raised.
    """

    EXHAUSTED_REASON = "exhausted retries"
    BUSY_REASON = "generation already in progress"

    _DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    _DEFAULT_MODEL = "gemini-2.5-flash"
    _DEFAULT_TIMEOUT = 60.0
    _DEFAULT_MAX_ATTEMPTS = 5

    def __init__(
        self,
        api_key: str,
        *,
        model: str = _DEFAULT_MODEL,
        base_url: str = _DEFAULT_BASE_URL,
        timeout: float = _DEFAULT_TIMEOUT,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = 1.0,
        sleep: Optional[SleepFunc] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not api_key:
            raise AuthenticationError("Gemini API key is required")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self._sleep: SleepFunc = sleep or asyncio.sleep
        self._logger = logger or logging.getLogger(__name__)
        self._headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=self.timeout)
        self._state = ClientState.IDLE

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "GeminiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------
    # Generation
    # ------------------------------
    async def generate(self, prompt: RenderedPrompt) -> GenerationOutcome:
        """Request a summary for ``prompt`` and return the outcome."""

        if self._state is ClientState.IN_FLIGHT:
            self._logger.warning("Rejected generate call: a request is already in flight")
            return GenerationFailure(self.BUSY_REASON)

        self._state = ClientState.IN_FLIGHT
        try:
            return await self._generate_with_retries(prompt)
        finally:
            self._state = ClientState.IDLE

    async def _generate_with_retries(self, prompt: RenderedPrompt) -> GenerationOutcome:
        payload = self._build_payload(prompt)
        attempt = 0
        while True:
            try:
                text = await self._request_once(payload)
            except GenerationError as exc:
                error: Exception = exc
                self._logger.debug("Gemini attempt %d failed: %s", attempt + 1, exc)
            except Exception as exc:
                error = exc
                self._logger.exception("Unexpected error during Gemini attempt %d", attempt + 1)
            else:
                self._logger.info("Gemini summary generated after %d attempt(s)", attempt + 1)
                return GenerationSuccess(text=text, attempts=attempt + 1)

            attempt += 1
            if attempt >= self.max_attempts:
                self._logger.error(
                    "Gemini summary failed after %d attempts; last error: %s", attempt, error
                )
                return GenerationFailure(self.EXHAUSTED_REASON)

            delay = self._backoff_seconds(attempt)
            self._logger.warning(
                "Gemini attempt %d/%d failed (%s); retrying in %.1fs",
                attempt,
                self.max_attempts,
                error,
                delay,
            )
            await self._sleep(delay)

    def _build_payload(self, prompt: RenderedPrompt) -> Dict[str, Any]:
        return {"contents": [{"role": "user", "parts": [{"text": prompt.text}]}]}

    def _backoff_seconds(self, attempt: int) -> float:
        return self.backoff_base * 2 ** attempt

    # ------------------------------
    # HTTP helpers
    # ------------------------------
    async def _request_once(self, payload: Mapping[str, Any]) -> str:
        try:
            response = await self._client.post(self.endpoint, json=payload, headers=self._headers)
        except httpx.TimeoutException as exc:
            raise TransientError("Gemini request timed out") from exc
        except httpx.HTTPError as exc:  # network issues
            raise TransientError(f"Gemini request failed: {exc}") from exc

        if not response.is_success:
            message = _error_message(response)
            raise TransientError(message or f"Gemini request failed ({response.status_code})")

        return self._parse_generated_text(self._safe_json(response))

    def _safe_json(self, response: httpx.Response) -> Mapping[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ResponseFormatError("Gemini returned a non-JSON response") from exc
        if not isinstance(data, Mapping):
            raise ResponseFormatError("Gemini response was not a JSON object")
        return data

    def _parse_generated_text(self, data: Mapping[str, Any]) -> str:
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise ResponseFormatError("Gemini response missing candidates")

        first_candidate = candidates[0]
        content = first_candidate.get("content") if isinstance(first_candidate, Mapping) else None
        if not isinstance(content, Mapping):
            raise ResponseFormatError("Gemini candidate missing content")

        parts = content.get("parts")
        if not isinstance(parts, list) or not parts or not isinstance(parts[0], Mapping):
            raise ResponseFormatError("Gemini candidate missing content parts")

        text = parts[0].get("text")
        if not isinstance(text, str):
            raise ResponseFormatError("Gemini candidate missing text content")
        return text


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
        if isinstance(message, str) and message:
            return f"Gemini request failed ({response.status_code}): {message}"
    return None

import asyncio
import json
from unittest.mock import AsyncMock, call

import httpx
import pytest
import pytest_asyncio

from meeting_notes.summaries import (
    AuthenticationError,
    ClientState,
    GeminiClient,
    GenerationFailure,
    GenerationSuccess,
    RenderedPrompt,
)

PROMPT = RenderedPrompt(text="Summarize the key points and action items.\n\n---\nhello\n---")


def success_body(text="**Key Takeaways**\n* Done"):
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


class ScriptedHandler:
    """Plays back one scripted reply per request and records the requests."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest_asyncio.fixture
async def make_client():
    opened = []

    def factory(handler, **kwargs):
        sleep = AsyncMock()
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        opened.append(http_client)
        client = GeminiClient("test-key", sleep=sleep, http_client=http_client, **kwargs)
        return client, sleep

    yield factory
    for http_client in opened:
        await http_client.aclose()


def failing_reply():
    return httpx.Response(503, json={"error": {"code": 503, "message": "overloaded"}})


@pytest.mark.asyncio
async def test_generate_success_first_attempt(make_client):
    handler = ScriptedHandler(httpx.Response(200, json=success_body("summary text")))
    client, sleep = make_client(handler)

    outcome = await client.generate(PROMPT)

    assert outcome == GenerationSuccess(text="summary text", attempts=1)
    assert len(handler.requests) == 1
    sleep.assert_not_awaited()
    assert client.state is ClientState.IDLE


@pytest.mark.asyncio
async def test_generate_request_shape(make_client):
    handler = ScriptedHandler(httpx.Response(200, json=success_body()))
    client, _ = make_client(handler, model="gemini-test")

    await client.generate(PROMPT)

    request = handler.requests[0]
    assert request.method == "POST"
    assert str(request.url) == (
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-test:generateContent"
    )
    assert request.headers["x-goog-api-key"] == "test-key"
    assert json.loads(request.content) == {
        "contents": [{"role": "user", "parts": [{"text": PROMPT.text}]}]
    }


@pytest.mark.asyncio
async def test_generate_succeeds_on_fifth_attempt_with_backoff(make_client):
    handler = ScriptedHandler(
        failing_reply(),
        failing_reply(),
        failing_reply(),
        failing_reply(),
        httpx.Response(200, json=success_body("finally")),
    )
    client, sleep = make_client(handler)

    outcome = await client.generate(PROMPT)

    assert outcome == GenerationSuccess(text="finally", attempts=5)
    assert len(handler.requests) == 5
    assert sleep.await_args_list == [call(2.0), call(4.0), call(8.0), call(16.0)]


@pytest.mark.asyncio
async def test_generate_exhausts_retries(make_client):
    handler = ScriptedHandler(*[failing_reply() for _ in range(6)])
    client, sleep = make_client(handler)

    outcome = await client.generate(PROMPT)

    assert outcome == GenerationFailure("exhausted retries")
    assert len(handler.requests) == 5
    assert sleep.await_count == 4
    assert client.state is ClientState.IDLE


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "bad_reply",
    [
        httpx.Response(200, json={}),
        httpx.Response(200, json={"candidates": []}),
        httpx.Response(200, json={"candidates": [{"finishReason": "SAFETY"}]}),
        httpx.Response(200, json={"candidates": [{"content": {"parts": []}}]}),
        httpx.Response(200, json={"candidates": [{"content": {"parts": [{"inlineData": {}}]}}]}),
        httpx.Response(200, json=["not", "an", "object"]),
        httpx.Response(200, text="<html>gateway</html>"),
        httpx.Response(404, json={"error": {"message": "model not found"}}),
        httpx.Response(429),
    ],
)
async def test_malformed_or_failed_responses_are_retried(make_client, bad_reply):
    handler = ScriptedHandler(bad_reply, httpx.Response(200, json=success_body("ok")))
    client, sleep = make_client(handler)

    outcome = await client.generate(PROMPT)

    assert outcome == GenerationSuccess(text="ok", attempts=2)
    assert len(handler.requests) == 2
    sleep.assert_awaited_once_with(2.0)


@pytest.mark.asyncio
async def test_missing_candidates_counts_toward_budget(make_client):
    handler = ScriptedHandler(*[httpx.Response(200, json={"promptFeedback": {}}) for _ in range(5)])
    client, _ = make_client(handler)

    outcome = await client.generate(PROMPT)

    assert outcome == GenerationFailure("exhausted retries")
    assert len(handler.requests) == 5


@pytest.mark.asyncio
async def test_network_errors_are_retried(make_client):
    request = httpx.Request("POST", "https://example.invalid")
    handler = ScriptedHandler(
        httpx.ConnectError("connection refused", request=request),
        httpx.ReadTimeout("timed out", request=request),
        RuntimeError("unexpected transport bug"),
        httpx.Response(200, json=success_body("recovered")),
    )
    client, sleep = make_client(handler)

    outcome = await client.generate(PROMPT)

    assert outcome == GenerationSuccess(text="recovered", attempts=4)
    assert sleep.await_args_list == [call(2.0), call(4.0), call(8.0)]


@pytest.mark.asyncio
async def test_empty_generated_text_is_success(make_client):
    handler = ScriptedHandler(httpx.Response(200, json=success_body("")))
    client, _ = make_client(handler)

    outcome = await client.generate(PROMPT)

    assert outcome == GenerationSuccess(text="", attempts=1)


@pytest.mark.asyncio
async def test_custom_attempts_and_backoff_base(make_client):
    handler = ScriptedHandler(*[failing_reply() for _ in range(3)])
    client, sleep = make_client(handler, max_attempts=3, backoff_base=0.5)

    outcome = await client.generate(PROMPT)

    assert outcome == GenerationFailure("exhausted retries")
    assert len(handler.requests) == 3
    assert sleep.await_args_list == [call(1.0), call(2.0)]


@pytest.mark.asyncio
async def test_second_generate_rejected_while_in_flight(make_client):
    release = asyncio.Event()
    calls = []

    async def handler(request):
        calls.append(request)
        await release.wait()
        return httpx.Response(200, json=success_body("first"))

    client, _ = make_client(handler)

    first = asyncio.create_task(client.generate(PROMPT))
    await asyncio.sleep(0)
    assert client.state is ClientState.IN_FLIGHT

    second = await client.generate(PROMPT)
    release.set()
    first_outcome = await first

    assert second == GenerationFailure("generation already in progress")
    assert first_outcome == GenerationSuccess(text="first", attempts=1)
    assert len(calls) == 1
    assert client.state is ClientState.IDLE


@pytest.mark.asyncio
async def test_state_resets_when_caller_cancels(make_client):
    started = asyncio.Event()

    async def handler(request):
        started.set()
        await asyncio.Event().wait()

    client, _ = make_client(handler)
    task = asyncio.create_task(client.generate(PROMPT))
    await started.wait()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert client.state is ClientState.IDLE


def test_missing_api_key_raises():
    with pytest.raises(AuthenticationError):
        GeminiClient("")


def test_invalid_max_attempts_raises():
    with pytest.raises(ValueError):
        GeminiClient("key", max_attempts=0)


@pytest.mark.asyncio
async def test_context_manager_closes_owned_client():
    client = GeminiClient("key")

    async with client:
        pass

    assert client._client.is_closed

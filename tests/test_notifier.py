"""
Unit tests for the error notifiers.

The webhook notifier talks to an httpx.MockTransport instead of the network.
"""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from llm_core.services.notifier import LoggingErrorNotifier, WebhookErrorNotifier, notify_safely


def make_webhook(status_code=200):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebhookErrorNotifier("https://hooks.example.test/errors", client=client), requests


@pytest.mark.asyncio
async def test_webhook_posts_structured_payload():
    notifier, requests = make_webhook()
    try:
        raise RuntimeError("provider down")
    except RuntimeError as exc:
        error = exc

    await notifier.notify_error("LLM Completion", error, "AiService", {"sourceType": "text"})
    await notifier.close()

    assert len(requests) == 1
    assert requests[0].method == "POST"
    assert str(requests[0].url) == "https://hooks.example.test/errors"
    payload = json.loads(requests[0].content)
    assert payload["stage"] == "LLM Completion"
    assert payload["source_component"] == "AiService"
    assert payload["error_type"] == "RuntimeError"
    assert payload["error"] == "provider down"
    assert payload["context"] == {"sourceType": "text"}
    assert "RuntimeError: provider down" in payload["stack_trace"]


@pytest.mark.asyncio
async def test_webhook_raises_on_http_error():
    notifier, _ = make_webhook(status_code=500)

    with pytest.raises(httpx.HTTPStatusError):
        await notifier.notify_error("Audio Transcription", ValueError("bad"), "TranscriptionService")
    await notifier.close()


def test_webhook_requires_url():
    with pytest.raises(ValueError):
        WebhookErrorNotifier("")


@pytest.mark.asyncio
async def test_notify_safely_swallows_notifier_failures():
    notifier, _ = make_webhook(status_code=503)

    await notify_safely(notifier, "LLM Completion", RuntimeError("x"), "AiService", {})
    await notifier.close()


@pytest.mark.asyncio
async def test_notify_safely_without_notifier_is_noop():
    await notify_safely(None, "LLM Completion", RuntimeError("x"), "AiService")


@pytest.mark.asyncio
async def test_notify_safely_passes_arguments_through():
    notifier = AsyncMock()
    error = RuntimeError("x")

    await notify_safely(notifier, "LLM Completion", error, "AiService", {"fileName": "N/A"})

    notifier.notify_error.assert_awaited_once_with("LLM Completion", error, "AiService", {"fileName": "N/A"})


@pytest.mark.asyncio
async def test_logging_notifier_writes_error_record(caplog):
    with caplog.at_level("ERROR"):
        await LoggingErrorNotifier().notify_error("LLM Completion", RuntimeError("x"), "AiService")

    assert "LLM Completion failed in AiService" in caplog.text


@pytest.mark.asyncio
async def test_webhook_close_releases_its_own_client():
    notifier = WebhookErrorNotifier("https://hooks.example.test/errors")

    await notifier.close()

    assert notifier._client.is_closed


@pytest.mark.asyncio
async def test_webhook_close_leaves_injected_client_open():
    notifier, _ = make_webhook()

    await notifier.close()

    assert not notifier._client.is_closed
    await notifier._client.aclose()


@pytest.mark.asyncio
async def test_logging_notifier_close_is_noop():
    await LoggingErrorNotifier().close()

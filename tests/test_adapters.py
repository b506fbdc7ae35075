"""
Unit tests for the OpenAI adapters.

The AsyncOpenAI client is a MagicMock whose endpoint methods are AsyncMocks
returning SimpleNamespace stand-ins for SDK response objects.
"""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from llm_core.adapters import build_assistants, build_chat, build_client, build_stt
from llm_core.adapters.assistants import OpenAIAssistants
from llm_core.adapters.llm import OpenAIChatLLM
from llm_core.adapters.stt import OpenAIWhisperSTT
from llm_core.config import Settings
from llm_core.models import RunStatus, ToolCall, ToolOutput


def tool_call_ns(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def run_ns(status="requires_action", tool_calls=None):
    action = None
    if tool_calls is not None:
        action = SimpleNamespace(submit_tool_outputs=SimpleNamespace(tool_calls=tool_calls))
    return SimpleNamespace(id="run_1", thread_id="thread_1", status=status, required_action=action)


# ── Chat ───────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_chat_adapter_normalizes_text_response():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(
            model="gpt-4o-mini",
            choices=[SimpleNamespace(finish_reason="stop", message=SimpleNamespace(content="4", tool_calls=None))],
        )
    )
    llm = OpenAIChatLLM(client=client, model="gpt-4o-mini")

    result = await llm.complete([{"role": "user", "content": "What is 2+2?"}], temperature=0)

    assert result.finish_reason == "stop"
    assert result.content == "4"
    assert result.tool_calls == []
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["temperature"] == 0


@pytest.mark.asyncio
async def test_chat_adapter_normalizes_tool_calls_and_model_override():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(
            model="gpt-4o",
            choices=[
                SimpleNamespace(
                    finish_reason="tool_calls",
                    message=SimpleNamespace(content=None, tool_calls=[tool_call_ns("call_1", "pick", '{"a": 1}')]),
                )
            ],
        )
    )
    llm = OpenAIChatLLM(client=client, model="gpt-4o-mini")

    result = await llm.complete([{"role": "user", "content": "x"}], model="gpt-4o")

    assert result.tool_calls == [ToolCall(id="call_1", function_name="pick", arguments='{"a": 1}')]
    assert client.chat.completions.create.call_args.kwargs["model"] == "gpt-4o"


# ── STT ────────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_stt_adapter_counts_segments_and_words():
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(
        return_value=SimpleNamespace(text=" hello world ", segments=[object()], words=[object(), object()])
    )
    stt = OpenAIWhisperSTT(client=client, model="whisper-1")

    transcript = await stt.transcribe_file(Path("/tmp/audio.webm"))

    assert transcript.text == "hello world"
    assert transcript.segment_count == 1
    assert transcript.word_count == 2
    kwargs = client.audio.transcriptions.create.call_args.kwargs
    assert kwargs["response_format"] == "verbose_json"
    assert kwargs["file"] == Path("/tmp/audio.webm")


@pytest.mark.asyncio
async def test_stt_adapter_handles_plain_text_format():
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(return_value="plain transcript\n")
    stt = OpenAIWhisperSTT(client=client, model="whisper-1")

    transcript = await stt.transcribe_file(Path("/tmp/audio.webm"), {"response_format": "text"})

    assert transcript.text == "plain transcript"
    assert transcript.segment_count == 0


# ── Assistants ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_assistants_adapter_maps_required_tool_calls():
    client = MagicMock()
    client.beta.threads.runs.retrieve = AsyncMock(
        return_value=run_ns(tool_calls=[tool_call_ns("A", "lookup", "{}"), tool_call_ns("B", "lookup", "{}")])
    )
    adapter = OpenAIAssistants(client=client)

    run = await adapter.retrieve_run("thread_1", "run_1")

    assert run.status == RunStatus.REQUIRES_ACTION
    assert run.required_tool_call_ids == ["A", "B"]
    client.beta.threads.runs.retrieve.assert_awaited_once_with("run_1", thread_id="thread_1")


@pytest.mark.asyncio
async def test_assistants_adapter_run_without_required_action():
    client = MagicMock()
    client.beta.threads.runs.cancel = AsyncMock(return_value=run_ns(status="cancelling"))
    adapter = OpenAIAssistants(client=client)

    run = await adapter.cancel_run("thread_1", "run_1")

    assert run.status == "cancelling"
    assert run.required_tool_calls == []


@pytest.mark.asyncio
async def test_assistants_adapter_submits_tool_outputs_as_dicts():
    client = MagicMock()
    client.beta.threads.runs.submit_tool_outputs = AsyncMock(return_value=run_ns(status="queued"))
    adapter = OpenAIAssistants(client=client)

    await adapter.submit_tool_outputs("thread_1", "run_1", [ToolOutput("A", "a")])

    client.beta.threads.runs.submit_tool_outputs.assert_awaited_once_with(
        "run_1", thread_id="thread_1", tool_outputs=[{"tool_call_id": "A", "output": "a"}]
    )


@pytest.mark.asyncio
async def test_assistants_adapter_lifecycle_ids():
    client = MagicMock()
    client.beta.assistants.create = AsyncMock(return_value=SimpleNamespace(id="asst_1"))
    client.beta.threads.create = AsyncMock(return_value=SimpleNamespace(id="thread_1"))
    adapter = OpenAIAssistants(client=client)

    assert await adapter.create_assistant("gpt-4o-mini", "n", "d", "i", []) == "asst_1"
    assert await adapter.create_thread() == "thread_1"


# ── Factory ────────────────────────────────────────────────────────────────────

def test_factory_without_api_key_builds_nothing():
    client = build_client(Settings(openai_api_key=""))

    assert client is None
    assert build_chat(client) is None
    assert build_stt(client) is None
    assert build_assistants(client) is None


def test_factory_with_api_key_builds_all_providers():
    client = build_client(Settings(openai_api_key="sk-test"))

    assert client is not None
    assert isinstance(build_chat(client), OpenAIChatLLM)
    assert isinstance(build_stt(client), OpenAIWhisperSTT)
    assert isinstance(build_assistants(client), OpenAIAssistants)

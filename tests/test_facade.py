"""
Unit tests for PromptCompletionFacade.

Providers and the notifier are mocked; the transcription service, completion
orchestrator and conversation store are real.
"""

from unittest.mock import AsyncMock

import pytest

from llm_core.core.errors import ContentFilterError, InputValidationError, TranscriptionFailedError
from llm_core.core.retry import RetryExecutor, RetryPolicy
from llm_core.models import AudioInput, ChatResult, Transcript
from llm_core.pipeline.completion import CompletionOrchestrator
from llm_core.pipeline.facade import (
    SOURCE_COMPONENT,
    STAGE_COMPLETION,
    STAGE_TRANSCRIPTION,
    AudioPrompt,
    PromptCompletionFacade,
    TextPrompt,
)
from llm_core.services.conversation_store import InMemoryConversationStore
from llm_core.services.transcription import TranscriptionService


# ── Fixtures ───────────────────────────────────────────────────────────────────

def make_providers(transcript="What is 2+2?", reply="4"):
    stt = AsyncMock()
    stt.transcribe_file.return_value = Transcript(text=transcript, segment_count=1, word_count=3)
    chat = AsyncMock()
    chat.complete.return_value = ChatResult(finish_reason="stop", content=reply)
    return stt, chat


def make_facade(tmp_path, stt, chat, notifier=None, max_attempts=2):
    retry = RetryExecutor(RetryPolicy(max_attempts=max_attempts, delay_seconds=0))
    store = InMemoryConversationStore()
    transcription = TranscriptionService(stt, retry, notifier=notifier, temp_dir=tmp_path)
    completion = CompletionOrchestrator(chat, store, retry, default_scope_id="scope")
    facade = PromptCompletionFacade(transcription, completion, notifier=notifier, default_scope_id="scope")
    return facade, store


def make_audio(content=b"audio-bytes", content_type="audio/webm", file_name="note.webm"):
    return AudioInput(content=content, content_type=content_type, file_name=file_name)


# ── Happy path ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_text_prompt_returns_completion(tmp_path):
    stt, chat = make_providers(reply="4")
    facade, store = make_facade(tmp_path, stt, chat)

    result = await facade.complete(TextPrompt("What is 2+2?"))

    assert result.response == "4"
    assert result.source_type == "text"
    assert result.transcribed_prompt is None
    stt.transcribe_file.assert_not_called()
    conversation = await store.get_conversation("scope", result.conversation_id)
    assert conversation.messages[0].request == "What is 2+2?"


@pytest.mark.asyncio
async def test_audio_prompt_is_transcribed_then_completed(tmp_path):
    stt, chat = make_providers(transcript="Tell me a joke", reply="Knock knock")
    facade, _ = make_facade(tmp_path, stt, chat)

    result = await facade.complete(AudioPrompt(make_audio()))

    assert result.response == "Knock knock"
    assert result.source_type == "audio"
    assert result.transcribed_prompt == "Tell me a joke"
    sent = chat.complete.call_args.args[0]
    assert sent[-1] == {"role": "user", "content": "Tell me a joke"}


@pytest.mark.asyncio
async def test_conversation_is_continued(tmp_path):
    stt, chat = make_providers()
    facade, store = make_facade(tmp_path, stt, chat)

    first = await facade.complete(TextPrompt("What is 2+2?"))
    second = await facade.complete(TextPrompt("And times 2?", conversation_id=first.conversation_id))

    assert second.conversation_id == first.conversation_id
    conversation = await store.get_conversation("scope", first.conversation_id)
    assert len(conversation.messages) == 2


@pytest.mark.asyncio
async def test_scope_override_is_used(tmp_path):
    stt, chat = make_providers()
    facade, store = make_facade(tmp_path, stt, chat)

    result = await facade.complete(TextPrompt("hi"), scope_id="tenant-a")

    conversation = await store.get_conversation("tenant-a", result.conversation_id)
    assert conversation.messages[0].request == "hi"


@pytest.mark.asyncio
async def test_latency_report_contains_all_stages(tmp_path):
    stt, chat = make_providers()
    facade, _ = make_facade(tmp_path, stt, chat)

    result = await facade.complete(AudioPrompt(make_audio()))

    assert set(result.latency_ms) == {"transcription", "completion"}
    assert all(v >= 0 for v in result.latency_ms.values())


# ── Validation ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("prompt", [None, TextPrompt(""), TextPrompt("   ")])
async def test_missing_prompt_is_rejected(tmp_path, prompt):
    stt, chat = make_providers()
    facade, _ = make_facade(tmp_path, stt, chat)

    with pytest.raises(InputValidationError, match="Either text prompt or audio file"):
        await facade.complete(prompt)
    chat.complete.assert_not_called()


@pytest.mark.asyncio
async def test_invalid_audio_is_rejected_before_transcription(tmp_path):
    stt, chat = make_providers()
    notifier = AsyncMock()
    facade, _ = make_facade(tmp_path, stt, chat, notifier=notifier)

    with pytest.raises(InputValidationError, match="Expected audio/\\*"):
        await facade.complete(AudioPrompt(make_audio(content_type="application/pdf")))

    stt.transcribe_file.assert_not_called()
    chat.complete.assert_not_called()
    notifier.notify_error.assert_not_called()


# ── Failure paths ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_transcription_failure_is_notified_and_wrapped(tmp_path):
    stt, chat = make_providers()
    cause = RuntimeError("whisper down")
    stt.transcribe_file.side_effect = cause
    notifier = AsyncMock()
    facade, _ = make_facade(tmp_path, stt, chat, notifier=notifier)

    with pytest.raises(TranscriptionFailedError) as exc_info:
        await facade.complete(AudioPrompt(make_audio(file_name="memo.webm")))

    assert exc_info.value.__cause__ is cause
    assert exc_info.value.file_name == "memo.webm"
    notifier.notify_error.assert_awaited_once_with(
        STAGE_TRANSCRIPTION, cause, SOURCE_COMPONENT, {"fileName": "memo.webm"}
    )
    chat.complete.assert_not_called()
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_empty_transcript_is_a_transcription_failure(tmp_path):
    stt, chat = make_providers(transcript="  ")
    facade, _ = make_facade(tmp_path, stt, chat)

    with pytest.raises(TranscriptionFailedError) as exc_info:
        await facade.complete(AudioPrompt(make_audio()))

    assert isinstance(exc_info.value.__cause__, InputValidationError)
    chat.complete.assert_not_called()


@pytest.mark.asyncio
async def test_completion_failure_is_notified_and_reraised(tmp_path):
    stt, chat = make_providers()
    chat.complete.return_value = ChatResult(finish_reason="content_filter")
    notifier = AsyncMock()
    facade, _ = make_facade(tmp_path, stt, chat, notifier=notifier)

    with pytest.raises(ContentFilterError):
        await facade.complete(AudioPrompt(make_audio(file_name="memo.webm")))

    stage, error, source, context = notifier.notify_error.call_args.args
    assert stage == STAGE_COMPLETION
    assert isinstance(error, ContentFilterError)
    assert source == SOURCE_COMPONENT
    assert context == {"sourceType": "audio", "fileName": "memo.webm"}


@pytest.mark.asyncio
async def test_failing_notifier_does_not_mask_original_error(tmp_path):
    stt, chat = make_providers()
    chat.complete.side_effect = RuntimeError("provider down")
    notifier = AsyncMock()
    notifier.notify_error.side_effect = ConnectionError("webhook unreachable")
    facade, _ = make_facade(tmp_path, stt, chat, notifier=notifier)

    with pytest.raises(RuntimeError, match="provider down"):
        await facade.complete(TextPrompt("hi"))


# ── Standalone transcription ───────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_transcribe_returns_named_result(tmp_path):
    stt, chat = make_providers(transcript="meeting notes")
    facade, _ = make_facade(tmp_path, stt, chat)

    result = await facade.transcribe(make_audio(file_name="standup.webm"))

    assert result.transcript == "meeting notes"
    assert result.audio_file_name.endswith("_standup.webm")
    assert result.transcript_file_name.endswith("_standup.txt")


@pytest.mark.asyncio
async def test_failed_completion_still_logs_latency_report(tmp_path, caplog):
    stt, chat = make_providers()
    chat.complete.side_effect = RuntimeError("provider down")
    facade, _ = make_facade(tmp_path, stt, chat, max_attempts=1)

    with caplog.at_level("INFO", logger="llm_core.metrics.latency"):
        with pytest.raises(RuntimeError):
            await facade.complete(AudioPrompt(make_audio()))

    report = [r for r in caplog.records if r.getMessage() == "Prompt completion failed"][-1]
    assert report.failed_stages == {"completion": "RuntimeError"}
    assert report.source_type == "audio"
    assert "latency_transcription_ms" in report.__dict__

"""
Prompt Completion Facade
========================
Caller-facing entry point for a text or audio prompt.

Flow
----
    TextPrompt ───────────────────────────────┐
                                              ↓
    AudioPrompt → validate → transcribe → CompletionOrchestrator → CompletionResult

Failures are reported to the error notifier with a stage label and context,
then raised to the caller. Notification is an operator side channel and
never replaces propagation. A latency report with per-stage timings and the
failed stage, if any, is logged once per request.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from llm_core.core.errors import InputValidationError, TranscriptionFailedError
from llm_core.core.logging import get_logger, new_request_id, set_logging_context
from llm_core.metrics.latency import LatencyReport, measure
from llm_core.models import AudioInput, AudioTranscriptionResult
from llm_core.pipeline.completion import CompletionOrchestrator
from llm_core.services.notifier import ErrorNotifier, notify_safely
from llm_core.services.transcription import TranscriptionService

logger = get_logger(__name__)

SOURCE_COMPONENT = "AiService"
STAGE_TRANSCRIPTION = "LLM Audio Transcription"
STAGE_COMPLETION = "LLM Completion"

SOURCE_TEXT = "text"
SOURCE_AUDIO = "audio"


@dataclass(frozen=True)
class TextPrompt:
    text: str
    conversation_id: Optional[str] = None


@dataclass(frozen=True)
class AudioPrompt:
    audio: AudioInput
    conversation_id: Optional[str] = None


CompletionPrompt = Union[TextPrompt, AudioPrompt]


@dataclass(frozen=True)
class CompletionResult:
    response: str
    source_type: str
    conversation_id: str
    transcribed_prompt: Optional[str] = None
    latency_ms: Dict[str, float] = field(default_factory=dict)


class PromptCompletionFacade:
    def __init__(
        self,
        transcription: TranscriptionService,
        completion: CompletionOrchestrator,
        notifier: Optional[ErrorNotifier] = None,
        default_scope_id: str = "default",
    ) -> None:
        self._transcription = transcription
        self._completion = completion
        self._notifier = notifier
        self._default_scope_id = default_scope_id

    async def complete(self, prompt: Optional[CompletionPrompt], scope_id: Optional[str] = None) -> CompletionResult:
        """
        Complete a text prompt, or transcribe an audio prompt and complete the transcript.

        Raises
        ------
        InputValidationError     when no usable prompt is given or the audio is invalid
        TranscriptionFailedError when the audio could not be transcribed (cause chained)
        Any completion error, unchanged, after the notifier has been told about it.
        """
        scope_id = scope_id or self._default_scope_id
        request_id = new_request_id()
        set_logging_context(scope_id=scope_id, request_id=request_id)
        report = LatencyReport(scope_id=scope_id, request_id=request_id)

        if isinstance(prompt, AudioPrompt):
            report.source_type = SOURCE_AUDIO
            self._transcription.ensure_valid(prompt.audio)
        elif isinstance(prompt, TextPrompt) and prompt.text and prompt.text.strip():
            report.source_type = SOURCE_TEXT
            logger.info("Processing text prompt")
        else:
            logger.warning("No valid prompt provided")
            raise InputValidationError("Either text prompt or audio file must be provided.")

        try:
            return await self._run(prompt, scope_id, report)
        finally:
            report.log()

    async def transcribe(self, audio: AudioInput) -> AudioTranscriptionResult:
        return await self._transcription.process_audio_file(audio)

    async def _run(self, prompt: CompletionPrompt, scope_id: str, report: LatencyReport) -> CompletionResult:
        transcribed_prompt: Optional[str] = None
        file_name: Optional[str] = None

        if isinstance(prompt, AudioPrompt):
            audio = prompt.audio
            file_name = audio.file_name
            logger.info(
                "Processing audio prompt",
                extra={"content_type": audio.content_type, "file_name": file_name, "bytes": audio.length},
            )
            try:
                async with measure(report, "transcription"):
                    prompt_text = await self._transcription.transcribe(audio)
                    if not prompt_text.strip():
                        raise InputValidationError("Empty transcript, audio may be silent or unclear")
            except Exception as exc:
                logger.exception("Failed to transcribe audio prompt")
                await notify_safely(
                    self._notifier,
                    STAGE_TRANSCRIPTION,
                    exc,
                    SOURCE_COMPONENT,
                    {"fileName": file_name or "unknown"},
                )
                raise TranscriptionFailedError(
                    "Failed to transcribe the provided audio prompt.", file_name=file_name
                ) from exc

            transcribed_prompt = prompt_text
            logger.info("Successfully transcribed audio prompt", extra={"chars": len(prompt_text)})
        else:
            prompt_text = prompt.text

        try:
            async with measure(report, "completion"):
                result = await self._completion.get_completion(
                    prompt_text,
                    conversation_id=prompt.conversation_id,
                    scope_id=scope_id,
                )
        except Exception as exc:
            logger.exception("Failed to get LLM completion")
            await notify_safely(
                self._notifier,
                STAGE_COMPLETION,
                exc,
                SOURCE_COMPONENT,
                {"sourceType": report.source_type, "fileName": file_name or "N/A"},
            )
            raise

        return CompletionResult(
            response=result.data,
            source_type=report.source_type,
            conversation_id=result.conversation_id,
            transcribed_prompt=transcribed_prompt,
            latency_ms=dict(report.stages),
        )

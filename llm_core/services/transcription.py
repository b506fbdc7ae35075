"""
Transcription Service
=====================
Normalizes audio input into prompt text.

Responsibilities
----------------
1. Validates audio before any network call (present, non-empty, audio/*).
   Validation failures raise InputValidationError and are never retried.
2. Persists the payload to a uniquely named temporary file for the provider's
   file-based upload and deletes it on both success and failure paths.
3. Retries the provider call through the shared RetryExecutor.
4. Derives timestamped, sanitized file names for stored audio/transcripts and
   notifies operators when a transcription fails.
"""

import asyncio
import re
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from llm_core.adapters.base import TranscriptionProvider
from llm_core.core.errors import ConfigurationMissingError, InputValidationError
from llm_core.core.logging import get_logger
from llm_core.core.retry import RetryExecutor
from llm_core.models import AudioInput, AudioTranscriptionResult
from llm_core.services.notifier import ErrorNotifier, notify_safely

logger = get_logger(__name__)

SOURCE_COMPONENT = "TranscriptionService"
STAGE_AUDIO_TRANSCRIPTION = "Audio Transcription"

# Extension hints for providers that infer the codec from the file name
EXT_MAP = {
    "audio/webm": ".webm",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/mp4": ".mp4",
    "audio/mpeg": ".mp3",
    "audio/ogg": ".ogg",
}
DEFAULT_EXT = ".webm"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def _media_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def sanitize_file_stem(file_name: Optional[str], default: str = "audio") -> str:
    stem = Path(file_name).stem if file_name else ""
    return _UNSAFE_CHARS.sub("_", stem) or default


def extension_for(file_name: Optional[str], content_type: Optional[str]) -> str:
    """Original extension when present, otherwise the media subtype (audio/mpeg → .mpeg)."""
    suffix = Path(file_name).suffix if file_name else ""
    if suffix:
        return suffix.lower()
    subtype = _media_type(content_type).partition("/")[2]
    return f".{subtype}" if subtype else DEFAULT_EXT


def _write_temp_file(content: bytes, suffix: str, directory: Optional[Path]) -> Path:
    path = Path(directory or tempfile.gettempdir()) / f"audio_{uuid.uuid4().hex}{suffix}"
    try:
        path.write_bytes(content)
    except Exception:
        path.unlink(missing_ok=True)
        raise
    return path


class TranscriptionService:
    def __init__(
        self,
        provider: Optional[TranscriptionProvider],
        retry: RetryExecutor,
        notifier: Optional[ErrorNotifier] = None,
        retry_attempts: Optional[int] = None,
        temp_dir: Optional[Path] = None,
    ) -> None:
        self._provider = provider
        self._retry = retry
        self._notifier = notifier
        self._retry_attempts = retry_attempts
        self._temp_dir = temp_dir

    # ── Validation ─────────────────────────────────────────────────────────────

    @staticmethod
    def validate_audio(audio: Optional[AudioInput]) -> Tuple[bool, Optional[str]]:
        if audio is None:
            return False, "Audio file is required."
        if audio.length == 0:
            return False, "Audio file must not be empty."
        media_type = _media_type(audio.content_type)
        if not media_type.startswith("audio/"):
            return False, f"Invalid or missing content type '{audio.content_type or ''}'. Expected audio/*."
        return True, None

    def ensure_valid(self, audio: Optional[AudioInput]) -> AudioInput:
        is_valid, error_message = self.validate_audio(audio)
        if not is_valid:
            logger.warning("Rejected audio input", extra={"reason": error_message})
            raise InputValidationError(error_message)
        return audio  # type: ignore[return-value]

    # ── Transcription ──────────────────────────────────────────────────────────

    async def transcribe(self, audio: AudioInput, options: Optional[Dict[str, Any]] = None) -> str:
        """
        Transcribe an audio payload to text.

        Raises
        ------
        InputValidationError      when the audio is missing, empty or not audio/*
        ConfigurationMissingError when no transcription provider is configured
        """
        audio = self.ensure_valid(audio)
        provider = self._require_provider()

        logger.info(
            "Starting audio transcription",
            extra={"content_type": audio.content_type, "bytes": audio.length},
        )

        suffix = EXT_MAP.get(_media_type(audio.content_type)) or extension_for(audio.file_name, audio.content_type)
        temp_path = await asyncio.to_thread(_write_temp_file, audio.content, suffix, self._temp_dir)
        try:
            transcript = await self._retry.execute(
                lambda: provider.transcribe_file(temp_path, options),
                max_attempts=self._retry_attempts,
                label="transcription",
            )
        except Exception:
            logger.exception("Failed to transcribe audio after all retry attempts")
            raise
        finally:
            await asyncio.to_thread(temp_path.unlink, missing_ok=True)

        logger.info(
            "Audio transcription completed",
            extra={"segments": transcript.segment_count, "words": transcript.word_count},
        )
        return transcript.text

    async def process_audio_file(self, audio: AudioInput) -> AudioTranscriptionResult:
        """Transcribe and derive the file names under which audio and transcript are stored."""
        audio = self.ensure_valid(audio)

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%SZ")
        stem = sanitize_file_stem(audio.file_name)
        audio_file_name = f"{timestamp}_{stem}{extension_for(audio.file_name, audio.content_type)}"
        transcript_file_name = f"{timestamp}_{stem}.txt"

        try:
            transcript = await self.transcribe(audio)
        except Exception as exc:
            await notify_safely(
                self._notifier,
                STAGE_AUDIO_TRANSCRIPTION,
                exc,
                SOURCE_COMPONENT,
                {"fileName": audio.file_name or "unknown"},
            )
            raise

        logger.info(
            "Audio file processed",
            extra={"audio_file_name": audio_file_name, "transcript_file_name": transcript_file_name},
        )
        return AudioTranscriptionResult(
            transcript=transcript,
            audio_file_name=audio_file_name,
            transcript_file_name=transcript_file_name,
            timestamp=timestamp,
        )

    def _require_provider(self) -> TranscriptionProvider:
        if self._provider is None:
            raise ConfigurationMissingError("Settings", "openai_api_key")
        return self._provider

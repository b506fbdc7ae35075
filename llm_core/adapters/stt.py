"""
STT Adapter: OpenAI Whisper
===========================
Uploads an audio file from disk and reports segment/word counts when the
verbose response format is used (the default here).

To swap providers: create a new class that extends TranscriptionProvider and
update the factory in adapters/__init__.py.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from llm_core.adapters.base import TranscriptionProvider
from llm_core.config import get_settings
from llm_core.core.logging import get_logger
from llm_core.models import Transcript

logger = get_logger(__name__)

DEFAULT_OPTIONS: Dict[str, Any] = {"response_format": "verbose_json"}


class OpenAIWhisperSTT(TranscriptionProvider):
    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None) -> None:
        settings = get_settings()
        self._client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self._model = model or settings.stt_model

    async def transcribe_file(self, path: Path, options: Optional[Dict[str, Any]] = None) -> Transcript:
        request_options = dict(options or DEFAULT_OPTIONS)

        logger.debug("Sending audio to Whisper STT", extra={"path": str(path), "model": self._model})

        response = await self._client.audio.transcriptions.create(
            model=self._model,
            file=path,
            **request_options,
        )

        # response_format="text" yields a bare string
        if isinstance(response, str):
            return Transcript(text=response.strip())

        return Transcript(
            text=response.text.strip(),
            segment_count=len(getattr(response, "segments", None) or []),
            word_count=len(getattr(response, "words", None) or []),
        )

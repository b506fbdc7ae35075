"""
Adapter factory.
Change the concrete classes here to swap AI providers globally.

Each builder returns None when no API key is configured; the services that
receive a missing provider raise ConfigurationMissingError on use.
"""

from typing import Optional

from openai import AsyncOpenAI

from llm_core.adapters.assistants import OpenAIAssistants
from llm_core.adapters.base import AssistantProvider, ChatProvider, TranscriptionProvider
from llm_core.adapters.llm import OpenAIChatLLM
from llm_core.adapters.stt import OpenAIWhisperSTT
from llm_core.config import Settings, get_settings
from llm_core.core.logging import get_logger

logger = get_logger(__name__)


def build_client(settings: Optional[Settings] = None) -> Optional[AsyncOpenAI]:
    settings = settings or get_settings()
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; LLM providers are unavailable")
        return None
    return AsyncOpenAI(api_key=settings.openai_api_key)


def build_chat(client: Optional[AsyncOpenAI]) -> Optional[ChatProvider]:
    return OpenAIChatLLM(client) if client else None


def build_stt(client: Optional[AsyncOpenAI]) -> Optional[TranscriptionProvider]:
    return OpenAIWhisperSTT(client) if client else None


def build_assistants(client: Optional[AsyncOpenAI]) -> Optional[AssistantProvider]:
    return OpenAIAssistants(client) if client else None

"""
Composition root.
Wires settings, providers, stores and orchestrators into one object the host
application (web controller, worker, CLI) holds for its lifetime.
"""

from dataclasses import dataclass
from typing import Optional

from openai import AsyncOpenAI

from llm_core.adapters import build_assistants, build_chat, build_client, build_stt
from llm_core.config import Settings, get_settings
from llm_core.core.logging import get_logger
from llm_core.core.retry import RetryExecutor, RetryPolicy
from llm_core.pipeline.assistants import AssistantRunOrchestrator
from llm_core.pipeline.completion import CompletionOrchestrator
from llm_core.pipeline.facade import PromptCompletionFacade
from llm_core.services.conversation_store import ConversationStore, InMemoryConversationStore
from llm_core.services.notifier import ErrorNotifier, LoggingErrorNotifier, WebhookErrorNotifier
from llm_core.services.transcription import TranscriptionService

logger = get_logger(__name__)


@dataclass
class LlmCore:
    settings: Settings
    store: ConversationStore
    notifier: ErrorNotifier
    transcription: TranscriptionService
    completion: CompletionOrchestrator
    assistants: AssistantRunOrchestrator
    facade: PromptCompletionFacade
    client: Optional[AsyncOpenAI] = None

    async def aclose(self) -> None:
        """Release the notifier and the provider client. Call once at host shutdown."""
        await self.notifier.close()
        if self.client is not None:
            await self.client.close()
        logger.info("LLM orchestration core closed")


def build_notifier(settings: Settings) -> ErrorNotifier:
    if settings.notifier_webhook_url:
        return WebhookErrorNotifier(settings.notifier_webhook_url, timeout_seconds=settings.notifier_timeout_seconds)
    return LoggingErrorNotifier()


def build_core(
    settings: Optional[Settings] = None,
    store: Optional[ConversationStore] = None,
    notifier: Optional[ErrorNotifier] = None,
) -> LlmCore:
    settings = settings or get_settings()
    store = store or InMemoryConversationStore()
    notifier = notifier or build_notifier(settings)

    retry = RetryExecutor(
        RetryPolicy(
            max_attempts=settings.llm_retry_attempts,
            delay_seconds=settings.retry_delay_seconds,
            attempt_timeout_seconds=settings.provider_timeout_seconds,
        )
    )
    client = build_client(settings)

    transcription = TranscriptionService(
        build_stt(client),
        retry,
        notifier=notifier,
        retry_attempts=settings.stt_retry_attempts,
    )
    completion = CompletionOrchestrator(
        build_chat(client),
        store,
        retry,
        default_scope_id=settings.default_scope_id,
    )
    assistants = AssistantRunOrchestrator(build_assistants(client), retry, model=settings.llm_model)
    facade = PromptCompletionFacade(
        transcription,
        completion,
        notifier=notifier,
        default_scope_id=settings.default_scope_id,
    )

    logger.info(
        "LLM orchestration core initialized",
        extra={
            "llm_model": settings.llm_model,
            "stt_model": settings.stt_model,
            "providers_available": client is not None,
            "notifier": type(notifier).__name__,
        },
    )
    return LlmCore(
        settings=settings,
        store=store,
        notifier=notifier,
        transcription=transcription,
        completion=completion,
        assistants=assistants,
        facade=facade,
        client=client,
    )

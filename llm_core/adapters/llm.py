"""
Chat Adapter: OpenAI chat completions
=====================================
Translates chat-completion responses into ChatResult so orchestrators only
ever see the finish reason, text content and tool calls.

To swap providers: extend ChatProvider and update the factory.
"""

from typing import Any, List, Optional

from openai import AsyncOpenAI

from llm_core.adapters.base import ChatProvider
from llm_core.config import get_settings
from llm_core.core.logging import get_logger
from llm_core.models import ChatMessage, ChatResult, ToolCall

logger = get_logger(__name__)


class OpenAIChatLLM(ChatProvider):
    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None) -> None:
        settings = get_settings()
        self._client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self._model = model or settings.llm_model

    async def complete(self, messages: List[ChatMessage], **options: Any) -> ChatResult:
        model = options.pop("model", None) or self._model

        logger.debug("Sending to LLM", extra={"turns": len(messages), "model": model})

        response = await self._client.chat.completions.create(
            model=model,
            messages=messages,  # type: ignore[arg-type]
            **options,
        )

        choice = response.choices[0]
        tool_calls = [
            ToolCall(id=tc.id, function_name=tc.function.name, arguments=tc.function.arguments)
            for tc in (choice.message.tool_calls or [])
        ]
        logger.debug(
            "LLM reply received",
            extra={"finish_reason": choice.finish_reason, "tool_calls": len(tool_calls)},
        )
        return ChatResult(
            finish_reason=choice.finish_reason,
            content=choice.message.content,
            tool_calls=tool_calls,
            model=response.model,
        )

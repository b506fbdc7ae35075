"""
Completion Orchestrator
=======================
Drives single-shot and function-constrained chat completions on top of a
persisted conversation.

Responsibilities
----------------
1. Initializes a conversation when the caller does not continue one.
2. Rebuilds the full history: system prompt, then one (user, assistant) pair
   per stored exchange, then the new messages.
3. Calls the chat provider through the RetryExecutor.
4. Validates the finish reason and, for function calls, the tool call name.
5. Persists the exchange only after a successful provider response.

Design Decisions
----------------
- Function calls pin the tool choice to one function and disable parallel
  tool calls, so a result is always a single typed object.
- Tool-call arguments are deserialized with a pydantic TypeAdapter; a
  mismatch is logged with the raw payload and re-raised, never defaulted.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import TypeAdapter

from llm_core.adapters.base import ChatProvider
from llm_core.core.errors import (
    ConfigurationMissingError,
    ContentFilterError,
    InputValidationError,
    ProtocolViolationError,
)
from llm_core.core.logging import get_logger, set_conversation_id
from llm_core.core.retry import RetryExecutor
from llm_core.models import (
    ChatMessage,
    ChatResult,
    FinishReason,
    FunctionDefinition,
    LlmResult,
    assistant_message,
    system_message,
    user_message,
)
from llm_core.services.conversation_store import Conversation, ConversationStore

logger = get_logger(__name__)

T = TypeVar("T")

_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


def response_as_text(response: Any) -> str:
    """Render a stored response (text or structured result) for replay to the model."""
    if isinstance(response, str):
        return response
    return _ANY_ADAPTER.dump_json(response).decode()


def history_messages(conversation: Conversation) -> List[ChatMessage]:
    messages: List[ChatMessage] = []
    if conversation.system_prompt:
        messages.append(system_message(conversation.system_prompt))
    for msg in conversation.messages:
        messages.append(user_message(msg.request))
        messages.append(assistant_message(response_as_text(msg.response)))
    return messages


def last_user_prompt(messages: List[ChatMessage]) -> str:
    for message in reversed(messages):
        if message.get("role") == "user" and message.get("content"):
            return message["content"]
    raise InputValidationError("At least one non-empty user message is required.")


class CompletionOrchestrator:
    def __init__(
        self,
        chat: Optional[ChatProvider],
        store: ConversationStore,
        retry: RetryExecutor,
        retry_attempts: Optional[int] = None,
        default_scope_id: str = "default",
    ) -> None:
        self._chat = chat
        self._store = store
        self._retry = retry
        self._retry_attempts = retry_attempts
        self._default_scope_id = default_scope_id

    # ── Free-text completion ───────────────────────────────────────────────────

    async def get_completion(
        self,
        prompt: str,
        conversation_id: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
        retry_attempts: Optional[int] = None,
        scope_id: Optional[str] = None,
    ) -> LlmResult[str]:
        """
        Complete a single user prompt, continuing `conversation_id` when given.

        Returns
        -------
        LlmResult with the response text and the (possibly new) conversation ID.
        """
        if not prompt or not prompt.strip():
            raise InputValidationError("Prompt must not be empty.")
        return await self.get_completion_for_messages(
            [user_message(prompt)],
            conversation_id=conversation_id,
            options=options,
            retry_attempts=retry_attempts,
            scope_id=scope_id,
        )

    async def get_completion_for_messages(
        self,
        messages: List[ChatMessage],
        conversation_id: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
        retry_attempts: Optional[int] = None,
        scope_id: Optional[str] = None,
    ) -> LlmResult[str]:
        self._require_chat()
        scope_id = scope_id or self._default_scope_id
        prompt = last_user_prompt(messages)

        if conversation_id is None:
            conversation_id = await self._store.initialize_conversation(scope_id, messages)
        set_conversation_id(conversation_id)

        all_messages = await self._build_history(scope_id, conversation_id, messages)
        completion = await self._complete(all_messages, options or {}, retry_attempts)

        if completion.finish_reason == FinishReason.CONTENT_FILTER:
            raise ContentFilterError("Content filter triggered")
        if completion.content is None:
            raise ProtocolViolationError(
                f"Expected text content from the model. Received finish reason: '{completion.finish_reason}'"
            )
        if completion.finish_reason == FinishReason.LENGTH:
            logger.warning(
                "Model response truncated at the token limit",
                extra={"model": completion.model, "chars": len(completion.content)},
            )

        await self._store.add_message(scope_id, conversation_id, prompt, completion.content)

        return LlmResult(data=completion.content, conversation_id=conversation_id)

    # ── Function-constrained completion ────────────────────────────────────────

    async def call_function(
        self,
        system_prompt: str,
        user_prompt: str,
        function: FunctionDefinition,
        result_type: Type[T],
        conversation_id: Optional[str] = None,
        retry_attempts: Optional[int] = None,
        scope_id: Optional[str] = None,
    ) -> LlmResult[T]:
        """
        Force the model to answer with exactly one call to `function` and
        deserialize its arguments into `result_type`.

        Raises
        ------
        ContentFilterError     when the provider's content filter stopped the completion
        ProtocolViolationError on an unexpected finish reason or no matching tool call
        pydantic.ValidationError when the arguments are not valid JSON for result_type
        """
        self._require_chat()
        scope_id = scope_id or self._default_scope_id

        logger.info(
            "Calling function on model",
            extra={"function": function.name, "system_prompt": system_prompt, "user_prompt": user_prompt},
        )

        messages = [system_message(system_prompt), user_message(user_prompt)]

        if conversation_id is None:
            conversation_id = await self._store.initialize_conversation(
                scope_id, messages, tool_name=function.name
            )
        set_conversation_id(conversation_id)

        all_messages = await self._build_history(scope_id, conversation_id, messages)
        completion = await self._complete(
            all_messages,
            {
                "tools": [function.as_tool(strict=True)],
                "tool_choice": {"type": "function", "function": {"name": function.name}},
                "parallel_tool_calls": False,
            },
            retry_attempts,
        )

        if completion.finish_reason == FinishReason.CONTENT_FILTER:
            raise ContentFilterError("Content filter triggered")

        if completion.finish_reason not in (FinishReason.TOOL_CALLS, FinishReason.STOP):
            raise ProtocolViolationError(
                f"Expected to receive a tool call from the model. Received: '{completion.finish_reason}'"
            )

        for tool_call in completion.tool_calls:
            if tool_call.function_name != function.name:
                logger.error(
                    "Unexpected function name in tool call",
                    extra={"expected": function.name, "received": tool_call.function_name},
                )
                continue

            logger.info("Function arguments received", extra={"arguments": tool_call.arguments})
            try:
                result = TypeAdapter(result_type).validate_json(tool_call.arguments)
            except ValueError:
                logger.exception(
                    "Failed to deserialize tool call arguments",
                    extra={"type": getattr(result_type, "__name__", str(result_type)), "arguments": tool_call.arguments},
                )
                raise

            await self._store.add_message(
                scope_id, conversation_id, user_prompt, completion.content, tool_result=result
            )
            return LlmResult(data=result, conversation_id=conversation_id)

        if completion.tool_calls:
            raise ProtocolViolationError(
                f"Expected function name {function.name} but got {completion.tool_calls[0].function_name}"
            )
        raise ProtocolViolationError("Failed to get a valid response from the model.")

    # ── Private helpers ────────────────────────────────────────────────────────

    async def _build_history(
        self, scope_id: str, conversation_id: str, new_messages: List[ChatMessage]
    ) -> List[ChatMessage]:
        conversation = await self._store.get_conversation(scope_id, conversation_id)
        history = history_messages(conversation)
        # The stored system prompt already heads the history
        additions = [
            m for m in new_messages
            if not (m.get("role") == "system" and m.get("content") == conversation.system_prompt)
        ]
        return history + additions

    async def _complete(
        self, messages: List[ChatMessage], options: Dict[str, Any], retry_attempts: Optional[int]
    ) -> ChatResult:
        chat = self._require_chat()

        async def attempt() -> ChatResult:
            logger.info("Sending prompts to model", extra={"turns": len(messages), "options": list(options)})
            result = await chat.complete(messages, **dict(options))
            logger.info(
                "Received response from model",
                extra={"finish_reason": result.finish_reason, "model": result.model},
            )
            return result

        return await self._retry.execute(
            attempt,
            max_attempts=retry_attempts if retry_attempts is not None else self._retry_attempts,
            label="chat_completion",
        )

    def _require_chat(self) -> ChatProvider:
        if self._chat is None:
            raise ConfigurationMissingError("Settings", "openai_api_key")
        return self._chat

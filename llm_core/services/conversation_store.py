"""
Conversation Store
==================
The orchestrators' view of persisted multi-turn state.

Design
------
- Conversations are grouped by scope (one scope per caller / request owner)
  and keyed by an opaque conversation_id.
- ConversationStore is the interface boundary; persistence beyond process
  memory belongs to whichever implementation the host injects.
- InMemoryConversationStore holds the registry dict on the instance only and
  guards it with an asyncio.Lock, so appends within one conversation keep
  call order.
- Conversations are never deleted here; retention is the host's concern.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from llm_core.core.logging import get_logger
from llm_core.models import ChatMessage

logger = get_logger(__name__)


@dataclass
class ConversationMessage:
    request: str
    response: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    tool_result: Any = None


@dataclass
class Conversation:
    conversation_id: str
    system_prompt: str = ""
    prompt_catalog_name: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    messages: List[ConversationMessage] = field(default_factory=list)


def new_conversation_id(prompt_catalog_name: Optional[str] = None) -> str:
    now = datetime.now(timezone.utc)
    prefix = f"{prompt_catalog_name}-" if prompt_catalog_name else ""
    stamp = now.strftime("%Y%m%d-%H%M%S.") + f"{now.microsecond // 1000:03d}"
    return f"{prefix}{stamp}-{uuid.uuid4().hex[:8]}".lower()


class ConversationStore(ABC):
    @abstractmethod
    async def initialize_conversation(
        self,
        scope_id: str,
        messages: List[ChatMessage],
        tool_name: Optional[str] = None,
    ) -> str:
        """Create an empty conversation and return its ID.

        The system prompt, if any, is taken from the first system message.
        """
        ...

    @abstractmethod
    async def get_conversation(self, scope_id: str, conversation_id: str) -> Conversation:
        """Return the conversation or raise KeyError when it does not exist."""
        ...

    @abstractmethod
    async def add_message(
        self,
        scope_id: str,
        conversation_id: str,
        prompt: str,
        response: Any,
        tool_result: Any = None,
    ) -> None:
        """Append one exchange; the stored response is the tool result when given."""
        ...


def _require(value: str, name: str) -> None:
    if not value:
        raise ValueError(f"{name} cannot be null or empty")


class InMemoryConversationStore(ConversationStore):
    def __init__(self) -> None:
        self._scopes: Dict[str, Dict[str, Conversation]] = {}
        self._lock = asyncio.Lock()

    async def initialize_conversation(
        self,
        scope_id: str,
        messages: List[ChatMessage],
        tool_name: Optional[str] = None,
    ) -> str:
        _require(scope_id, "scope_id")

        system_prompt = next(
            (m.get("content") or "" for m in messages if m.get("role") == "system"),
            "",
        )
        conversation = Conversation(
            conversation_id=new_conversation_id(tool_name),
            system_prompt=system_prompt,
            prompt_catalog_name=tool_name,
        )
        async with self._lock:
            self._scopes.setdefault(scope_id, {})[conversation.conversation_id] = conversation

        logger.info(
            "Conversation created",
            extra={"scope_id": scope_id, "conversation_id": conversation.conversation_id},
        )
        return conversation.conversation_id

    async def get_conversation(self, scope_id: str, conversation_id: str) -> Conversation:
        _require(scope_id, "scope_id")
        _require(conversation_id, "conversation_id")

        async with self._lock:
            conversation = self._scopes.get(scope_id, {}).get(conversation_id)
        if conversation is None:
            raise KeyError(f"Conversation {conversation_id} not found in scope {scope_id}")
        return conversation

    async def add_message(
        self,
        scope_id: str,
        conversation_id: str,
        prompt: str,
        response: Any,
        tool_result: Any = None,
    ) -> None:
        _require(scope_id, "scope_id")
        _require(conversation_id, "conversation_id")
        _require(prompt, "prompt")

        async with self._lock:
            conversation = self._scopes.get(scope_id, {}).get(conversation_id)
            if conversation is None:
                raise KeyError(f"Conversation {conversation_id} not found in scope {scope_id}")
            conversation.messages.append(
                ConversationMessage(
                    request=prompt,
                    response=tool_result if tool_result is not None else response,
                    tool_result=tool_result,
                )
            )

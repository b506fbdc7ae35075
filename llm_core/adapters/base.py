"""
Abstract base classes for LLM provider capabilities.
Any concrete adapter must implement these interfaces, making providers
fully replaceable without changing orchestration code.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from llm_core.models import ChatMessage, ChatResult, RunState, ToolOutput, Transcript


class TranscriptionProvider(ABC):
    """Speech-to-Text: audio file on disk → transcript."""

    @abstractmethod
    async def transcribe_file(self, path: Path, options: Optional[Dict[str, Any]] = None) -> Transcript:
        """
        Transcribe an audio file.

        Parameters
        ----------
        path    : temporary file holding the audio payload
        options : provider-specific transcription options (language, prompt, ...)

        Returns
        -------
        Transcript with text and, when the provider reports them, segment/word counts.
        """
        ...


class ChatProvider(ABC):
    """Chat completion: message history + options → one completion."""

    @abstractmethod
    async def complete(self, messages: List[ChatMessage], **options: Any) -> ChatResult:
        """
        Run a chat completion.

        Parameters
        ----------
        messages : OpenAI-style message list
                   [{"role": "user"|"assistant"|"system", "content": "..."}]
        options  : tools, tool_choice, parallel_tool_calls, temperature, ...

        Returns
        -------
        ChatResult carrying the finish reason, text content and tool calls.
        """
        ...


class AssistantProvider(ABC):
    """Assistant / thread / run protocol."""

    @abstractmethod
    async def create_assistant(
        self,
        model: str,
        name: str,
        description: str,
        instructions: str,
        tools: List[Dict[str, Any]],
    ) -> str:
        ...

    @abstractmethod
    async def delete_assistant(self, assistant_id: str) -> None:
        ...

    @abstractmethod
    async def create_thread(self) -> str:
        ...

    @abstractmethod
    async def delete_thread(self, thread_id: str) -> None:
        ...

    @abstractmethod
    async def create_message(self, thread_id: str, content: str, role: str = "user") -> None:
        ...

    @abstractmethod
    async def create_run(
        self,
        thread_id: str,
        assistant_id: str,
        tool_choice: str,
        parallel_tool_calls: bool,
    ) -> RunState:
        ...

    @abstractmethod
    async def retrieve_run(self, thread_id: str, run_id: str) -> RunState:
        ...

    @abstractmethod
    async def cancel_run(self, thread_id: str, run_id: str) -> RunState:
        ...

    @abstractmethod
    async def submit_tool_outputs(self, thread_id: str, run_id: str, tool_outputs: List[ToolOutput]) -> RunState:
        ...

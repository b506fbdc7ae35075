"""
Provider-neutral data types shared by adapters, services and orchestrators.

Adapters translate SDK responses into these types so orchestration code (and
its tests) never touch vendor objects directly.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")

# OpenAI-style message: {"role": "system"|"user"|"assistant", "content": "..."}
ChatMessage = Dict[str, Any]


def system_message(content: str) -> ChatMessage:
    return {"role": "system", "content": content}


def user_message(content: str) -> ChatMessage:
    return {"role": "user", "content": content}


def assistant_message(content: str) -> ChatMessage:
    return {"role": "assistant", "content": content}


# ── Chat completions ───────────────────────────────────────────────────────────

class FinishReason:
    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"


@dataclass(frozen=True)
class ToolCall:
    id: str
    function_name: str
    arguments: str   # raw JSON text as returned by the provider


@dataclass
class ChatResult:
    finish_reason: Optional[str]
    content: Optional[str] = None
    tool_calls: List[ToolCall] = field(default_factory=list)
    model: str = ""


@dataclass(frozen=True)
class FunctionDefinition:
    """A callable function schema: name, description and JSON-schema parameters."""

    name: str
    description: str
    parameters: Dict[str, Any]

    def as_tool(self, strict: bool = True) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
                "strict": strict,
            },
        }


@dataclass(frozen=True)
class PromptDefinition:
    """
    One tool-constrained instruction set. Registered once as an assistant and
    reused across runs.
    """

    name: str
    description: str
    system_prompt: str
    function: FunctionDefinition
    model: Optional[str] = None


@dataclass(frozen=True)
class LlmResult(Generic[T]):
    """The primary data of an LLM interaction plus the conversation it belongs to."""

    data: T
    conversation_id: str


# ── Transcription ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Transcript:
    text: str
    segment_count: int = 0
    word_count: int = 0


@dataclass(frozen=True)
class AudioInput:
    """Raw audio payload plus the metadata an upload carries."""

    content: bytes
    content_type: Optional[str]
    file_name: Optional[str] = None

    @property
    def length(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class AudioTranscriptionResult:
    transcript: str
    audio_file_name: str
    transcript_file_name: str
    timestamp: str
    message: str = "Audio file processed and transcript stored successfully"


# ── Assistant runs ─────────────────────────────────────────────────────────────

class RunStatus:
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    INCOMPLETE = "incomplete"

    TERMINAL = frozenset({COMPLETED, FAILED, CANCELLED, EXPIRED, INCOMPLETE})

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL


@dataclass(frozen=True)
class RunState:
    id: str
    thread_id: str
    status: str
    required_tool_calls: List[ToolCall] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return RunStatus.is_terminal(self.status)

    @property
    def required_tool_call_ids(self) -> List[str]:
        return [tc.id for tc in self.required_tool_calls]


@dataclass(frozen=True)
class ToolOutput:
    tool_call_id: str
    output: str

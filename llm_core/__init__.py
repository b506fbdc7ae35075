"""
LLM orchestration core: conversation-aware completions, function calling,
assistant runs with tool-output buffering, and audio transcription, all on
top of a uniform retry policy.
"""

from llm_core.container import LlmCore, build_core
from llm_core.pipeline.facade import AudioPrompt, CompletionResult, TextPrompt

__version__ = "1.0.0"

__all__ = ["AudioPrompt", "CompletionResult", "LlmCore", "TextPrompt", "build_core"]

"""
Assistant Adapter: OpenAI Assistants API
========================================
Thin translation layer over the beta assistants/threads/runs endpoints.
Runs are returned as RunState snapshots carrying the tool calls the run is
currently waiting on.
"""

from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from llm_core.adapters.base import AssistantProvider
from llm_core.config import get_settings
from llm_core.core.logging import get_logger
from llm_core.models import RunState, ToolCall, ToolOutput

logger = get_logger(__name__)


def _to_run_state(run: Any) -> RunState:
    required: List[ToolCall] = []
    action = getattr(run, "required_action", None)
    if action is not None and action.submit_tool_outputs is not None:
        required = [
            ToolCall(id=tc.id, function_name=tc.function.name, arguments=tc.function.arguments)
            for tc in action.submit_tool_outputs.tool_calls
        ]
    return RunState(id=run.id, thread_id=run.thread_id, status=run.status, required_tool_calls=required)


class OpenAIAssistants(AssistantProvider):
    def __init__(self, client: Optional[AsyncOpenAI] = None) -> None:
        settings = get_settings()
        self._client = client or AsyncOpenAI(api_key=settings.openai_api_key)

    async def create_assistant(
        self,
        model: str,
        name: str,
        description: str,
        instructions: str,
        tools: List[Dict[str, Any]],
    ) -> str:
        assistant = await self._client.beta.assistants.create(
            model=model,
            name=name,
            description=description,
            instructions=instructions,
            tools=tools,  # type: ignore[arg-type]
        )
        return assistant.id

    async def delete_assistant(self, assistant_id: str) -> None:
        await self._client.beta.assistants.delete(assistant_id)

    async def create_thread(self) -> str:
        thread = await self._client.beta.threads.create()
        return thread.id

    async def delete_thread(self, thread_id: str) -> None:
        await self._client.beta.threads.delete(thread_id)

    async def create_message(self, thread_id: str, content: str, role: str = "user") -> None:
        await self._client.beta.threads.messages.create(
            thread_id,
            role=role,  # type: ignore[arg-type]
            content=content,
        )

    async def create_run(
        self,
        thread_id: str,
        assistant_id: str,
        tool_choice: str,
        parallel_tool_calls: bool,
    ) -> RunState:
        run = await self._client.beta.threads.runs.create(
            thread_id=thread_id,
            assistant_id=assistant_id,
            tool_choice=tool_choice,  # type: ignore[arg-type]
            parallel_tool_calls=parallel_tool_calls,
        )
        return _to_run_state(run)

    async def retrieve_run(self, thread_id: str, run_id: str) -> RunState:
        run = await self._client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)
        return _to_run_state(run)

    async def cancel_run(self, thread_id: str, run_id: str) -> RunState:
        run = await self._client.beta.threads.runs.cancel(run_id, thread_id=thread_id)
        return _to_run_state(run)

    async def submit_tool_outputs(self, thread_id: str, run_id: str, tool_outputs: List[ToolOutput]) -> RunState:
        logger.debug(
            "Submitting tool outputs",
            extra={"run_id": run_id, "thread_id": thread_id, "count": len(tool_outputs)},
        )
        run = await self._client.beta.threads.runs.submit_tool_outputs(
            run_id,
            thread_id=thread_id,
            tool_outputs=[{"tool_call_id": to.tool_call_id, "output": to.output} for to in tool_outputs],
        )
        return _to_run_state(run)

"""
Assistant Run Orchestrator
==========================
Drives the multi-step assistant protocol:

    create assistant → create thread → post message → create run
        → poll run → resolve required tool calls → submit tool outputs
        → terminal state

Design
------
- Every provider call goes through the shared RetryExecutor.
- Runs are created with parallel tool calls disabled, so normally at most one
  tool call is pending at a time.
- Tool outputs are collected in a ToolOutputBuffer owned by this instance.
  Only outputs whose IDs the run currently requires are submitted; the rest
  stay buffered in case the run asks for them on a later poll.
- A run's buffer is discarded once the run is seen in a terminal state and
  whenever cancellation is attempted.
- The buffer is not locked. Callers serialize submissions for the same run;
  different runs are independent.
- Deleting assistants/threads and cancelling runs are best-effort cleanup:
  failures are logged, not raised.
"""

from typing import Dict, List, Optional, Set, Tuple, Type, TypeVar

from pydantic import TypeAdapter

from llm_core.adapters.base import AssistantProvider
from llm_core.core.errors import ConfigurationMissingError, ProtocolViolationError
from llm_core.core.logging import get_logger
from llm_core.core.retry import RetryExecutor
from llm_core.models import PromptDefinition, RunState, RunStatus, ToolCall, ToolOutput

logger = get_logger(__name__)

T = TypeVar("T")

RUN_ALREADY_COMPLETE = "Run is already complete."
RUN_CANCEL_FAILED = "Failed to cancel run."


class ToolOutputBuffer:
    """Per-run accumulation of tool outputs awaiting submission, one per tool_call_id."""

    def __init__(self) -> None:
        self._outputs: Dict[str, Dict[str, ToolOutput]] = {}

    def __contains__(self, run_id: str) -> bool:
        return run_id in self._outputs

    def __len__(self) -> int:
        return len(self._outputs)

    def ensure(self, run_id: str) -> Dict[str, ToolOutput]:
        return self._outputs.setdefault(run_id, {})

    def add(self, run_id: str, tool_call_id: str, output: str) -> None:
        # A re-added ID replaces its earlier output and keeps its position
        self.ensure(run_id)[tool_call_id] = ToolOutput(tool_call_id=tool_call_id, output=output)

    def get(self, run_id: str) -> List[ToolOutput]:
        return list(self._outputs.get(run_id, {}).values())

    def required_subset(self, run_id: str, required_ids: Set[str]) -> List[ToolOutput]:
        return [to for to in self._outputs.get(run_id, {}).values() if to.tool_call_id in required_ids]

    def discard(self, run_id: str) -> None:
        self._outputs.pop(run_id, None)


class AssistantRunOrchestrator:
    def __init__(
        self,
        provider: Optional[AssistantProvider],
        retry: RetryExecutor,
        model: str,
        buffer: Optional[ToolOutputBuffer] = None,
        retry_attempts: Optional[int] = None,
    ) -> None:
        self._provider = provider
        self._retry = retry
        self._model = model
        self._buffer = buffer if buffer is not None else ToolOutputBuffer()
        self._retry_attempts = retry_attempts

    @property
    def buffer(self) -> ToolOutputBuffer:
        return self._buffer

    # ── Assistant / thread lifecycle ───────────────────────────────────────────

    async def create_assistant(self, prompt: PromptDefinition) -> str:
        provider = self._require_provider()
        tool = prompt.function.as_tool(strict=True)
        try:
            assistant_id = await self._call(
                lambda: provider.create_assistant(
                    model=prompt.model or self._model,
                    name=prompt.name,
                    description=prompt.description,
                    instructions=prompt.system_prompt,
                    tools=[tool],
                ),
                "create_assistant",
            )
        except Exception:
            logger.exception("Error occurred while creating assistant", extra={"assistant_name": prompt.name})
            raise
        logger.info("Assistant created", extra={"assistant_id": assistant_id, "assistant_name": prompt.name})
        return assistant_id

    async def create_thread(self) -> str:
        provider = self._require_provider()
        try:
            return await self._call(provider.create_thread, "create_thread")
        except Exception:
            logger.exception("Error occurred while creating thread")
            raise

    async def create_message(self, thread_id: str, content: str, role: str = "user") -> None:
        provider = self._require_provider()
        logger.info("Creating message", extra={"thread_id": thread_id, "role": role, "content": content})
        try:
            await self._call(lambda: provider.create_message(thread_id, content, role), "create_message")
        except Exception:
            logger.exception("Error occurred while creating message", extra={"thread_id": thread_id})
            raise

    async def delete_assistant(self, assistant_id: str) -> None:
        provider = self._require_provider()
        try:
            await self._call(lambda: provider.delete_assistant(assistant_id), "delete_assistant")
        except Exception:
            logger.exception("Error occurred while deleting assistant", extra={"assistant_id": assistant_id})

    async def delete_thread(self, thread_id: str) -> None:
        provider = self._require_provider()
        try:
            await self._call(lambda: provider.delete_thread(thread_id), "delete_thread")
        except Exception:
            logger.exception("Error occurred while deleting thread", extra={"thread_id": thread_id})

    # ── Runs ───────────────────────────────────────────────────────────────────

    async def create_run(self, thread_id: str, assistant_id: str, require_tool: bool = True) -> str:
        provider = self._require_provider()
        try:
            run = await self._call(
                lambda: provider.create_run(
                    thread_id,
                    assistant_id,
                    tool_choice="required" if require_tool else "none",
                    parallel_tool_calls=False,
                ),
                "create_run",
            )
        except Exception:
            logger.exception(
                "Error occurred while creating run",
                extra={"thread_id": thread_id, "assistant_id": assistant_id},
            )
            raise
        logger.info("Run created", extra={"run_id": run.id, "thread_id": thread_id, "status": run.status})
        return run.id

    async def get_run(self, thread_id: str, run_id: str) -> Tuple[bool, str]:
        """Poll a run. Returns (is_terminal, status) and drops the run's buffer once terminal."""
        run = await self._retrieve_run(thread_id, run_id)
        if run.is_terminal:
            self._buffer.discard(run_id)
        return run.is_terminal, run.status

    async def cancel_run(self, thread_id: str, run_id: str) -> str:
        provider = self._require_provider()
        logger.info("Cancelling run", extra={"run_id": run_id, "thread_id": thread_id})
        try:
            is_terminal, _ = await self.get_run(thread_id, run_id)
            if is_terminal:
                return RUN_ALREADY_COMPLETE

            run = await self._call(lambda: provider.cancel_run(thread_id, run_id), "cancel_run")
            return run.status
        except Exception:
            logger.exception(
                "Error occurred while cancelling run",
                extra={"run_id": run_id, "thread_id": thread_id},
            )
            return RUN_CANCEL_FAILED
        finally:
            self._buffer.discard(run_id)

    # ── Tool calls ─────────────────────────────────────────────────────────────

    async def get_run_action(
        self,
        thread_id: str,
        run_id: str,
        function_name: str,
        result_type: Type[T],
    ) -> Tuple[str, T]:
        """
        Return (tool_call_id, typed arguments) of the pending call to `function_name`.

        The whole lookup is retried: a caller may ask before the run has
        transitioned into requires_action.
        """
        provider = self._require_provider()

        async def attempt() -> Tuple[str, T]:
            try:
                run = await provider.retrieve_run(thread_id, run_id)
                action = self._matching_action(run, function_name, log_plurality=True)
                self._buffer.ensure(run_id)
                return action.id, TypeAdapter(result_type).validate_json(action.arguments)
            except Exception:
                logger.exception(
                    "Error occurred while getting run action",
                    extra={"run_id": run_id, "thread_id": thread_id, "function": function_name},
                )
                raise

        return await self._call(attempt, "get_run_action")

    async def get_tool_call_id(self, thread_id: str, run_id: str, function_name: str) -> str:
        run = await self._retrieve_run(thread_id, run_id)
        try:
            return self._matching_action(run, function_name).id
        except ProtocolViolationError:
            logger.exception("Error occurred while getting tool call ID", extra={"run_id": run_id})
            raise

    async def submit_tool_output(self, thread_id: str, run_id: str, tool_call_id: str, output: str) -> None:
        provider = self._require_provider()
        logger.info(
            "Submitting tool output",
            extra={"run_id": run_id, "thread_id": thread_id, "tool_call_id": tool_call_id, "output": output},
        )
        try:
            run = await self._retrieve_run(thread_id, run_id)
            required_ids = set(run.required_tool_call_ids)

            # Buffered outputs survive until the run requires them
            self._buffer.add(run_id, tool_call_id, output)
            to_submit = self._buffer.required_subset(run_id, required_ids)
            if not to_submit:
                raise ProtocolViolationError(
                    f"Run {run_id} (status {run.status}) requires none of the buffered tool calls"
                )

            await self._call(lambda: provider.submit_tool_outputs(thread_id, run_id, to_submit), "submit_tool_outputs")
        except Exception:
            logger.exception(
                "Error occurred while submitting tool outputs",
                extra={"run_id": run_id, "thread_id": thread_id},
            )
            raise

    # ── Private helpers ────────────────────────────────────────────────────────

    @staticmethod
    def _matching_action(run: RunState, function_name: str, log_plurality: bool = False) -> ToolCall:
        if run.status != RunStatus.REQUIRES_ACTION:
            raise ProtocolViolationError(f"Run status is {run.status}, expected {RunStatus.REQUIRES_ACTION}")

        if log_plurality and len(run.required_tool_calls) > 1:
            logger.warning("Multiple actions found for run", extra={"run_id": run.id})
            for tool_call in run.required_tool_calls:
                logger.warning(
                    "Required action",
                    extra={
                        "run_id": run.id,
                        "tool_call_id": tool_call.id,
                        "function": tool_call.function_name,
                        "arguments": tool_call.arguments,
                    },
                )

        action = next((tc for tc in run.required_tool_calls if tc.function_name == function_name), None)
        if action is None:
            raise ProtocolViolationError(f"No action found for function {function_name}")
        return action

    async def _retrieve_run(self, thread_id: str, run_id: str) -> RunState:
        provider = self._require_provider()
        try:
            return await self._call(lambda: provider.retrieve_run(thread_id, run_id), "retrieve_run")
        except Exception:
            logger.exception(
                "Error occurred while getting run",
                extra={"run_id": run_id, "thread_id": thread_id},
            )
            raise

    async def _call(self, operation, label: str):
        return await self._retry.execute(operation, max_attempts=self._retry_attempts, label=label)

    def _require_provider(self) -> AssistantProvider:
        if self._provider is None:
            raise ConfigurationMissingError("Settings", "openai_api_key")
        return self._provider

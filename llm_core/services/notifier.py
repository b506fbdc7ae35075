"""
Error Notifier
==============
Side channel that tells operators about failures. Notification never replaces
error propagation: callers notify and then re-raise.

- ErrorNotifier is the interface boundary.
- LoggingErrorNotifier is the default and only writes a structured log record.
- WebhookErrorNotifier POSTs a JSON payload to a configured URL and owns
  its HTTP client unless one is injected.
- notify_safely() is what callers use; a failing notifier is logged and never
  masks the original error.
"""

import traceback
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

import httpx

from llm_core.core.logging import get_logger

logger = get_logger(__name__)


class ErrorNotifier(ABC):
    @abstractmethod
    async def notify_error(
        self,
        stage: str,
        error: BaseException,
        source_component: str,
        context: Optional[Dict[str, str]] = None,
    ) -> None:
        ...

    async def close(self) -> None:
        """Release any resources held by the notifier."""


class LoggingErrorNotifier(ErrorNotifier):
    async def notify_error(
        self,
        stage: str,
        error: BaseException,
        source_component: str,
        context: Optional[Dict[str, str]] = None,
    ) -> None:
        logger.error(
            f"{stage} failed in {source_component}",
            extra={
                "stage": stage,
                "source_component": source_component,
                "error_type": type(error).__name__,
                "error": str(error),
                "context": context or {},
            },
        )


class WebhookErrorNotifier(ErrorNotifier):
    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not url:
            raise ValueError("url must be provided")
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def close(self) -> None:
        """Close the HTTP client when it was created here; injected clients belong to the caller."""
        if self._owns_client:
            await self._client.aclose()

    async def notify_error(
        self,
        stage: str,
        error: BaseException,
        source_component: str,
        context: Optional[Dict[str, str]] = None,
    ) -> None:
        payload = {
            "stage": stage,
            "source_component": source_component,
            "error_type": type(error).__name__,
            "error": str(error),
            "stack_trace": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            "context": context or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        resp = await self._client.post(self._url, json=payload)
        resp.raise_for_status()
        logger.info("Error notification delivered", extra={"stage": stage, "status_code": resp.status_code})


async def notify_safely(
    notifier: Optional[ErrorNotifier],
    stage: str,
    error: BaseException,
    source_component: str,
    context: Optional[Dict[str, str]] = None,
) -> None:
    if notifier is None:
        return
    try:
        await notifier.notify_error(stage, error, source_component, context)
    except Exception as exc:
        logger.warning(
            "Error notifier failed",
            extra={"stage": stage, "notifier_error": str(exc)},
        )

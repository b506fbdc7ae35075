"""
Per-request stage timings for the prompt facade.

A LatencyReport collects the elapsed time of each stage (transcription,
completion) and the error type of the stage that failed, if any. The report
is logged once per request, on success and failure alike, so slow providers
and the stage that broke a request show up in the same record.
"""

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional

from llm_core.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class LatencyReport:
    scope_id: str
    request_id: str
    source_type: str = ""
    stages: Dict[str, float] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)

    def record(self, stage: str, elapsed_ms: float, error: Optional[BaseException] = None) -> None:
        self.stages[stage] = round(elapsed_ms, 2)
        if error is not None:
            self.failures[stage] = type(error).__name__

    @property
    def total_ms(self) -> float:
        return round(sum(self.stages.values()), 2)

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def log(self) -> None:
        extra = {
            "scope_id": self.scope_id,
            "request_id": self.request_id,
            "source_type": self.source_type,
            **{f"latency_{k}_ms": v for k, v in self.stages.items()},
            "latency_total_ms": self.total_ms,
        }
        if self.succeeded:
            logger.info("Prompt completion latency report", extra=extra)
        else:
            logger.warning(
                "Prompt completion failed",
                extra={**extra, "failed_stages": dict(self.failures)},
            )


@asynccontextmanager
async def measure(report: LatencyReport, stage: str) -> AsyncIterator[None]:
    """Time one stage; a failing stage is recorded with its error type and the error re-raised."""
    t0 = time.perf_counter()
    error: Optional[BaseException] = None
    try:
        yield
    except BaseException as exc:
        error = exc
        raise
    finally:
        elapsed = (time.perf_counter() - t0) * 1000
        report.record(stage, elapsed, error)
        logger.debug(
            f"Stage '{stage}' {'failed' if error else 'finished'}",
            extra={
                "scope_id": report.scope_id,
                "request_id": report.request_id,
                "stage": stage,
                "elapsed_ms": round(elapsed, 2),
            },
        )

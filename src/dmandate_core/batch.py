"""Batch runner: executes the due subset of one scan, one mandate at a time."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from .executor import PaymentExecutor
from .logging_config import LogContext, generate_pass_id
from .models import FailureReason, Mandate, OutcomeKind, PaymentOutcome
from .payability import check_buffer, select_due

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchFailure:
    mandate: str
    reason: FailureReason
    detail: Optional[str] = None


@dataclass
class BatchResult:
    """Aggregated result of one pass."""
    pass_id: str
    total: int = 0
    due: int = 0
    attempted: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[BatchFailure] = field(default_factory=list)
    outcomes: list[PaymentOutcome] = field(default_factory=list)
    interrupted: bool = False
    started_at: float = field(default_factory=time.monotonic)
    finished_at: Optional[float] = None

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    def record(self, outcome: PaymentOutcome) -> None:
        self.attempted += 1
        self.outcomes.append(outcome)
        if outcome.kind == OutcomeKind.SUCCESS:
            self.succeeded += 1
        elif outcome.kind == OutcomeKind.SKIPPED_NOT_YET_DUE:
            self.skipped += 1
        else:
            self.failed += 1
            self.failures.append(
                BatchFailure(
                    mandate=str(outcome.mandate),
                    reason=outcome.reason or FailureReason.UNCLASSIFIED,
                    detail=outcome.detail,
                )
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "pass_id": self.pass_id,
            "total": self.total,
            "due": self.due,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "interrupted": self.interrupted,
            "duration_seconds": round(self.duration_seconds, 3),
            "failures": [
                {"mandate": f.mandate, "reason": f.reason.value, "detail": f.detail}
                for f in self.failures
            ],
        }


class BatchRunner:
    """Caps the due subset to ``batch_size`` and pays it sequentially.

    Items are taken in enumeration order with no prioritization. A fixed
    pacing delay separates two submissions; the delay is cut short when the
    stop event is set.
    """

    def __init__(
        self,
        executor: PaymentExecutor,
        *,
        batch_size: int = 100,
        buffer_seconds: int = 60,
        pacing_delay: float = 0.5,
        clock: Callable[[], float] = time.time,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        check_buffer(buffer_seconds)
        self._executor = executor
        self.batch_size = batch_size
        self.buffer_seconds = buffer_seconds
        self.pacing_delay = pacing_delay
        self._clock = clock

    async def run_pass(
        self,
        mandates: Sequence[Mandate],
        stop_event: Optional[asyncio.Event] = None,
        pass_id: Optional[str] = None,
    ) -> BatchResult:
        result = BatchResult(pass_id=pass_id or generate_pass_id(), total=len(mandates))
        with LogContext(pass_id=result.pass_id):
            now = int(self._clock())
            due = select_due(mandates, now, self.buffer_seconds)
            result.due = len(due)
            batch = due[: self.batch_size]

            if not batch:
                logger.info("No payable mandates (%d scanned)", result.total)
            else:
                logger.info(
                    "Processing %d of %d payable mandates (%d scanned)",
                    len(batch),
                    result.due,
                    result.total,
                )

            for index, mandate in enumerate(batch):
                if stop_event is not None and stop_event.is_set():
                    result.interrupted = True
                    logger.info("Stop requested; %d mandates left for a later pass", len(batch) - index)
                    break

                with LogContext(mandate=str(mandate.address)):
                    result.record(await self._execute_isolated(mandate))

                if index < len(batch) - 1 and await self._pace(stop_event):
                    result.interrupted = True
                    logger.info(
                        "Stop requested; %d mandates left for a later pass",
                        len(batch) - index - 1,
                    )
                    break

            result.finished_at = time.monotonic()
            logger.info(
                "Pass complete: %d succeeded, %d skipped, %d failed in %.2fs",
                result.succeeded,
                result.skipped,
                result.failed,
                result.duration_seconds,
            )
        return result

    async def _execute_isolated(self, mandate: Mandate) -> PaymentOutcome:
        try:
            return await self._executor.execute(mandate)
        except Exception as e:
            logger.exception("Unexpected error processing mandate %s", mandate.address)
            return PaymentOutcome.failed(mandate, FailureReason.UNCLASSIFIED, str(e))

    async def _pace(self, stop_event: Optional[asyncio.Event]) -> bool:
        """Wait the pacing delay. Returns True if the stop event fired."""
        if stop_event is None:
            if self.pacing_delay > 0:
                await asyncio.sleep(self.pacing_delay)
            return False
        if stop_event.is_set():
            return True
        if self.pacing_delay <= 0:
            return False
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self.pacing_delay)
        except asyncio.TimeoutError:
            return False
        return True

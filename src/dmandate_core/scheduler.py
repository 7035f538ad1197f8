"""Scheduler loop for the mandate payment processor.

Lifecycle: STOPPED -> RUNNING -> STOPPING -> STOPPED.

Passes never overlap. The interval loop awaits each pass before arming the
next tick, and ticks that elapsed while a pass ran are dropped rather than
queued. ``run_once`` shares the same lock, so a manual trigger during a pass
is skipped.
"""
from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Optional

from .batch import BatchResult, BatchRunner
from .exceptions import DMandateException, LedgerError, SchedulerStartupError
from .gateway import LedgerGateway
from .logging_config import LogContext, generate_pass_id
from .notifications import PaymentNotifier

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


class MandateScheduler:
    """Periodically scans the ledger and pays every due mandate."""

    def __init__(
        self,
        gateway: LedgerGateway,
        runner: BatchRunner,
        *,
        interval_seconds: float = 60.0,
        notifier: Optional[PaymentNotifier] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._gateway = gateway
        self._runner = runner
        self._interval = interval_seconds
        self._notifier = notifier

        self._state = SchedulerState.STOPPED
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._stopped = asyncio.Event()
        self._stopped.set()
        self._loop_task: Optional[asyncio.Task] = None
        self._stop_task: Optional[asyncio.Task] = None

        self.passes_completed = 0
        self.passes_skipped = 0
        self.last_result: Optional[BatchResult] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    @property
    def pass_in_progress(self) -> bool:
        return self._lock.locked()

    async def start(self) -> None:
        """Connect, run one immediate pass, then arm the interval loop.

        Raises:
            SchedulerStartupError: the gateway could not connect; the
                scheduler stays STOPPED.
        """
        if self._state != SchedulerState.STOPPED:
            logger.warning("Scheduler already %s", self._state.value)
            return

        logger.info("Starting mandate scheduler (interval %.1fs)", self._interval)
        try:
            await self._gateway.connect()
        except DMandateException as e:
            logger.error("Scheduler startup failed: %s", e.message)
            raise SchedulerStartupError(
                f"Scheduler startup failed: {e.message}",
                details={"cause": e.error_code, **e.details},
            ) from e

        self._stop_event = asyncio.Event()
        self._stopped.clear()
        self._stop_task = None
        self._state = SchedulerState.RUNNING
        logger.info("Scheduler running as %s", self._gateway.signer)

        await self.run_once()

        if self._state == SchedulerState.RUNNING:
            self._loop_task = asyncio.create_task(self._run_loop())

    async def run_once(self) -> Optional[BatchResult]:
        """Run one pass now. Returns None if skipped or the scan failed."""
        if self._state != SchedulerState.RUNNING:
            logger.warning("Scheduler is %s; pass not started", self._state.value)
            return None
        if self._lock.locked():
            self.passes_skipped += 1
            logger.info("Previous pass still in progress; skipping this tick")
            return None

        async with self._lock:
            pass_id = generate_pass_id()
            with LogContext(pass_id=pass_id):
                try:
                    mandates = await self._gateway.list_mandates()
                except LedgerError as e:
                    logger.error("Failed to fetch mandates: %s", e.message)
                    return None
                except Exception:
                    logger.exception("Failed to fetch mandates")
                    return None
                try:
                    result = await self._runner.run_pass(
                        mandates, self._stop_event, pass_id=pass_id
                    )
                except Exception:
                    logger.exception("Pass failed")
                    return None
            self.passes_completed += 1
            self.last_result = result
            return result

    async def _run_loop(self) -> None:
        next_tick = time.monotonic() + self._interval
        while not self._stop_event.is_set():
            delay = max(0.0, next_tick - time.monotonic())
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass

            await self.run_once()

            next_tick += self._interval
            now = time.monotonic()
            if next_tick <= now:
                missed = int((now - next_tick) // self._interval) + 1
                self.passes_skipped += missed
                logger.warning("Pass overran the interval; dropping %d tick(s)", missed)
                next_tick += missed * self._interval

    async def stop(self) -> None:
        """Stop the scheduler. Idempotent; concurrent callers share one shutdown."""
        if self._state == SchedulerState.STOPPED and self._stop_task is None:
            return
        if self._stop_task is None:
            self._stop_task = asyncio.create_task(self._shutdown())
        await asyncio.shield(self._stop_task)

    async def _shutdown(self) -> None:
        self._state = SchedulerState.STOPPING
        logger.info("Stopping scheduler")
        self._stop_event.set()

        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None

        # A pass started by start() or run_once() finishes its current item
        async with self._lock:
            pass

        try:
            await self._gateway.close()
        except Exception as e:
            logger.warning("Error closing ledger gateway: %s", e)
        if self._notifier is not None:
            await self._notifier.aclose()

        self._state = SchedulerState.STOPPED
        self._stopped.set()
        logger.info(
            "Scheduler stopped after %d passes (%d skipped)",
            self.passes_completed,
            self.passes_skipped,
        )

    async def wait_stopped(self) -> None:
        """Block until the scheduler reaches STOPPED."""
        await self._stopped.wait()

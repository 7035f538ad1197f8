"""Process entry point for the mandate payment processor.

Wires settings, logging, gateway, executor, batch runner and scheduler, then
runs until SIGINT/SIGTERM. Exit code 0 after a clean stop, 1 when the
configuration is invalid or startup fails.
"""
from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional

from .batch import BatchRunner
from .config import ProcessorSettings, build_settings
from .exceptions import ConfigurationError, SchedulerStartupError
from .executor import PaymentExecutor
from .gateway import LedgerGateway, SolanaLedgerGateway
from .logging_config import setup_logging
from .notifications import LogNotifier, PaymentNotifier, WebhookNotifier
from .scheduler import MandateScheduler

logger = logging.getLogger(__name__)


def build_notifier(settings: ProcessorSettings) -> Optional[PaymentNotifier]:
    if not settings.enable_notifications:
        return None
    if settings.notification_webhook_url:
        return WebhookNotifier(
            settings.notification_webhook_url,
            secret=settings.notification_webhook_secret,
        )
    return LogNotifier()


def build_scheduler(
    settings: ProcessorSettings,
    gateway: Optional[LedgerGateway] = None,
) -> MandateScheduler:
    """Construct the service objects once and inject them into the scheduler."""
    gateway = gateway or SolanaLedgerGateway.from_settings(settings)
    notifier = build_notifier(settings)
    executor = PaymentExecutor(gateway, notifier=notifier)
    runner = BatchRunner(
        executor,
        batch_size=settings.batch_size,
        buffer_seconds=settings.buffer_seconds,
        pacing_delay=settings.pacing_delay_seconds,
    )
    return MandateScheduler(
        gateway,
        runner,
        interval_seconds=settings.check_interval_seconds,
        notifier=notifier,
    )


async def run(settings: ProcessorSettings, scheduler: Optional[MandateScheduler] = None) -> int:
    """Run the scheduler until a termination signal arrives."""
    scheduler = scheduler or build_scheduler(settings)
    loop = asyncio.get_running_loop()
    stop_tasks: list[asyncio.Task] = []

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received signal %s", sig.name)
        stop_tasks.append(loop.create_task(scheduler.stop()))

    signals = (signal.SIGTERM, signal.SIGINT) if sys.platform != "win32" else ()
    for sig in signals:
        loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    try:
        try:
            await scheduler.start()
        except SchedulerStartupError as e:
            logger.error("Mandate processor failed to start: %s", e.message)
            return 1

        logger.info(
            "Mandate processor started (program %s, batch size %d, buffer %ds)",
            settings.program_id,
            settings.batch_size,
            settings.buffer_seconds,
        )
        if stop_tasks:
            # Signal arrived while connecting
            await scheduler.stop()
        await scheduler.wait_stopped()
        logger.info("Mandate processor exited cleanly")
        return 0
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)


def main() -> int:
    try:
        settings = build_settings()
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 1

    setup_logging(
        level=settings.log_level,
        json_format=settings.log_json,
        log_file=settings.log_file,
    )
    try:
        return asyncio.run(run(settings))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())

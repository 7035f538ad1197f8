"""Payability filter: decides which mandates are due for payment."""
from __future__ import annotations

from typing import Iterable

from .exceptions import ConfigurationError
from .models import Mandate


def check_buffer(buffer_seconds: int) -> None:
    if buffer_seconds < 0:
        raise ConfigurationError(
            f"buffer_seconds must be non-negative, got {buffer_seconds}",
            setting="buffer_seconds",
        )


def is_payable(mandate: Mandate, now: int, buffer_seconds: int) -> bool:
    """True iff the mandate is active and due within the buffer window.

    ``now`` and ``next_payout`` are epoch seconds. The boundary
    ``now + buffer_seconds == next_payout`` counts as due. The buffer only
    widens the window on the scheduler side; the program still rejects early
    payments with PaymentTooEarly.
    """
    check_buffer(buffer_seconds)
    return mandate.active and now + buffer_seconds >= mandate.next_payout


def select_due(
    mandates: Iterable[Mandate],
    now: int,
    buffer_seconds: int,
) -> list[Mandate]:
    """Filter to payable mandates, preserving enumeration order."""
    check_buffer(buffer_seconds)
    return [m for m in mandates if m.active and now + buffer_seconds >= m.next_payout]

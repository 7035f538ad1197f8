"""Payment notifications.

Notifications are fire-and-forget: a failing delivery is logged and never
changes the outcome of the payment that triggered it.
"""
from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol
from uuid import uuid4

import httpx

from .models import Mandate, PaymentOutcome

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    PAYMENT_EXECUTED = "payment.executed"


@dataclass
class PaymentEvent:
    """A notification about an executed payment."""
    event_type: EventType
    data: dict[str, Any]
    event_id: str = field(default_factory=lambda: f"evt_{uuid4().hex[:16]}")
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.event_id,
            "type": self.event_type.value,
            "data": self.data,
            "created_at": self.created_at.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


def create_payment_event(mandate: Mandate, outcome: PaymentOutcome) -> PaymentEvent:
    """Build the payment.executed event for a successful outcome."""
    return PaymentEvent(
        event_type=EventType.PAYMENT_EXECUTED,
        data={
            "mandate": str(mandate.address),
            "payer": str(mandate.payer),
            "payee": str(mandate.payee),
            "token": str(mandate.token),
            "amount": mandate.amount,
            "name": mandate.name,
            "payment_number": outcome.payment_number,
            "transaction_ref": outcome.transaction_ref,
            "payment_record": str(outcome.payment_record) if outcome.payment_record else None,
        },
    )


class PaymentNotifier(Protocol):
    def notify(self, event: PaymentEvent) -> None: ...

    async def aclose(self) -> None: ...


class LogNotifier:
    """Writes payment events to the log."""

    def notify(self, event: PaymentEvent) -> None:
        logger.info(
            "Notification %s: %s #%s paid (%s)",
            event.event_type.value,
            event.data.get("mandate"),
            event.data.get("payment_number"),
            event.data.get("transaction_ref"),
        )

    async def aclose(self) -> None:
        return None


def sign_payload(payload: str, secret: str, timestamp: int) -> str:
    """HMAC-SHA256 over "<timestamp>.<payload>", formatted t=<ts>,v1=<hex>."""
    signed_content = f"{timestamp}.{payload}"
    sig = hmac.new(secret.encode(), signed_content.encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={sig}"


def verify_signature(
    payload: str,
    signature: str,
    secret: str,
    tolerance_seconds: int = 300,
    now: Optional[int] = None,
) -> bool:
    """Verify a t=...,v1=... signature, rejecting stale timestamps."""
    parts = {}
    for part in signature.split(","):
        if "=" in part:
            k, v = part.split("=", 1)
            parts[k.strip()] = v.strip()

    ts_str = parts.get("t")
    sig_hex = parts.get("v1")
    if not ts_str or not sig_hex:
        return False
    try:
        ts = int(ts_str)
    except ValueError:
        return False

    current = int(time.time()) if now is None else now
    if abs(current - ts) > tolerance_seconds:
        return False

    expected = sign_payload(payload, secret, ts).split("v1=", 1)[1]
    return hmac.compare_digest(expected, sig_hex)


class WebhookNotifier:
    """Posts signed payment events to a webhook URL.

    Each delivery runs as a background task; ``aclose`` waits for pending
    deliveries before closing the HTTP client.
    """

    DELIVERY_TIMEOUT = 10  # seconds

    def __init__(
        self,
        url: str,
        secret: str = "",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._url = url
        self._secret = secret
        self._http_client = http_client
        self._owns_client = http_client is None
        self._tasks: set[asyncio.Task] = set()

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.DELIVERY_TIMEOUT)
        return self._http_client

    def notify(self, event: PaymentEvent) -> None:
        task = asyncio.create_task(self.deliver(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def deliver(self, event: PaymentEvent) -> bool:
        """Deliver one event. Returns True on a 2xx response."""
        payload = event.to_json()
        timestamp = int(event.created_at.timestamp())
        headers = {
            "Content-Type": "application/json",
            "X-DMandate-Event-Type": event.event_type.value,
            "X-DMandate-Event-ID": event.event_id,
            "X-DMandate-Timestamp": str(timestamp),
        }
        if self._secret:
            headers["X-DMandate-Signature"] = sign_payload(payload, self._secret, timestamp)

        try:
            response = await self._get_client().post(self._url, content=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Webhook delivery of %s failed: %s", event.event_id, e)
            return False

        if response.status_code >= 300:
            logger.warning(
                "Webhook %s returned %d for %s", self._url, response.status_code, event.event_id
            )
            return False
        logger.debug("Delivered %s to %s", event.event_id, self._url)
        return True

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def aclose(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

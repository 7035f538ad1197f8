"""
Tests for payment notifications.

Tests cover:
- Event construction
- HMAC signing / verification
- Webhook delivery via a mock transport
- LogNotifier
"""
from __future__ import annotations

import json
import logging

import httpx
import pytest

from dmandate_core.models import PaymentOutcome
from dmandate_core.notifications import (
    EventType,
    LogNotifier,
    WebhookNotifier,
    create_payment_event,
    sign_payload,
    verify_signature,
)

from ledger_fakes import key, make_mandate

SECRET = "whsec_test"


def make_event():
    m = make_mandate(1, payment_count=2)
    return create_payment_event(m, PaymentOutcome.success(m, "sigABC", key(99)))


class TestEvent:
    def test_payment_event(self):
        event = make_event()
        assert event.event_type == EventType.PAYMENT_EXECUTED
        assert event.event_id.startswith("evt_")
        assert event.data["payment_number"] == 2
        assert event.data["transaction_ref"] == "sigABC"
        assert event.data["payment_record"] == str(key(99))

    def test_to_json(self):
        event = make_event()
        body = json.loads(event.to_json())
        assert body["id"] == event.event_id
        assert body["type"] == "payment.executed"
        assert body["data"]["amount"] == 1_000_000


class TestSignatures:
    def test_format(self):
        signature = sign_payload("{}", SECRET, 1_700_000_000)
        assert signature.startswith("t=1700000000,v1=")
        assert len(signature.split("v1=")[1]) == 64

    def test_verify(self):
        signature = sign_payload('{"a":1}', SECRET, 1_700_000_000)
        assert verify_signature('{"a":1}', signature, SECRET, now=1_700_000_100)

    def test_wrong_secret(self):
        signature = sign_payload("{}", SECRET, 1_700_000_000)
        assert not verify_signature("{}", signature, "other", now=1_700_000_000)

    def test_tampered_payload(self):
        signature = sign_payload('{"a":1}', SECRET, 1_700_000_000)
        assert not verify_signature('{"a":2}', signature, SECRET, now=1_700_000_000)

    def test_stale_timestamp(self):
        signature = sign_payload("{}", SECRET, 1_700_000_000)
        assert not verify_signature("{}", signature, SECRET, now=1_700_000_301)

    @pytest.mark.parametrize("header", ["", "t=abc,v1=00", "v1=00", "t=1700000000"])
    def test_malformed(self, header):
        assert not verify_signature("{}", header, SECRET, now=1_700_000_000)


class TestWebhookNotifier:
    @pytest.mark.asyncio
    async def test_delivery_is_signed(self):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(200)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        notifier = WebhookNotifier("https://hooks.test/dmandate", SECRET, http_client=http)
        event = make_event()

        assert await notifier.deliver(event) is True

        request = received[0]
        payload = request.content.decode()
        assert request.headers["X-DMandate-Event-Type"] == "payment.executed"
        assert request.headers["X-DMandate-Event-ID"] == event.event_id
        timestamp = int(request.headers["X-DMandate-Timestamp"])
        assert verify_signature(
            payload, request.headers["X-DMandate-Signature"], SECRET, now=timestamp
        )
        await http.aclose()

    @pytest.mark.asyncio
    async def test_no_secret_no_signature(self):
        received = []

        def handler(request):
            received.append(request)
            return httpx.Response(204)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        notifier = WebhookNotifier("https://hooks.test/dmandate", http_client=http)

        assert await notifier.deliver(make_event()) is True
        assert "X-DMandate-Signature" not in received[0].headers
        await http.aclose()

    @pytest.mark.asyncio
    async def test_error_status(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        notifier = WebhookNotifier("https://hooks.test/dmandate", SECRET, http_client=http)
        assert await notifier.deliver(make_event()) is False
        await http.aclose()

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        notifier = WebhookNotifier("https://hooks.test/dmandate", SECRET, http_client=http)
        assert await notifier.deliver(make_event()) is False
        await http.aclose()

    @pytest.mark.asyncio
    async def test_notify_runs_in_background_and_aclose_drains(self):
        received = []

        def handler(request):
            received.append(request)
            return httpx.Response(200)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        notifier = WebhookNotifier("https://hooks.test/dmandate", SECRET, http_client=http)

        notifier.notify(make_event())
        notifier.notify(make_event())
        assert notifier.pending == 2

        await notifier.aclose()

        assert len(received) == 2
        assert notifier.pending == 0
        # injected client stays open for its owner
        assert not http.is_closed
        await http.aclose()


class TestLogNotifier:
    @pytest.mark.asyncio
    async def test_logs_event(self, caplog):
        caplog.set_level(logging.INFO, logger="dmandate_core.notifications")
        notifier = LogNotifier()
        notifier.notify(make_event())
        await notifier.aclose()
        assert "payment.executed" in caplog.text
        assert "sigABC" in caplog.text

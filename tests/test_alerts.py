"""Tests for clinician alert creation and webhook delivery."""

import asyncio
import json

import httpx

from api.alerts import AlertManager
from contexts.severity import Severity
from llm.conversation_store import InMemoryAlertStore

WEBHOOK = "https://care-team.example/alerts"


def _manager(handler=None, **kwargs):
    transport = httpx.MockTransport(handler) if handler else None
    return AlertManager(InMemoryAlertStore(), transport=transport, **kwargs)


def test_alert_is_stored_without_webhook():
    manager = _manager()
    alert = asyncio.run(manager.create_alert("p1", Severity.HIGH, "Go to the emergency room."))

    assert alert.severity == "high"
    alerts = asyncio.run(manager.list_alerts("p1"))
    assert [a.id for a in alerts] == [alert.id]
    assert asyncio.run(manager.notify_clinicians(alert)) is False


def test_alert_is_posted_to_webhook():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(202)

    manager = _manager(handler, webhook_url=WEBHOOK, api_key="secret")
    alert = asyncio.run(manager.create_alert("p1", Severity.MEDIUM, "Please consult your oncologist."))

    assert len(seen) == 1
    request = seen[0]
    assert str(request.url) == WEBHOOK
    assert request.headers["X-API-Key"] == "secret"
    body = json.loads(request.content)
    assert body["id"] == alert.id
    assert body["userId"] == "p1"
    assert body["severity"] == "medium"


def test_webhook_rejection_is_logged_not_raised():
    manager = _manager(lambda request: httpx.Response(500, text="boom"), webhook_url=WEBHOOK)
    alert = asyncio.run(manager.create_alert("p1", Severity.HIGH, "urgent"))

    assert asyncio.run(manager.notify_clinicians(alert)) is False
    assert len(asyncio.run(manager.list_alerts("p1"))) == 1


def test_webhook_transport_error_is_logged_not_raised():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    manager = _manager(handler, webhook_url=WEBHOOK)
    alert = asyncio.run(manager.create_alert("p1", Severity.HIGH, "urgent"))

    assert asyncio.run(manager.notify_clinicians(alert)) is False

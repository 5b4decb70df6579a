"""Tests for the Chat API endpoints."""

import pytest


def test_root_endpoint(client):
    resp = client.get("/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["service"] == "RadioCare Patient Support Chat"
    assert "version" in data


def test_health_endpoint(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["services"]["llm"] is False
    assert data["services"]["catalog"] is True


def test_metrics_endpoint(client):
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "radiocare_http_requests_total" in resp.text


def test_chat_without_llm_returns_safe_reply(client):
    """With the LLM disabled the turn still answers with a well-formed reply."""
    resp = client.post("/chat/message", json={"userId": "p1", "message": "Hello"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["severity"] == "low"
    assert data["contextUsed"] == "general_medical"
    assert data["contextName"]
    assert isinstance(data["processingTime"], (int, float))
    assert "hasFollowUp" not in data


def test_chat_with_llm(scripted_client, scripted_provider, drain):
    client = scripted_client(scripted_provider(selection="nutrition_lifestyle", reply="Try soft foods."))
    resp = client.post("/chat/message", json={"userId": "p1", "message": "What should I eat?"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["response"] == "Try soft foods."
    assert data["contextUsed"] == "nutrition_lifestyle"
    assert data["contextName"] == "Nutrition and Lifestyle Guidance"

    drain()
    history = client.get("/chat/history/p1").json()
    assert len(history) == 1
    assert history[0]["user"] == "What should I eat?"
    assert history[0]["bot"] == "Try soft foods."
    assert history[0]["contextUsed"] == "nutrition_lifestyle"


@pytest.mark.parametrize("body", [
    {"message": "Hello"},
    {"userId": "p1"},
    {"userId": "p1", "message": ""},
    {"userId": "p1", "message": "   "},
    {"userId": "", "message": "Hello"},
])
def test_chat_missing_fields(client, body):
    resp = client.post("/chat/message", json=body)
    assert resp.status_code == 400
    assert resp.json()["detail"]["required"] == ["userId", "message"]


def test_chat_long_message(client):
    """Message exceeding max length is rejected with the limit."""
    resp = client.post("/chat/message", json={"userId": "p1", "message": "x" * 2001})
    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["currentLength"] == 2001
    assert detail["maxLength"] == 2000


def test_chat_message_at_limit_is_accepted(client):
    resp = client.post("/chat/message", json={"userId": "p1", "message": "x" * 2000})
    assert resp.status_code == 200


def test_follow_up_over_http(scripted_client, scripted_provider, drain):
    provider = scripted_provider(selection="insurance_coverage", reply="PM-JAY covers radiotherapy.")
    client = scripted_client(provider)

    first = client.post("/chat/message", json={"userId": "p2", "message": "Is Ayushman accepted?"}).json()
    assert first["hasFollowUp"] is True

    second = client.post("/chat/message", json={"userId": "p2", "message": "yes"}).json()
    assert second["contextUsed"] is None
    assert "hasFollowUp" not in second

    third = client.post("/chat/message", json={"userId": "p2", "message": "none"}).json()
    assert "₹5,00,000" in third["response"]
    assert len(provider.reply_calls) == 1

    drain()
    stats = client.get("/chat/context-stats/p2").json()
    assert stats == {"insurance_coverage": 1}

    coverage = client.get("/coverage/p2").json()
    assert coverage["hasCard"] is True
    assert coverage["amountUsed"] == 0
    assert coverage["amountRemaining"] == 500000


def test_history_unknown_user_is_empty(client):
    resp = client.get("/chat/history/nobody")
    assert resp.status_code == 200
    assert resp.json() == []


def test_list_contexts(client):
    resp = client.get("/chat/contexts")
    assert resp.status_code == 200
    contexts = resp.json()
    keys = [c["key"] for c in contexts]
    assert "emotional_support" in keys
    assert "general_medical" in keys
    assert not any(k.startswith("_") for k in keys)
    assert all("system_prompt" not in c for c in contexts)


def test_validate_contexts(client):
    resp = client.get("/chat/validate-contexts")
    assert resp.status_code == 200
    data = resp.json()
    assert data["isValid"] is True
    assert data["errors"] == []
    assert data["contextCount"] == 7


def test_reload_contexts(client):
    resp = client.post("/chat/reload-contexts")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Context templates reloaded successfully"


def test_reload_contexts_failure(client, tmp_path):
    from api.services import get_services

    catalog = get_services().catalog
    catalog.path = tmp_path / "missing.json"
    resp = client.post("/chat/reload-contexts")
    assert resp.status_code == 500
    # the previous catalog stays in service
    assert len(client.get("/chat/contexts").json()) == 7


def test_alerts_listed_newest_first(scripted_client, scripted_provider, drain):
    client = scripted_client(scripted_provider(reply="This sounds urgent, please go to the emergency room."))
    client.post("/chat/message", json={"userId": "p3", "message": "first"})
    client.post("/chat/message", json={"userId": "p3", "message": "second"})
    drain()

    alerts = client.get("/alerts/p3").json()
    assert len(alerts) == 2
    assert all(a["severity"] == "high" for a in alerts)
    assert alerts[0]["date"] >= alerts[1]["date"]
    assert client.get("/alerts/someone-else").json() == []

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from orderbot.config import Settings, get_settings
from orderbot.main import create_app
from orderbot.services.messenger import get_outbox
from orderbot.services.state_store import get_state_store


@pytest.fixture
def test_settings() -> Settings:
    return Settings(openai_api_key="", outbound_webhook_url=None)


@pytest.fixture
def client(test_settings):
    def _get_settings_override():
        return test_settings

    app = create_app()
    app.dependency_overrides[get_settings] = _get_settings_override
    get_state_store().clear()
    get_outbox().clear()
    with TestClient(app) as test_client:
        yield test_client
    get_state_store().clear()
    get_outbox().clear()


def test_health(client: TestClient) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_callback_event_adds_to_cart(client: TestClient) -> None:
    resp = client.post(
        "/api/bot/events",
        json={"userId": "api-user-1", "platform": "whatsapp", "callback": {"kind": "list", "id": "add_1"}},
    )

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["stage"] == "quick_cart_action"
    assert body["action"] == "add_to_cart"
    assert body["source"] == "fast_path"
    assert body["messages"][0]["kind"] == "buttons"
    assert get_outbox().messages_for("api-user-1")


def test_text_event_without_api_key_gets_fallback(client: TestClient) -> None:
    resp = client.post("/api/bot/events", json={"user_id": "api-user-2", "text": "hello"})

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["action"] == "send_text_reply"
    assert body["source"] == "slow_path"
    assert body["stage"] == "initial"


def test_history_keyword_is_fast_path(client: TestClient) -> None:
    resp = client.post("/api/bot/events", json={"user_id": "api-user-3", "text": "show my orders"})

    body = resp.json()
    assert body["action"] == "show_order_history"
    assert body["source"] == "fast_path"


def test_empty_event_is_bad_request(client: TestClient) -> None:
    resp = client.post("/api/bot/events", json={"user_id": "api-user-4", "text": "   "})

    assert resp.status_code == 400
    body = resp.json()
    assert body["meta"]["error"] == {"code": "BAD_REQUEST", "reason": "empty_event"}
    assert body["reply"]["text"]


def test_missing_user_is_validation_error(client: TestClient) -> None:
    resp = client.post("/api/bot/events", json={"text": "menu"})

    assert resp.status_code == 422
    assert resp.json()["meta"]["error"]["reason"] == "request_validation_error"


def test_whatsapp_webhook(client: TestClient) -> None:
    payload = {
        "entry": [
            {
                "changes": [
                    {
                        "value": {
                            "messages": [
                                {
                                    "from": "wa-user",
                                    "type": "interactive",
                                    "interactive": {
                                        "type": "button_reply",
                                        "button_reply": {"id": "view_all_categories", "title": "View Menu"},
                                    },
                                }
                            ]
                        }
                    }
                ]
            }
        ]
    }

    resp = client.post("/api/bot/webhooks/whatsapp", json=payload)

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["processed"] == 1
    assert body["results"][0]["stage"] == "viewing_menu"


def test_messenger_webhook_without_messages(client: TestClient) -> None:
    resp = client.post("/api/bot/webhooks/messenger", json={"object": "page", "entry": []})

    assert resp.status_code == 200
    assert resp.json() == {"processed": 0, "results": []}


def test_metrics_endpoint(client: TestClient) -> None:
    client.post("/api/bot/events", json={"user_id": "api-user-5", "callback": {"id": "GET_STARTED"}})

    resp = client.get("/api/bot/metrics")

    assert resp.status_code == 200
    body = resp.json()
    assert body["turns_total"] >= 1
    assert body["actions"].get("show_welcome_message", 0) >= 1

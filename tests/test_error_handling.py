from __future__ import annotations

from fastapi import HTTPException
from fastapi.testclient import TestClient

from orderbot.main import create_app
from orderbot.routers.events import get_conversation_engine
from orderbot.services.error_handling import map_exception_to_error_code
from orderbot.services.errors import (
    BadRequestError,
    CatalogError,
    MessagingError,
    OrderBotError,
    PersistenceError,
)


class MenuDownEngine:
    async def handle_event(self, event, *, trace_id=None):
        raise CatalogError("menu table unreachable", reason="menu_offline", debug={"table": "foods"})


def test_domain_errors_use_their_code_and_status() -> None:
    assert map_exception_to_error_code(PersistenceError("db", reason="db_down")) == (
        "PERSISTENCE_FAILED",
        "db_down",
        503,
    )
    assert map_exception_to_error_code(CatalogError("menu")) == ("CATALOG_UNAVAILABLE", "menu", 503)
    assert map_exception_to_error_code(MessagingError(reason="delivery_failed"))[2] == 502
    assert map_exception_to_error_code(BadRequestError(reason="empty_event")) == (
        "BAD_REQUEST",
        "empty_event",
        400,
    )


def test_explicit_status_overrides_class_default() -> None:
    exc = OrderBotError("quota", reason="quota_exceeded", http_status=429)

    assert map_exception_to_error_code(exc) == ("INTERNAL_ERROR", "quota_exceeded", 429)


def test_http_and_unknown_errors() -> None:
    assert map_exception_to_error_code(HTTPException(status_code=404, detail="not found")) == (
        "BAD_REQUEST",
        "not found",
        404,
    )
    assert map_exception_to_error_code(HTTPException(status_code=503, detail={"reason": "maintenance"})) == (
        "INTERNAL_ERROR",
        "maintenance",
        503,
    )
    assert map_exception_to_error_code(KeyError("x")) == ("INTERNAL_ERROR", "KeyError", 500)


def test_catalog_error_from_engine_becomes_503() -> None:
    app = create_app()
    app.dependency_overrides[get_conversation_engine] = lambda: MenuDownEngine()

    with TestClient(app) as client:
        resp = client.post("/api/bot/events", json={"user_id": "err-user", "text": "menu"})

    assert resp.status_code == 503
    body = resp.json()
    assert body["meta"]["error"] == {"code": "CATALOG_UNAVAILABLE", "reason": "menu_offline"}
    assert body["meta"]["debug"]["table"] == "foods"
    assert body["meta"]["debug"]["trace_id"]
    assert body["reply"]["text"]

"""Shared pytest fixtures for all tests."""

from __future__ import annotations

import logging
import random

import pytest

from orderbot.config import Settings
from orderbot.models import ConversationState
from orderbot.services.action_registry import ActionRegistry, build_default_registry
from orderbot.services.catalog import InMemoryCatalog
from orderbot.services.dispatcher import ActionDispatcher, HandlerContext
from orderbot.services.messenger import OutboxMessenger
from orderbot.services.order_repository import InMemoryOrderRepository
from orderbot.services.state_store import InMemoryConversationStateStore


@pytest.fixture
def settings() -> Settings:
    """Default settings for tests; no API key keeps the classifier offline."""
    return Settings(openai_api_key="", outbound_webhook_url=None)


@pytest.fixture
def registry() -> ActionRegistry:
    return build_default_registry()


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Seed menu with a deterministic random source."""
    return InMemoryCatalog.from_yaml(rng=random.Random(7))


@pytest.fixture
def orders() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def outbox() -> OutboxMessenger:
    return OutboxMessenger()


@pytest.fixture
def state_store() -> InMemoryConversationStateStore:
    return InMemoryConversationStateStore()


@pytest.fixture
def dispatcher(
    registry: ActionRegistry,
    catalog: InMemoryCatalog,
    orders: InMemoryOrderRepository,
    settings: Settings,
) -> ActionDispatcher:
    return ActionDispatcher(registry=registry, catalog=catalog, orders=orders, settings=settings)


@pytest.fixture
def context(outbox: OutboxMessenger) -> HandlerContext:
    return HandlerContext(
        user_id="user-test",
        platform="whatsapp",
        messenger=outbox,
        log=logging.getLogger("tests"),
    )


@pytest.fixture
def empty_state() -> ConversationState:
    return ConversationState()

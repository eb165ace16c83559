from __future__ import annotations

import logging
from dataclasses import asdict
from functools import lru_cache
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends

from ..config import Settings, get_settings
from ..models import EventResponse, InboundEvent, WebhookResponse
from ..services.action_registry import ActionRegistry, build_default_registry
from ..services.catalog import get_catalog
from ..services.conversation_engine import ConversationEngine, TurnResult, get_conversation_locks
from ..services.dispatcher import ActionDispatcher
from ..services.errors import BadRequestError
from ..services.inbound import parse_messenger_payload, parse_whatsapp_payload
from ..services.intent_classifier import IntentClassifier
from ..services.interaction_resolver import InteractionResolver
from ..services.messenger import BaseMessenger, HttpMessenger, get_outbox
from ..services.metrics import get_metrics_service
from ..services.order_repository import get_order_repository
from ..services.state_store import get_state_store

router = APIRouter(prefix="/api/bot", tags=["bot"])
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_registry() -> ActionRegistry:
    return build_default_registry()


def get_messenger(settings: Settings = Depends(get_settings)) -> BaseMessenger:
    if settings.outbound_webhook_url:
        return HttpMessenger(settings)
    return get_outbox()


def get_intent_classifier(
    settings: Settings = Depends(get_settings),
    registry: ActionRegistry = Depends(get_registry),
) -> IntentClassifier:
    return IntentClassifier(settings, registry)


def get_conversation_engine(
    settings: Settings = Depends(get_settings),
    registry: ActionRegistry = Depends(get_registry),
    classifier: IntentClassifier = Depends(get_intent_classifier),
    messenger: BaseMessenger = Depends(get_messenger),
) -> ConversationEngine:
    dispatcher = ActionDispatcher(
        registry=registry,
        catalog=get_catalog(settings.menu_path),
        orders=get_order_repository(),
        settings=settings,
    )
    return ConversationEngine(
        settings=settings,
        resolver=InteractionResolver(),
        classifier=classifier,
        dispatcher=dispatcher,
        state_store=get_state_store(),
        messenger=messenger,
        locks=get_conversation_locks(),
    )


def _to_response(event: InboundEvent, result: TurnResult) -> EventResponse:
    return EventResponse(
        user_id=event.user_id,
        platform=event.platform,
        stage=str(result.state.stage),
        action=str(result.action_name) if result.action_name else None,
        source=result.source,
        messages=result.messages,
    )


@router.post("/events", response_model=EventResponse)
async def post_event(
    event: InboundEvent,
    engine: ConversationEngine = Depends(get_conversation_engine),
) -> EventResponse:
    if not event.user_id.strip():
        raise BadRequestError(
            "user_id must not be empty",
            reason="empty_user_id",
        )
    if not event.clean_text and event.callback is None:
        raise BadRequestError(
            "event must carry text or a callback",
            reason="empty_event",
        )
    result = await engine.handle_event(event)
    return _to_response(event, result)


async def _process_events(events: List[InboundEvent], engine: ConversationEngine) -> WebhookResponse:
    results: List[EventResponse] = []
    for event in events:
        result = await engine.handle_event(event)
        results.append(_to_response(event, result))
    return WebhookResponse(processed=len(results), results=results)


@router.post("/webhooks/whatsapp", response_model=WebhookResponse)
async def post_whatsapp_webhook(
    payload: Dict[str, Any] = Body(...),
    engine: ConversationEngine = Depends(get_conversation_engine),
) -> WebhookResponse:
    events = parse_whatsapp_payload(payload)
    logger.info("WhatsApp webhook carried %d event(s)", len(events))
    return await _process_events(events, engine)


@router.post("/webhooks/messenger", response_model=WebhookResponse)
async def post_messenger_webhook(
    payload: Dict[str, Any] = Body(...),
    engine: ConversationEngine = Depends(get_conversation_engine),
) -> WebhookResponse:
    events = parse_messenger_payload(payload)
    logger.info("Messenger webhook carried %d event(s)", len(events))
    return await _process_events(events, engine)


@router.get("/metrics")
async def get_metrics() -> Dict[str, Any]:
    return asdict(get_metrics_service().snapshot())

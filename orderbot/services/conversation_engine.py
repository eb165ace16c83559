from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from ..actions import ActionName
from ..config import Settings
from ..models import ConversationState, InboundEvent, OutboundMessage
from ..utils.logging import get_request_logger
from .dispatcher import DEFAULT_TEXT_REPLY, ActionDispatcher, HandlerContext
from .intent_classifier import IntentClassifier
from .interaction_resolver import InteractionResolver
from .messenger import BaseMessenger, TurnMessenger
from .metrics import MetricsService, get_metrics_service
from .state_store import ConversationStateStore

logger = logging.getLogger(__name__)

FAST_PATH = "fast_path"
SLOW_PATH = "slow_path"
NO_INPUT = "no_input"


class ConversationLocks:
    """One asyncio lock per (user, platform); turns of a conversation run one at a time."""

    def __init__(self) -> None:
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    def get(self, user_id: str, platform: str) -> asyncio.Lock:
        return self._locks.setdefault((user_id, platform), asyncio.Lock())

    def __len__(self) -> int:
        return len(self._locks)


_conversation_locks = ConversationLocks()


def get_conversation_locks() -> ConversationLocks:
    return _conversation_locks


@dataclass
class TurnResult:
    state: ConversationState
    trace_id: str
    action_name: Optional[ActionName] = None
    source: str = NO_INPUT
    resolution: Optional[str] = None
    messages: List[OutboundMessage] = field(default_factory=list)
    rejected: bool = False
    failed: bool = False


class ConversationEngine:
    """
    Runs one inbound event through load, resolve, classify, dispatch and save.

    Failures of the state store degrade to a fresh state or an unsaved turn;
    the user always gets an answer.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        resolver: InteractionResolver,
        classifier: IntentClassifier,
        dispatcher: ActionDispatcher,
        state_store: ConversationStateStore,
        messenger: BaseMessenger | None = None,
        metrics: MetricsService | None = None,
        locks: ConversationLocks | None = None,
    ) -> None:
        self._settings = settings
        self._resolver = resolver
        self._classifier = classifier
        self._dispatcher = dispatcher
        self._state_store = state_store
        self._messenger = messenger
        self._metrics = metrics or get_metrics_service()
        self._locks = locks or ConversationLocks()

    async def handle_event(self, event: InboundEvent, *, trace_id: str | None = None) -> TurnResult:
        trace_id = trace_id or uuid4().hex
        request_logger = get_request_logger(
            logger,
            trace_id=trace_id,
            user_id=event.user_id,
            platform=event.platform,
        )
        start_time = time.perf_counter()
        async with self._locks.get(event.user_id, event.platform):
            result = await self._run_turn(event, trace_id, request_logger)
        self._metrics.record_turn_latency((time.perf_counter() - start_time) * 1000)
        return result

    async def _run_turn(
        self,
        event: InboundEvent,
        trace_id: str,
        request_logger: logging.LoggerAdapter,
    ) -> TurnResult:
        state = await self._load_state(event, request_logger)
        turn_messenger = TurnMessenger(self._messenger, log=request_logger)
        context = HandlerContext(
            user_id=event.user_id,
            platform=event.platform,
            messenger=turn_messenger,
            log=request_logger,
        )

        resolved = self._resolver.resolve(event, state)
        user_text = event.clean_text or (event.callback.label or event.callback.id if event.callback else "")
        if resolved is not None:
            action, arguments = resolved.action_name, resolved.arguments
            source, resolution = FAST_PATH, str(resolved.source)
            self._metrics.record_resolution(fast_path=True)
        elif user_text:
            decision = await self._classifier.classify(user_text, state, log=request_logger)
            action, arguments = decision.action_name, decision.dispatch_arguments()
            source, resolution = SLOW_PATH, str(decision.outcome)
            self._metrics.record_resolution(fast_path=False)
            self._metrics.record_classifier_outcome(decision.outcome)
        else:
            action, arguments = ActionName.SEND_TEXT_REPLY, {"message": DEFAULT_TEXT_REPLY}
            source, resolution = NO_INPUT, None

        request_logger.info("Resolved action=%s source=%s resolution=%s", action, source, resolution)
        dispatched = await self._dispatcher.dispatch(action, arguments, context, state)
        self._metrics.record_action(action)
        if dispatched.rejected is not None:
            self._metrics.record_validation_rejection()
        if dispatched.failed:
            self._metrics.record_handler_failure()
        self._metrics.record_delivery_failures(turn_messenger.failures)

        new_state = dispatched.state
        history_limit = self._settings.history_limit
        new_state.append_history("user", user_text, limit=history_limit)
        new_state.append_history("assistant", turn_messenger.digest(), limit=history_limit)
        await self._save_state(event, new_state, request_logger)

        return TurnResult(
            state=new_state,
            trace_id=trace_id,
            action_name=action,
            source=source,
            resolution=resolution,
            messages=list(turn_messenger.sent),
            rejected=dispatched.rejected is not None,
            failed=dispatched.failed,
        )

    async def _load_state(self, event: InboundEvent, request_logger: logging.LoggerAdapter) -> ConversationState:
        try:
            return await self._state_store.load(event.user_id, event.platform)
        except Exception:
            request_logger.exception("Loading conversation state failed, starting from defaults")
            self._metrics.record_state_load_failure()
            return ConversationState()

    async def _save_state(
        self,
        event: InboundEvent,
        state: ConversationState,
        request_logger: logging.LoggerAdapter,
    ) -> None:
        try:
            await self._state_store.save(event.user_id, event.platform, state)
        except Exception:
            request_logger.exception("Saving conversation state failed")
            self._metrics.record_state_save_failure()

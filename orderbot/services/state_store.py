from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, Protocol, Tuple

from pydantic import ValidationError

from ..models import ConversationState

logger = logging.getLogger(__name__)


class ConversationStateStore(Protocol):
    """Load/save contract for per (user, platform) conversation state."""

    async def load(self, user_id: str, platform: str) -> ConversationState: ...

    async def save(self, user_id: str, platform: str, state: ConversationState) -> None: ...


class InMemoryConversationStateStore:
    """In-memory conversation store keeping serialized JSON blobs."""

    def __init__(self) -> None:
        self._blobs: Dict[Tuple[str, str], str] = {}
        self._lock = Lock()

    async def load(self, user_id: str, platform: str) -> ConversationState:
        with self._lock:
            blob = self._blobs.get((user_id, platform))
        if blob is None:
            return ConversationState()
        try:
            return ConversationState.model_validate_json(blob)
        except ValidationError as exc:
            logger.warning(
                "Discarding unreadable conversation state user_id=%s platform=%s: %s",
                user_id,
                platform,
                exc,
            )
            return ConversationState()

    async def save(self, user_id: str, platform: str, state: ConversationState) -> None:
        if not user_id:
            raise ValueError("user_id is required to save conversation state")
        blob = state.model_dump_json()
        with self._lock:
            self._blobs[(user_id, platform)] = blob

    def put_raw(self, user_id: str, platform: str, blob: str) -> None:
        """Store a pre-serialized blob, e.g. state written by an older release."""

        with self._lock:
            self._blobs[(user_id, platform)] = blob

    def clear(self) -> None:
        with self._lock:
            self._blobs.clear()


_state_store = InMemoryConversationStateStore()


def get_state_store() -> InMemoryConversationStateStore:
    return _state_store

from __future__ import annotations

from typing import Any


class OrderBotError(Exception):
    """Base class for failures raised inside the dialogue engine."""

    code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str | None = None,
        *,
        reason: str | None = None,
        http_status: int | None = None,
        debug: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or reason or "")
        self.reason = reason or message or self.code
        if http_status is not None:
            self.http_status = http_status
        self.debug = debug or {}


class BadRequestError(OrderBotError):
    """The inbound request cannot be turned into a conversation turn."""

    code = "BAD_REQUEST"
    http_status = 400


class CatalogError(OrderBotError):
    code = "CATALOG_UNAVAILABLE"
    http_status = 503


class PersistenceError(OrderBotError):
    code = "PERSISTENCE_FAILED"
    http_status = 503


class StateStoreError(OrderBotError):
    code = "STATE_STORE_FAILED"
    http_status = 503


class MessagingError(OrderBotError):
    code = "MESSAGING_FAILED"
    http_status = 502


class ClassifierError(OrderBotError):
    code = "CLASSIFIER_FAILED"
    http_status = 502


class MalformedArgumentsError(ClassifierError):
    """Arguments of a registered action cannot be coerced to its declared shape."""

    code = "MALFORMED_ARGUMENTS"

    def __init__(self, action_name: str, field: str | None, message: str) -> None:
        super().__init__(message, reason="malformed_arguments", debug={"action": action_name, "field": field})
        self.action_name = action_name
        self.field = field


class MalformedDecisionError(ClassifierError):
    """
    The model picked a registered action with unparseable arguments.

    Carries the offending assistant message and tool call id so a retry can
    append them to the conversation together with a correction.
    """

    code = "MALFORMED_DECISION"

    def __init__(
        self,
        message: str,
        *,
        action_name: str,
        ai_message: Any = None,
        tool_call_id: str | None = None,
    ) -> None:
        super().__init__(message, reason="malformed_decision", debug={"action": action_name})
        self.action_name = action_name
        self.ai_message = ai_message
        self.tool_call_id = tool_call_id

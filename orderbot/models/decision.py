from __future__ import annotations

from enum import StrEnum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..actions import ActionName


class ClassificationOutcome(StrEnum):
    SUCCESS = "success"
    RETRIED_SUCCESS = "retried_success"
    EXHAUSTED_FALLBACK = "exhausted_fallback"
    HALLUCINATION_FALLBACK = "hallucination_fallback"
    NO_ACTION = "no_action"
    TRANSPORT_FALLBACK = "transport_fallback"


class ResolutionSource(StrEnum):
    CALLBACK = "callback"
    STAGE_CAPTURE = "stage_capture"
    KEYWORD = "keyword"


class ActionDecision(BaseModel):
    """Structured output of the intent classifier."""

    action_name: ActionName
    arguments: Dict[str, Any] = Field(default_factory=dict)
    assistant_text: Optional[str] = None
    outcome: ClassificationOutcome = ClassificationOutcome.SUCCESS

    def dispatch_arguments(self) -> Dict[str, Any]:
        """A text reply without a message falls back to the text the model wrote beside the call."""

        message = str(self.arguments.get("message") or "").strip()
        if self.action_name is ActionName.SEND_TEXT_REPLY and not message and self.assistant_text:
            return {**self.arguments, "message": self.assistant_text}
        return dict(self.arguments)

    @property
    def is_fallback(self) -> bool:
        return self.outcome in {
            ClassificationOutcome.EXHAUSTED_FALLBACK,
            ClassificationOutcome.HALLUCINATION_FALLBACK,
            ClassificationOutcome.TRANSPORT_FALLBACK,
        }


class ResolvedAction(BaseModel):
    """Action decided by a deterministic rule, without the language model."""

    action_name: ActionName
    arguments: Dict[str, Any] = Field(default_factory=dict)
    source: ResolutionSource

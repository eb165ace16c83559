from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .messages import OutboundMessage


class Callback(BaseModel):
    """UI selection normalized across platforms."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    kind: Literal["button", "list"] = "button"
    id: str
    label: Optional[str] = Field(default=None, validation_alias=AliasChoices("label", "title"))


class InboundEvent(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    user_id: str = Field(validation_alias=AliasChoices("user_id", "userId", "from"))
    platform: str = "whatsapp"
    text: Optional[str] = None
    callback: Optional[Callback] = None

    @property
    def clean_text(self) -> str:
        return (self.text or "").strip()


class EventResponse(BaseModel):
    """HTTP response for one processed event."""

    user_id: str
    platform: str
    stage: str
    action: Optional[str] = None
    source: Optional[str] = None
    messages: List[OutboundMessage] = Field(default_factory=list)


class WebhookResponse(BaseModel):
    processed: int = 0
    results: List[EventResponse] = Field(default_factory=list)

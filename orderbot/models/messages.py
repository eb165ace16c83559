from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class Button(BaseModel):
    id: str
    title: str


class ListRow(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None


class ListSection(BaseModel):
    title: str
    rows: List[ListRow] = Field(default_factory=list)


class OutboundMessage(BaseModel):
    """Platform-agnostic outward message."""

    kind: Literal["text", "list", "buttons", "order_summary"]
    user_id: str
    platform: str
    title: Optional[str] = None
    body: str = ""
    footer: Optional[str] = None
    button_label: Optional[str] = None
    sections: List[ListSection] = Field(default_factory=list)
    buttons: List[Button] = Field(default_factory=list)

    def digest(self) -> str:
        """Short text used when the message is recorded in conversation history."""

        parts = [part for part in (self.title, self.body) if part]
        if self.sections:
            titles = [row.title for section in self.sections for row in section.rows]
            parts.append("Options: " + ", ".join(titles))
        if self.buttons:
            parts.append("Buttons: " + ", ".join(button.title for button in self.buttons))
        return "\n".join(parts)

"""
Conversation domain model.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from product_house.core.constants import DEFAULT_CONVERSATION_TITLE, MessageRole
from product_house.domain.context import ConversationMessage


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """A stored message in a conversation."""

    id: str = Field(..., description="Message identifier")
    conversation_id: str = Field(..., description="Owning conversation")
    role: MessageRole = Field(..., description="Who sent the message")
    content: str = Field(..., description="Message text")
    timestamp: datetime = Field(default_factory=_utcnow)
    user_id: Optional[str] = Field(default=None, description="Sending user; absent for assistant replies")

    def to_transcript(self) -> ConversationMessage:
        return ConversationMessage(role=self.role, content=self.content)


class Conversation(BaseModel):
    """A product discussion that masterplans are generated from."""

    id: str = Field(..., description="Unique conversation identifier")
    title: str = Field(default=DEFAULT_CONVERSATION_TITLE)
    user_id: str = Field(..., description="Owning user")

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    messages: list[Message] = Field(default_factory=list, description="Messages, oldest first")

    def add_message(self, message: Message) -> None:
        """Append a message and touch ``updated_at``."""
        self.messages.append(message)
        self.updated_at = message.timestamp

    def rename(self, title: str) -> None:
        self.title = title
        self.updated_at = _utcnow()

    def transcript(self) -> list[ConversationMessage]:
        """Messages in the shape the completion client takes."""
        return [m.to_transcript() for m in self.messages]

    @property
    def message_count(self) -> int:
        return len(self.messages)

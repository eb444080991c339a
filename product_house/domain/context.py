"""
Acting-user and conversation models threaded explicitly through operations.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from product_house.core.constants import MessageRole, Theme, UserRole


class User(BaseModel):
    """Identity supplied verbatim by the identity provider."""

    id: str = Field(..., min_length=1, description="User identifier")
    name: str = Field(default="", description="Display name")
    email: str = Field(default="", description="Email address")
    role: UserRole = Field(default=UserRole.USER)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class RequestContext(BaseModel):
    """Per-call context: who is acting and how they want things shown."""

    user: Optional[User] = Field(default=None, description="Acting user, if resolved")
    theme: Theme = Field(default=Theme.SYSTEM)
    request_id: Optional[str] = Field(default=None, description="Tracing identifier")

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


class ConversationMessage(BaseModel):
    """A message in the conversation a masterplan is generated from."""

    role: MessageRole = Field(..., description="Role of the message sender")
    content: str = Field(..., description="Message content")

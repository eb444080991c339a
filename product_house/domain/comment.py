"""
Comment domain model.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from product_house.core.constants import CommentCategory


class MasterplanComment(BaseModel):
    """A categorized, mention-aware comment attached to one section."""

    id: str = Field(..., description="Comment identifier")
    masterplan_id: str = Field(..., description="Owning masterplan")
    section_id: str = Field(..., description="Section the comment is attached to")

    user_id: str = Field(..., description="Author id")
    user_name: str = Field(default="", description="Author display name")

    content: str = Field(..., description="Comment text")
    category: Optional[CommentCategory] = Field(default=None)
    mentions: list[str] = Field(default_factory=list, description="Mentioned user ids")

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = Field(default=None)

    def edit(
        self,
        content: str,
        category: Optional[CommentCategory] = None,
        mentions: Optional[list[str]] = None,
    ) -> None:
        """Replace the content (and category/mentions, when given)."""
        self.content = content
        if category is not None:
            self.category = category
        if mentions is not None:
            self.mentions = mentions
        self.updated_at = datetime.now(timezone.utc)

"""
Comment service: categorized, mention-aware comments on masterplan sections.

Comments sit outside the version ledger. Editing one overwrites it in place.
"""

from __future__ import annotations

from typing import Optional

from product_house.core.constants import CommentCategory
from product_house.core.exceptions import (
    AuthorizationError,
    CommentNotFoundError,
    MasterplanNotFoundError,
    NotFoundError,
    ValidationError,
)
from product_house.core.logging import get_logger
from product_house.core.security import generate_comment_id, require_user
from product_house.domain.comment import MasterplanComment
from product_house.domain.context import RequestContext
from product_house.masterplan.mentions import extract_mentions
from product_house.repositories.base import CommentRepository, MasterplanRepository

logger = get_logger(__name__)


class CommentService:
    """
    Service for section comments.
    """

    def __init__(
        self,
        comment_repository: CommentRepository,
        masterplan_repository: MasterplanRepository,
    ) -> None:
        self.comments = comment_repository
        self.masterplans = masterplan_repository

    async def add_comment(
        self,
        section_id: str,
        masterplan_id: str,
        context: RequestContext,
        content: str,
        category: Optional[CommentCategory] = None,
        mentions: Optional[list[str]] = None,
    ) -> MasterplanComment:
        """
        Attach a comment to a section.

        Args:
            section_id: Section to comment on
            masterplan_id: Owning masterplan
            context: Request context (a user is required)
            content: Comment text
            category: Optional category
            mentions: Mentioned users; extracted from ``content`` when omitted

        Returns:
            The stored comment

        Raises:
            AuthorizationError: Without an acting user
            MasterplanNotFoundError: If the masterplan does not exist
            NotFoundError: If the section does not exist
            ValidationError: If the content is blank
        """
        user = require_user(context, "comment")

        masterplan = await self.masterplans.get(masterplan_id)
        if masterplan is None:
            raise MasterplanNotFoundError(masterplan_id)
        if masterplan.get_section(section_id) is None:
            raise NotFoundError(resource_type="Section", resource_id=section_id)
        if not content.strip():
            raise ValidationError("Comment content must not be empty", field="content")

        comment = MasterplanComment(
            id=generate_comment_id(),
            masterplan_id=masterplan_id,
            section_id=section_id,
            user_id=user.id,
            user_name=user.name,
            content=content,
            category=category,
            mentions=extract_mentions(content) if mentions is None else list(mentions),
        )
        await self.comments.save(comment)

        logger.info(
            "Comment added",
            comment_id=comment.id,
            masterplan_id=masterplan_id,
            section_id=section_id,
            mentions=len(comment.mentions),
        )
        return comment

    async def get_comment(self, comment_id: str) -> MasterplanComment:
        """
        Get a comment by ID.

        Raises:
            CommentNotFoundError: If the comment does not exist
        """
        comment = await self.comments.get(comment_id)
        if comment is None:
            raise CommentNotFoundError(comment_id)
        return comment

    async def update_comment(
        self,
        comment_id: str,
        content: str,
        category: Optional[CommentCategory] = None,
        context: Optional[RequestContext] = None,
    ) -> MasterplanComment:
        """
        Overwrite a comment's content and re-extract its mentions.

        When a context is given, only the author or an admin may edit.

        Raises:
            CommentNotFoundError: If the comment does not exist
            AuthorizationError: If the acting user may not edit it
            ValidationError: If the content is blank
        """
        comment = await self.get_comment(comment_id)

        if context is not None:
            user = require_user(context, "edit a comment")
            if user.id != comment.user_id and not user.is_admin:
                raise AuthorizationError("Only the author can edit this comment")

        if not content.strip():
            raise ValidationError("Comment content must not be empty", field="content")

        comment.edit(content, category=category, mentions=extract_mentions(content))
        await self.comments.save(comment)

        logger.info("Comment updated", comment_id=comment_id)
        return comment

    async def delete_comment(self, comment_id: str, context: Optional[RequestContext] = None) -> bool:
        """
        Delete a comment. Deleting a missing comment is not an error.

        Returns:
            Whether a comment was removed
        """
        if context is not None:
            user = require_user(context, "delete a comment")
            comment = await self.comments.get(comment_id)
            if comment is not None and user.id != comment.user_id and not user.is_admin:
                raise AuthorizationError("Only the author can delete this comment")

        deleted = await self.comments.delete(comment_id)
        if deleted:
            logger.info("Comment deleted", comment_id=comment_id)
        return deleted

    async def list_by_section(
        self,
        section_id: str,
        masterplan_id: Optional[str] = None,
    ) -> list[MasterplanComment]:
        """Comments on a section, oldest first."""
        return await self.comments.list_by_section(section_id, masterplan_id=masterplan_id)

    async def list_by_masterplan(self, masterplan_id: str) -> list[MasterplanComment]:
        """All comments on a masterplan, oldest first."""
        return await self.comments.list_by_masterplan(masterplan_id)

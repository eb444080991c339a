"""
Comment repository for section comments.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import delete, exists, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from product_house.core.constants import CommentCategory
from product_house.core.logging import get_logger
from product_house.database.models import CommentDB
from product_house.domain.comment import MasterplanComment
from product_house.repositories.base import CommentRepository

logger = get_logger(__name__)


class InMemoryCommentRepository(CommentRepository):
    """
    In-memory comment repository for development/testing.
    """

    def __init__(self) -> None:
        self._comments: dict[str, MasterplanComment] = {}

    async def get(self, id: str) -> Optional[MasterplanComment]:
        """Get a comment by ID."""
        comment = self._comments.get(id)
        return comment.model_copy(deep=True) if comment else None

    async def save(self, entity: MasterplanComment) -> MasterplanComment:
        """Save a comment, overwriting any earlier state."""
        self._comments[entity.id] = entity.model_copy(deep=True)
        logger.debug("Comment saved", comment_id=entity.id, section_id=entity.section_id)
        return entity

    async def delete(self, id: str) -> bool:
        """Delete a comment by ID."""
        if id in self._comments:
            del self._comments[id]
            logger.debug("Comment deleted", comment_id=id)
            return True
        return False

    async def list(
        self,
        filters: Optional[dict[str, Any]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[MasterplanComment]:
        """List comments with optional filters, oldest first."""
        comments = list(self._comments.values())

        if filters:
            if "masterplan_id" in filters:
                comments = [c for c in comments if c.masterplan_id == filters["masterplan_id"]]
            if "section_id" in filters:
                comments = [c for c in comments if c.section_id == filters["section_id"]]
            if "user_id" in filters:
                comments = [c for c in comments if c.user_id == filters["user_id"]]
            if "category" in filters:
                category = filters["category"]
                if isinstance(category, str):
                    category = CommentCategory(category)
                comments = [c for c in comments if c.category == category]

        comments.sort(key=lambda c: c.timestamp)

        return [c.model_copy(deep=True) for c in comments[offset : offset + limit]]

    async def exists(self, id: str) -> bool:
        """Check if a comment exists."""
        return id in self._comments

    async def list_by_section(
        self,
        section_id: str,
        masterplan_id: Optional[str] = None,
    ) -> list[MasterplanComment]:
        """Comments on a section id, oldest first."""
        filters: dict[str, Any] = {"section_id": section_id}
        if masterplan_id is not None:
            filters["masterplan_id"] = masterplan_id
        return await self.list(filters=filters, limit=len(self._comments))

    async def list_by_masterplan(self, masterplan_id: str) -> list[MasterplanComment]:
        """All comments on a masterplan, oldest first."""
        return await self.list(filters={"masterplan_id": masterplan_id}, limit=len(self._comments))

    async def delete_by_masterplan(self, masterplan_id: str) -> int:
        """Delete every comment on a masterplan."""
        doomed = [c.id for c in self._comments.values() if c.masterplan_id == masterplan_id]
        for comment_id in doomed:
            del self._comments[comment_id]
        return len(doomed)


def comment_to_row(comment: MasterplanComment) -> CommentDB:
    return CommentDB(
        id=comment.id,
        masterplan_id=comment.masterplan_id,
        section_id=comment.section_id,
        user_id=comment.user_id,
        user_name=comment.user_name,
        content=comment.content,
        category=comment.category,
        mentions=list(comment.mentions),
        created_at=comment.timestamp,
        updated_at=comment.updated_at,
    )


def comment_from_row(row: CommentDB) -> MasterplanComment:
    return MasterplanComment(
        id=row.id,
        masterplan_id=row.masterplan_id,
        section_id=row.section_id,
        user_id=row.user_id,
        user_name=row.user_name or "",
        content=row.content,
        category=row.category,
        mentions=list(row.mentions or []),
        timestamp=row.created_at,
        updated_at=row.updated_at,
    )


class SQLCommentRepository(CommentRepository):
    """
    PostgreSQL comment repository for production.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> None:
        if session_factory is None:
            from product_house.database.config import get_session_factory

            session_factory = get_session_factory()
        self._session_factory = session_factory

    async def get(self, id: str) -> Optional[MasterplanComment]:
        """Get a comment by ID."""
        async with self._session_factory() as session:
            row = await session.get(CommentDB, id)
            return comment_from_row(row) if row else None

    async def save(self, entity: MasterplanComment) -> MasterplanComment:
        """Insert or overwrite a comment."""
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(comment_to_row(entity))
        return entity

    async def delete(self, id: str) -> bool:
        """Delete a comment by ID."""
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(delete(CommentDB).where(CommentDB.id == id))
                return result.rowcount == 1

    async def list(
        self,
        filters: Optional[dict[str, Any]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[MasterplanComment]:
        """List comments with optional filters, oldest first."""
        query = select(CommentDB)
        if filters:
            if "masterplan_id" in filters:
                query = query.where(CommentDB.masterplan_id == filters["masterplan_id"])
            if "section_id" in filters:
                query = query.where(CommentDB.section_id == filters["section_id"])
            if "user_id" in filters:
                query = query.where(CommentDB.user_id == filters["user_id"])
            if "category" in filters:
                query = query.where(CommentDB.category == CommentCategory(filters["category"]))
        query = query.order_by(CommentDB.created_at).limit(limit).offset(offset)

        async with self._session_factory() as session:
            rows = (await session.execute(query)).scalars().all()
            return [comment_from_row(row) for row in rows]

    async def exists(self, id: str) -> bool:
        """Check if a comment exists."""
        async with self._session_factory() as session:
            result = await session.scalar(select(exists().where(CommentDB.id == id)))
            return bool(result)

    async def list_by_section(
        self,
        section_id: str,
        masterplan_id: Optional[str] = None,
    ) -> list[MasterplanComment]:
        """Comments on a section id, oldest first."""
        query = select(CommentDB).where(CommentDB.section_id == section_id)
        if masterplan_id is not None:
            query = query.where(CommentDB.masterplan_id == masterplan_id)

        async with self._session_factory() as session:
            rows = (await session.execute(query.order_by(CommentDB.created_at))).scalars().all()
            return [comment_from_row(row) for row in rows]

    async def list_by_masterplan(self, masterplan_id: str) -> list[MasterplanComment]:
        """All comments on a masterplan, oldest first."""
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(CommentDB)
                    .where(CommentDB.masterplan_id == masterplan_id)
                    .order_by(CommentDB.created_at)
                )
            ).scalars().all()
            return [comment_from_row(row) for row in rows]

    async def delete_by_masterplan(self, masterplan_id: str) -> int:
        """Delete every comment on a masterplan."""
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(CommentDB).where(CommentDB.masterplan_id == masterplan_id)
                )
                return result.rowcount or 0

"""
Conversation repository for conversations and their messages.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy import delete, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from product_house.core.exceptions import ConversationNotFoundError
from product_house.core.logging import get_logger
from product_house.database.models import ConversationDB, ConversationMessageDB
from product_house.domain.conversation import Conversation, Message
from product_house.repositories.base import ConversationRepository

logger = get_logger(__name__)


class InMemoryConversationRepository(ConversationRepository):
    """
    In-memory conversation repository for development/testing.
    """

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}

    async def get(self, id: str) -> Optional[Conversation]:
        """Get a conversation with its messages."""
        conversation = self._conversations.get(id)
        return conversation.model_copy(deep=True) if conversation else None

    async def save(self, entity: Conversation) -> Conversation:
        """Insert or update the conversation header; stored messages are kept."""
        stored = self._conversations.get(entity.id)
        copy = entity.model_copy(deep=True)
        if stored is not None:
            copy.messages = stored.messages
        self._conversations[entity.id] = copy
        logger.debug("Conversation saved", conversation_id=entity.id)
        return entity

    async def delete(self, id: str) -> bool:
        """Delete a conversation and its messages."""
        if id in self._conversations:
            del self._conversations[id]
            logger.debug("Conversation deleted", conversation_id=id)
            return True
        return False

    async def list(
        self,
        filters: Optional[dict[str, Any]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Conversation]:
        """List conversations with optional filters, most recently updated first."""
        conversations = list(self._conversations.values())

        if filters:
            if "user_id" in filters:
                conversations = [c for c in conversations if c.user_id == filters["user_id"]]

        conversations.sort(key=lambda c: c.updated_at, reverse=True)

        return [c.model_copy(deep=True) for c in conversations[offset : offset + limit]]

    async def exists(self, id: str) -> bool:
        """Check if a conversation exists."""
        return id in self._conversations

    async def add_message(self, message: Message) -> Message:
        """Append a message to its conversation."""
        conversation = self._conversations.get(message.conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(message.conversation_id)

        conversation.add_message(message.model_copy())
        logger.debug(
            "Message added",
            conversation_id=message.conversation_id,
            message_id=message.id,
            role=message.role.value,
        )
        return message

    async def list_messages(self, conversation_id: str) -> list[Message]:
        """Messages of a conversation, oldest first."""
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return []
        return [m.model_copy() for m in conversation.messages]


def conversation_to_row(conversation: Conversation) -> ConversationDB:
    return ConversationDB(
        id=conversation.id,
        title=conversation.title,
        user_id=conversation.user_id,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )


def message_to_row(message: Message, sequence: int) -> ConversationMessageDB:
    return ConversationMessageDB(
        id=message.id,
        conversation_id=message.conversation_id,
        role=message.role,
        content=message.content,
        user_id=message.user_id,
        sequence=sequence,
        timestamp=message.timestamp,
    )


def message_from_row(row: ConversationMessageDB) -> Message:
    return Message(
        id=row.id,
        conversation_id=row.conversation_id,
        role=row.role,
        content=row.content,
        user_id=row.user_id,
        timestamp=row.timestamp,
    )


def conversation_from_rows(
    row: ConversationDB,
    messages: Sequence[ConversationMessageDB],
) -> Conversation:
    ordered = sorted(messages, key=lambda m: m.sequence)
    return Conversation(
        id=row.id,
        title=row.title,
        user_id=row.user_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        messages=[message_from_row(m) for m in ordered],
    )


class SQLConversationRepository(ConversationRepository):
    """
    PostgreSQL conversation repository for production.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> None:
        if session_factory is None:
            from product_house.database.config import get_session_factory

            session_factory = get_session_factory()
        self._session_factory = session_factory

    async def _messages(self, session: AsyncSession, conversation_ids: list[str]) -> dict[str, list]:
        grouped: dict[str, list] = {cid: [] for cid in conversation_ids}
        if not conversation_ids:
            return grouped
        rows = (
            await session.execute(
                select(ConversationMessageDB).where(
                    ConversationMessageDB.conversation_id.in_(conversation_ids)
                )
            )
        ).scalars().all()
        for row in rows:
            grouped[row.conversation_id].append(row)
        return grouped

    async def get(self, id: str) -> Optional[Conversation]:
        """Get a conversation with its messages."""
        async with self._session_factory() as session:
            row = await session.get(ConversationDB, id)
            if row is None:
                return None
            messages = await self._messages(session, [id])
            return conversation_from_rows(row, messages[id])

    async def save(self, entity: Conversation) -> Conversation:
        """Insert or update the conversation header."""
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(conversation_to_row(entity))
        return entity

    async def delete(self, id: str) -> bool:
        """Delete a conversation; messages go with it."""
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(ConversationMessageDB).where(ConversationMessageDB.conversation_id == id)
                )
                result = await session.execute(delete(ConversationDB).where(ConversationDB.id == id))
                return result.rowcount == 1

    async def list(
        self,
        filters: Optional[dict[str, Any]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Conversation]:
        """List conversations with optional filters, most recently updated first."""
        query = select(ConversationDB)
        if filters:
            if "user_id" in filters:
                query = query.where(ConversationDB.user_id == filters["user_id"])
        query = query.order_by(ConversationDB.updated_at.desc()).limit(limit).offset(offset)

        async with self._session_factory() as session:
            rows = (await session.execute(query)).scalars().all()
            messages = await self._messages(session, [row.id for row in rows])
            return [conversation_from_rows(row, messages[row.id]) for row in rows]

    async def exists(self, id: str) -> bool:
        """Check if a conversation exists."""
        async with self._session_factory() as session:
            result = await session.scalar(select(exists().where(ConversationDB.id == id)))
            return bool(result)

    async def add_message(self, message: Message) -> Message:
        """Append a message and touch the conversation in one transaction."""
        async with self._session_factory() as session:
            async with session.begin():
                conversation = await session.get(
                    ConversationDB,
                    message.conversation_id,
                    with_for_update=True,
                )
                if conversation is None:
                    raise ConversationNotFoundError(message.conversation_id)

                current = await session.scalar(
                    select(func.max(ConversationMessageDB.sequence)).where(
                        ConversationMessageDB.conversation_id == message.conversation_id
                    )
                )
                session.add(message_to_row(message, (current or 0) + 1))
                conversation.updated_at = message.timestamp

        logger.debug(
            "Message added",
            conversation_id=message.conversation_id,
            message_id=message.id,
            role=message.role.value,
        )
        return message

    async def list_messages(self, conversation_id: str) -> list[Message]:
        """Messages of a conversation, oldest first."""
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(ConversationMessageDB)
                    .where(ConversationMessageDB.conversation_id == conversation_id)
                    .order_by(ConversationMessageDB.sequence)
                )
            ).scalars().all()
            return [message_from_row(row) for row in rows]

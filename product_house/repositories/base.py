"""
Base repository interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, TypeVar

from product_house.domain.comment import MasterplanComment
from product_house.domain.conversation import Conversation, Message
from product_house.domain.masterplan import Masterplan, MasterplanVersion

T = TypeVar("T")


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base class for repositories.
    """

    @abstractmethod
    async def get(self, id: str) -> Optional[T]:
        """Get an entity by ID."""
        ...

    @abstractmethod
    async def save(self, entity: T) -> T:
        """Save an entity."""
        ...

    @abstractmethod
    async def delete(self, id: str) -> bool:
        """Delete an entity by ID."""
        ...

    @abstractmethod
    async def list(
        self,
        filters: Optional[dict[str, Any]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[T]:
        """List entities with optional filters."""
        ...

    @abstractmethod
    async def exists(self, id: str) -> bool:
        """Check if an entity exists."""
        ...


class MasterplanRepository(BaseRepository[Masterplan]):
    """
    Masterplans together with their append-only version ledger.

    Implementations must make ``create`` and ``commit_version`` atomic: the
    masterplan row and its version record are written together or not at
    all.
    """

    @abstractmethod
    async def create(self, masterplan: Masterplan, initial_version: MasterplanVersion) -> Masterplan:
        """Insert a new masterplan and its first version record."""
        ...

    @abstractmethod
    async def commit_version(
        self,
        masterplan: Masterplan,
        version: Optional[MasterplanVersion],
        expected_version: Optional[str] = None,
    ) -> Masterplan:
        """
        Replace the stored masterplan and append ``version`` in one unit.

        Args:
            masterplan: New masterplan state
            version: Record to append; None stores the state only (restore)
            expected_version: When set, the stored version string must still
                equal this value

        Raises:
            MasterplanNotFoundError: If the masterplan does not exist
            ConflictError: If the stored version moved on
        """
        ...

    @abstractmethod
    async def list_versions(self, masterplan_id: str) -> list[MasterplanVersion]:
        """Version records in commit order."""
        ...

    @abstractmethod
    async def get_version(self, masterplan_id: str, version_id: str) -> Optional[MasterplanVersion]:
        """Get one version record."""
        ...

    async def update_masterplan(
        self,
        masterplan: Masterplan,
        expected_version: Optional[str] = None,
    ) -> Masterplan:
        """Replace the stored masterplan without appending to the ledger."""
        return await self.commit_version(masterplan, None, expected_version)


class CommentRepository(BaseRepository[MasterplanComment]):
    """Section comments. Edits overwrite in place; there is no history."""

    @abstractmethod
    async def list_by_section(
        self,
        section_id: str,
        masterplan_id: Optional[str] = None,
    ) -> list[MasterplanComment]:
        """Comments on a section id, oldest first, optionally within one masterplan."""
        ...

    @abstractmethod
    async def list_by_masterplan(self, masterplan_id: str) -> list[MasterplanComment]:
        """All comments on a masterplan, oldest first."""
        ...

    @abstractmethod
    async def delete_by_masterplan(self, masterplan_id: str) -> int:
        """Delete every comment on a masterplan; returns how many went."""
        ...


class ConversationRepository(BaseRepository[Conversation]):
    """
    Conversations and their messages.

    ``get`` returns the conversation with its messages, oldest first.
    ``save`` writes the conversation header only; messages go through
    ``add_message``.
    """

    @abstractmethod
    async def add_message(self, message: Message) -> Message:
        """
        Append a message and touch the conversation's ``updated_at``.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
        """
        ...

    @abstractmethod
    async def list_messages(self, conversation_id: str) -> list[Message]:
        """Messages of a conversation, oldest first."""
        ...

    async def list_by_user(self, user_id: str, limit: int = 100, offset: int = 0) -> list[Conversation]:
        """A user's conversations, most recently updated first."""
        return await self.list(filters={"user_id": user_id}, limit=limit, offset=offset)

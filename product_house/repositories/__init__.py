"""
Repository implementations for data access.
"""

from product_house.repositories.base import (
    BaseRepository,
    CommentRepository,
    ConversationRepository,
    MasterplanRepository,
)
from product_house.repositories.comment_repo import InMemoryCommentRepository, SQLCommentRepository
from product_house.repositories.conversation_repo import (
    InMemoryConversationRepository,
    SQLConversationRepository,
)
from product_house.repositories.masterplan_repo import (
    InMemoryMasterplanRepository,
    SQLMasterplanRepository,
)

__all__ = [
    "BaseRepository",
    "MasterplanRepository",
    "CommentRepository",
    "ConversationRepository",
    "InMemoryMasterplanRepository",
    "SQLMasterplanRepository",
    "InMemoryCommentRepository",
    "SQLCommentRepository",
    "InMemoryConversationRepository",
    "SQLConversationRepository",
]

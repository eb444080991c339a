"""
Service layer implementations.
"""

from product_house.services.comment_service import CommentService
from product_house.services.conversation_service import ConversationService
from product_house.services.masterplan_service import MasterplanService

__all__ = [
    "CommentService",
    "ConversationService",
    "MasterplanService",
]

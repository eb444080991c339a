"""
Domain models.
"""

from product_house.domain.comment import MasterplanComment
from product_house.domain.context import ConversationMessage, RequestContext, User
from product_house.domain.conversation import Conversation, Message
from product_house.domain.masterplan import (
    ExportFile,
    Masterplan,
    MasterplanSection,
    MasterplanVersion,
    SectionChange,
)
from product_house.domain.review import ReviewSession, ReviewSuggestion

__all__ = [
    "Conversation",
    "ConversationMessage",
    "ExportFile",
    "Masterplan",
    "MasterplanComment",
    "MasterplanSection",
    "MasterplanVersion",
    "Message",
    "RequestContext",
    "ReviewSession",
    "ReviewSuggestion",
    "SectionChange",
    "User",
]

"""
Conversation endpoints: product discussions and their messages.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from product_house.api.deps import get_conversation_service, get_request_context
from product_house.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MessageRole
from product_house.core.logging import get_logger
from product_house.domain.context import RequestContext
from product_house.domain.conversation import Conversation, Message
from product_house.services.conversation_service import ConversationService

logger = get_logger(__name__)

router = APIRouter()


class CreateConversationRequest(BaseModel):
    title: Optional[str] = None


class UpdateConversationRequest(BaseModel):
    title: str = Field(..., min_length=1)


class AddMessageRequest(BaseModel):
    """A message stored as-is, without a completion call."""

    content: str = Field(..., min_length=1)
    role: MessageRole = MessageRole.USER


class SendMessageRequest(BaseModel):
    content: str = Field(..., min_length=1)


@router.post("/conversations", response_model=Conversation)
async def create_conversation(
    request: CreateConversationRequest,
    context: RequestContext = Depends(get_request_context),
    service: ConversationService = Depends(get_conversation_service),
) -> Conversation:
    """
    Start a conversation owned by the acting user.
    """
    return await service.create_conversation(context, title=request.title)


@router.get("/conversations", response_model=list[Conversation])
async def list_conversations(
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    context: RequestContext = Depends(get_request_context),
    service: ConversationService = Depends(get_conversation_service),
) -> list[Conversation]:
    """
    The acting user's conversations with their messages, most recently updated first.
    """
    return await service.list_for_user(context, limit=limit, offset=offset)


@router.get("/conversations/{conversation_id}", response_model=Conversation)
async def get_conversation(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> Conversation:
    """
    Get a conversation with its messages.
    """
    return await service.get_conversation(conversation_id)


@router.patch("/conversations/{conversation_id}", response_model=Conversation)
async def update_conversation(
    conversation_id: str,
    request: UpdateConversationRequest,
    context: RequestContext = Depends(get_request_context),
    service: ConversationService = Depends(get_conversation_service),
) -> Conversation:
    """
    Rename a conversation. Only its owner or an admin may do so.
    """
    return await service.update_conversation(conversation_id, request.title, context)


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    context: RequestContext = Depends(get_request_context),
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    """
    Delete a conversation and its messages.
    """
    deleted = await service.delete_conversation(conversation_id, context)
    return {"conversation_id": conversation_id, "deleted": deleted}


@router.get("/conversations/{conversation_id}/messages", response_model=list[Message])
async def list_messages(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> list[Message]:
    """
    Messages of a conversation, oldest first.
    """
    return await service.list_messages(conversation_id)


@router.post("/conversations/{conversation_id}/messages", response_model=Message)
async def add_message(
    conversation_id: str,
    request: AddMessageRequest,
    context: RequestContext = Depends(get_request_context),
    service: ConversationService = Depends(get_conversation_service),
) -> Message:
    """
    Append a message without asking for a reply.
    """
    return await service.add_message(conversation_id, request.content, context, role=request.role)


@router.post("/conversations/{conversation_id}/reply", response_model=Message)
async def send_message(
    conversation_id: str,
    request: SendMessageRequest,
    context: RequestContext = Depends(get_request_context),
    service: ConversationService = Depends(get_conversation_service),
) -> Message:
    """
    Post a user message and return the stored assistant reply.
    """
    return await service.send_message(conversation_id, request.content, context)

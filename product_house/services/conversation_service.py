"""
Conversation service: product discussions that masterplans are generated from.
"""

from __future__ import annotations

from typing import Optional, Union

from product_house.clients.claude_client import ClaudeClient
from product_house.core.constants import DEFAULT_CONVERSATION_TITLE, MessageRole
from product_house.core.exceptions import (
    AuthorizationError,
    ConversationNotFoundError,
    ValidationError,
)
from product_house.core.logging import LogContext, get_logger
from product_house.core.security import generate_conversation_id, generate_message_id, require_user
from product_house.domain.context import RequestContext
from product_house.domain.conversation import Conversation, Message
from product_house.repositories.base import ConversationRepository

logger = get_logger(__name__)


class ConversationService:
    """
    Service for conversations and their messages.
    """

    def __init__(self, repository: ConversationRepository, client: ClaudeClient) -> None:
        self.repository = repository
        self.client = client

    def _check_owner(self, conversation: Conversation, context: RequestContext, action: str) -> None:
        user = require_user(context, action)
        if user.id != conversation.user_id and not user.is_admin:
            raise AuthorizationError("Only the owner can change this conversation")

    async def create_conversation(
        self,
        context: RequestContext,
        title: Optional[str] = None,
    ) -> Conversation:
        """
        Start an empty conversation owned by the acting user.

        Raises:
            AuthorizationError: Without an acting user
        """
        user = require_user(context, "start a conversation")
        conversation = Conversation(
            id=generate_conversation_id(),
            title=(title or "").strip() or DEFAULT_CONVERSATION_TITLE,
            user_id=user.id,
        )
        await self.repository.save(conversation)

        logger.info("Conversation created", conversation_id=conversation.id, user_id=user.id)
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation:
        """
        Get a conversation with its messages.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
        """
        conversation = await self.repository.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def list_for_user(
        self,
        context: RequestContext,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Conversation]:
        """The acting user's conversations, most recently updated first."""
        user = require_user(context, "list conversations")
        return await self.repository.list_by_user(user.id, limit=limit, offset=offset)

    async def update_conversation(
        self,
        conversation_id: str,
        title: str,
        context: RequestContext,
    ) -> Conversation:
        """
        Rename a conversation. Only the owner or an admin may rename.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            AuthorizationError: If the acting user may not rename it
            ValidationError: If the title is blank
        """
        conversation = await self.get_conversation(conversation_id)
        self._check_owner(conversation, context, "rename a conversation")
        if not title.strip():
            raise ValidationError("Title must not be empty", field="title")

        conversation.rename(title.strip())
        await self.repository.save(conversation)

        logger.info("Conversation renamed", conversation_id=conversation_id)
        return conversation

    async def delete_conversation(self, conversation_id: str, context: RequestContext) -> bool:
        """
        Delete a conversation and its messages. Deleting a missing
        conversation is not an error.

        Returns:
            Whether a conversation was removed
        """
        conversation = await self.repository.get(conversation_id)
        if conversation is None:
            require_user(context, "delete a conversation")
            return False
        self._check_owner(conversation, context, "delete a conversation")

        deleted = await self.repository.delete(conversation_id)
        if deleted:
            logger.info("Conversation deleted", conversation_id=conversation_id)
        return deleted

    async def add_message(
        self,
        conversation_id: str,
        content: str,
        context: RequestContext,
        role: Union[MessageRole, str] = MessageRole.USER,
    ) -> Message:
        """
        Append a message without calling the completion service.

        Raises:
            AuthorizationError: Without an acting user
            ConversationNotFoundError: If the conversation does not exist
            ValidationError: If the content is blank or the role is unknown
        """
        user = require_user(context, "post a message")
        try:
            role = MessageRole(role)
        except ValueError as e:
            raise ValidationError(f"Unknown role: {role}", field="role") from e
        if not content.strip():
            raise ValidationError("Message content must not be empty", field="content")

        message = Message(
            id=generate_message_id(),
            conversation_id=conversation_id,
            role=role,
            content=content,
            user_id=user.id if role == MessageRole.USER else None,
        )
        return await self.repository.add_message(message)

    async def list_messages(self, conversation_id: str) -> list[Message]:
        """
        Messages of a conversation, oldest first.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
        """
        if not await self.repository.exists(conversation_id):
            raise ConversationNotFoundError(conversation_id)
        return await self.repository.list_messages(conversation_id)

    async def send_message(
        self,
        conversation_id: str,
        content: str,
        context: RequestContext,
        timeout: Optional[float] = None,
    ) -> Message:
        """
        Post a user message and store the assistant's reply.

        The completion call runs on the stored transcript plus the new
        message before anything is written, so a failed call stores neither.

        Returns:
            The assistant reply

        Raises:
            AuthorizationError: Without an acting user
            ConversationNotFoundError: If the conversation does not exist
            ValidationError: If the content is blank
            UpstreamServiceError: If the completion call fails
        """
        user = require_user(context, "post a message")
        if not content.strip():
            raise ValidationError("Message content must not be empty", field="content")
        conversation = await self.get_conversation(conversation_id)

        prompt = Message(
            id=generate_message_id(),
            conversation_id=conversation_id,
            role=MessageRole.USER,
            content=content,
            user_id=user.id,
        )

        with LogContext(request_id=context.request_id, conversation_id=conversation_id):
            logger.info("Sending message", messages=conversation.message_count + 1)
            response = await self.client.complete(
                [*conversation.transcript(), prompt.to_transcript()],
                timeout=timeout,
            )

            reply = Message(
                id=generate_message_id(),
                conversation_id=conversation_id,
                role=MessageRole.ASSISTANT,
                content=response.content,
            )
            await self.repository.add_message(prompt)
            await self.repository.add_message(reply)

            logger.info("Reply stored", message_id=reply.id, stop_reason=response.stop_reason)
        return reply

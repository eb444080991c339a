"""
Completion proxy endpoint.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from product_house.api.deps import get_claude_client, get_request_context
from product_house.clients.claude_client import ClaudeClient, CompletionResponse
from product_house.core.exceptions import ValidationError
from product_house.core.logging import get_logger
from product_house.core.security import require_user
from product_house.domain.context import ConversationMessage, RequestContext

logger = get_logger(__name__)

router = APIRouter()


class CompletionRequest(BaseModel):
    """Request for a plain chat completion."""

    messages: list[ConversationMessage]
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    system: Optional[str] = None


@router.post("/completion", response_model=CompletionResponse)
async def create_completion(
    request: CompletionRequest,
    context: RequestContext = Depends(get_request_context),
    client: ClaudeClient = Depends(get_claude_client),
) -> CompletionResponse:
    """
    Forward a conversation to the completion service.
    """
    require_user(context, "use the assistant")
    if not request.messages:
        raise ValidationError("At least one message is required", field="messages")

    logger.info("Completion requested", messages=len(request.messages))

    return await client.complete(
        request.messages,
        max_tokens=request.max_tokens,
        temperature=request.temperature,
        system=request.system,
    )

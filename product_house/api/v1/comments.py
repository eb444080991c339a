"""
Section comment endpoints.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from product_house.api.deps import get_comment_service, get_request_context
from product_house.core.constants import CommentCategory
from product_house.core.logging import get_logger
from product_house.domain.comment import MasterplanComment
from product_house.domain.context import RequestContext
from product_house.services.comment_service import CommentService

logger = get_logger(__name__)

router = APIRouter()


class AddCommentRequest(BaseModel):
    """Request to comment on a section."""

    section_id: str
    content: str = Field(..., min_length=1)
    category: Optional[CommentCategory] = None
    mentions: Optional[list[str]] = None


class SectionCommentRequest(BaseModel):
    content: str = Field(..., min_length=1)
    category: Optional[CommentCategory] = None
    mentions: Optional[list[str]] = None


class UpdateCommentRequest(BaseModel):
    content: str = Field(..., min_length=1)
    category: Optional[CommentCategory] = None


@router.get("/masterplans/{masterplan_id}/comments", response_model=list[MasterplanComment])
async def list_comments(
    masterplan_id: str,
    service: CommentService = Depends(get_comment_service),
) -> list[MasterplanComment]:
    """
    All comments on a masterplan, oldest first.
    """
    return await service.list_by_masterplan(masterplan_id)


@router.post("/masterplans/{masterplan_id}/comments", response_model=MasterplanComment)
async def add_comment(
    masterplan_id: str,
    request: AddCommentRequest,
    context: RequestContext = Depends(get_request_context),
    service: CommentService = Depends(get_comment_service),
) -> MasterplanComment:
    """
    Comment on a section of a masterplan.
    """
    return await service.add_comment(
        section_id=request.section_id,
        masterplan_id=masterplan_id,
        context=context,
        content=request.content,
        category=request.category,
        mentions=request.mentions,
    )


@router.get(
    "/masterplans/{masterplan_id}/sections/{section_id}/comments",
    response_model=list[MasterplanComment],
)
async def list_section_comments(
    masterplan_id: str,
    section_id: str,
    service: CommentService = Depends(get_comment_service),
) -> list[MasterplanComment]:
    """
    Comments on one section, oldest first.
    """
    return await service.list_by_section(section_id, masterplan_id=masterplan_id)


@router.post(
    "/masterplans/{masterplan_id}/sections/{section_id}/comments",
    response_model=MasterplanComment,
)
async def add_section_comment(
    masterplan_id: str,
    section_id: str,
    request: SectionCommentRequest,
    context: RequestContext = Depends(get_request_context),
    service: CommentService = Depends(get_comment_service),
) -> MasterplanComment:
    """
    Comment on the section named in the path.
    """
    return await service.add_comment(
        section_id=section_id,
        masterplan_id=masterplan_id,
        context=context,
        content=request.content,
        category=request.category,
        mentions=request.mentions,
    )


@router.get("/comments/{comment_id}", response_model=MasterplanComment)
async def get_comment(
    comment_id: str,
    service: CommentService = Depends(get_comment_service),
) -> MasterplanComment:
    """
    Get a comment by ID.
    """
    return await service.get_comment(comment_id)


@router.patch("/comments/{comment_id}", response_model=MasterplanComment)
async def update_comment(
    comment_id: str,
    request: UpdateCommentRequest,
    context: RequestContext = Depends(get_request_context),
    service: CommentService = Depends(get_comment_service),
) -> MasterplanComment:
    """
    Edit a comment. Only its author or an admin may do so.
    """
    return await service.update_comment(
        comment_id,
        request.content,
        category=request.category,
        context=context,
    )


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: str,
    context: RequestContext = Depends(get_request_context),
    service: CommentService = Depends(get_comment_service),
) -> dict[str, Any]:
    """
    Delete a comment. Deleting a missing comment succeeds with ``deleted: false``.
    """
    deleted = await service.delete_comment(comment_id, context=context)
    return {"comment_id": comment_id, "deleted": deleted}

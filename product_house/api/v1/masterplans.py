"""
Masterplan endpoints: generation, versions, AI assistance, review and export.
"""

from datetime import datetime
from typing import Any, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field

from product_house.api.deps import get_masterplan_service, get_request_context
from product_house.core.constants import (
    DEFAULT_MASTERPLAN_TITLE,
    DEFAULT_PAGE_SIZE,
    DEFAULT_TEMPLATE_ID,
    MAX_PAGE_SIZE,
    MasterplanFormat,
)
from product_house.core.exceptions import ValidationError
from product_house.core.logging import get_logger
from product_house.domain.context import ConversationMessage, RequestContext
from product_house.domain.masterplan import ExportFile, Masterplan, MasterplanSection, MasterplanVersion
from product_house.domain.review import ReviewSession
from product_house.masterplan.templates import list_templates
from product_house.masterplan.versioning import VersionResult
from product_house.services.masterplan_service import MasterplanService

logger = get_logger(__name__)

router = APIRouter()


# Request models
class GenerateMasterplanRequest(BaseModel):
    """Request to generate a masterplan from a conversation."""

    conversation_id: str
    messages: list[ConversationMessage] = Field(default_factory=list)
    title: str = DEFAULT_MASTERPLAN_TITLE
    formats: list[str] = Field(default_factory=lambda: [MasterplanFormat.MARKDOWN.value])
    template_id: str = DEFAULT_TEMPLATE_ID


class FromMarkdownRequest(BaseModel):
    """Request to build a masterplan from existing Markdown."""

    conversation_id: str
    content: str
    title: str = DEFAULT_MASTERPLAN_TITLE
    formats: list[str] = Field(default_factory=lambda: [MasterplanFormat.MARKDOWN.value])


class SaveVersionRequest(BaseModel):
    """Edited sections to save as a new version."""

    sections: list[MasterplanSection]
    expected_version: Optional[str] = None
    summary: Optional[str] = None


class RestoreVersionRequest(BaseModel):
    expected_version: Optional[str] = None


class RefineSectionRequest(BaseModel):
    """Instruction for rewriting one section."""

    instruction: str = Field(..., min_length=1)


class UpdateSectionRequest(BaseModel):
    """New content for one section, usually an accepted refinement."""

    content: str
    expected_version: Optional[str] = None


class ReviewRequest(BaseModel):
    prompt: str = Field(..., min_length=1)


# Response models
class MasterplanListItem(BaseModel):
    """List item for masterplan listing."""

    masterplan_id: str
    title: str
    version: str
    sections: int
    created_at: datetime
    updated_at: datetime


class MasterplanListResponse(BaseModel):
    """Response for masterplan listing."""

    masterplans: list[MasterplanListItem]
    total: int
    limit: int
    offset: int


class SaveVersionResponse(BaseModel):
    """Outcome of a save; ``version`` is null when an empty save was suppressed."""

    masterplan: Masterplan
    version: Optional[MasterplanVersion] = None
    recorded: bool


class RefineSectionResponse(BaseModel):
    section_id: str
    original_content: str
    suggested_content: str


class TemplateInfo(BaseModel):
    id: str
    name: str
    description: str
    sections: list[str]


def _content_disposition(export: ExportFile, masterplan_id: str) -> str:
    """
    Attachment header safe for latin-1 transport.

    Non-ASCII filenames get an ASCII ``filename`` fallback plus an RFC 5987
    ``filename*`` carrying the UTF-8 name.
    """
    ascii_name = export.filename.encode("ascii", "ignore").decode("ascii")
    if ascii_name == export.extension or not ascii_name:
        ascii_name = f"{masterplan_id}{export.extension}"

    value = f'attachment; filename="{ascii_name}"'
    if ascii_name != export.filename:
        value += f"; filename*=UTF-8''{quote(export.filename)}"
    return value


def _version_response(result: VersionResult) -> SaveVersionResponse:
    return SaveVersionResponse(
        masterplan=result.masterplan,
        version=result.version,
        recorded=result.recorded,
    )


@router.post("/masterplans/generate", response_model=Masterplan)
async def generate_masterplan(
    request: GenerateMasterplanRequest,
    context: RequestContext = Depends(get_request_context),
    service: MasterplanService = Depends(get_masterplan_service),
) -> Masterplan:
    """
    Generate a masterplan from a conversation.

    Without posted messages, the stored conversation is used.
    """
    return await service.generate(
        conversation_id=request.conversation_id,
        messages=request.messages,
        context=context,
        title=request.title,
        formats=request.formats,
        template_id=request.template_id,
    )


@router.post("/masterplans/from-markdown", response_model=Masterplan)
async def create_from_markdown(
    request: FromMarkdownRequest,
    context: RequestContext = Depends(get_request_context),
    service: MasterplanService = Depends(get_masterplan_service),
) -> Masterplan:
    """
    Build a masterplan from Markdown without calling the completion service.
    """
    return await service.create_from_markdown(
        request.content,
        conversation_id=request.conversation_id,
        context=context,
        title=request.title,
        formats=request.formats,
    )


@router.get("/masterplans", response_model=MasterplanListResponse)
async def list_masterplans(
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    context: RequestContext = Depends(get_request_context),
    service: MasterplanService = Depends(get_masterplan_service),
) -> MasterplanListResponse:
    """
    List the acting user's masterplans, newest first.
    """
    masterplans = await service.list_for_user(context, limit=limit, offset=offset)

    items = [
        MasterplanListItem(
            masterplan_id=m.id,
            title=m.title,
            version=m.version,
            sections=len(m.sections),
            created_at=m.created_at,
            updated_at=m.updated_at,
        )
        for m in masterplans
    ]
    return MasterplanListResponse(masterplans=items, total=len(items), limit=limit, offset=offset)


@router.get("/masterplans/{masterplan_id}", response_model=Masterplan)
async def get_masterplan(
    masterplan_id: str,
    service: MasterplanService = Depends(get_masterplan_service),
) -> Masterplan:
    """
    Get a masterplan by ID, with its comments.
    """
    return await service.get(masterplan_id, include_comments=True)


@router.delete("/masterplans/{masterplan_id}")
async def delete_masterplan(
    masterplan_id: str,
    context: RequestContext = Depends(get_request_context),
    service: MasterplanService = Depends(get_masterplan_service),
) -> dict[str, Any]:
    """
    Delete a masterplan together with its history and comments.
    """
    deleted = await service.delete(masterplan_id, context)
    return {"masterplan_id": masterplan_id, "deleted": deleted}


@router.get("/masterplans/{masterplan_id}/versions", response_model=list[MasterplanVersion])
async def list_versions(
    masterplan_id: str,
    service: MasterplanService = Depends(get_masterplan_service),
) -> list[MasterplanVersion]:
    """
    Version history in commit order.
    """
    return await service.list_versions(masterplan_id)


@router.post("/masterplans/{masterplan_id}/versions", response_model=SaveVersionResponse)
async def save_version(
    masterplan_id: str,
    request: SaveVersionRequest,
    context: RequestContext = Depends(get_request_context),
    service: MasterplanService = Depends(get_masterplan_service),
) -> SaveVersionResponse:
    """
    Save edited sections as a new version.
    """
    result = await service.save_version(
        masterplan_id,
        request.sections,
        context,
        expected_version=request.expected_version,
        summary=request.summary,
    )
    return _version_response(result)


@router.post(
    "/masterplans/{masterplan_id}/versions/{version_id}/restore",
    response_model=Masterplan,
)
async def restore_version(
    masterplan_id: str,
    version_id: str,
    request: Optional[RestoreVersionRequest] = None,
    context: RequestContext = Depends(get_request_context),
    service: MasterplanService = Depends(get_masterplan_service),
) -> Masterplan:
    """
    Reapply a past version to the live sections.
    """
    return await service.restore_version(
        masterplan_id,
        version_id,
        context,
        expected_version=request.expected_version if request else None,
    )


@router.post(
    "/masterplans/{masterplan_id}/sections/{section_id}/refine",
    response_model=RefineSectionResponse,
)
async def refine_section(
    masterplan_id: str,
    section_id: str,
    request: RefineSectionRequest,
    context: RequestContext = Depends(get_request_context),
    service: MasterplanService = Depends(get_masterplan_service),
) -> RefineSectionResponse:
    """
    Ask the assistant to rewrite one section. The suggestion is not applied.
    """
    suggested = await service.refine_section(masterplan_id, section_id, request.instruction, context)
    masterplan = await service.get(masterplan_id)
    section = masterplan.get_section(section_id)

    return RefineSectionResponse(
        section_id=section_id,
        original_content=section.content if section else "",
        suggested_content=suggested,
    )


@router.put(
    "/masterplans/{masterplan_id}/sections/{section_id}",
    response_model=SaveVersionResponse,
)
async def update_section(
    masterplan_id: str,
    section_id: str,
    request: UpdateSectionRequest,
    context: RequestContext = Depends(get_request_context),
    service: MasterplanService = Depends(get_masterplan_service),
) -> SaveVersionResponse:
    """
    Replace one section's content as a new version.
    """
    result = await service.apply_section_content(
        masterplan_id,
        section_id,
        request.content,
        context,
        expected_version=request.expected_version,
    )
    return _version_response(result)


@router.post("/masterplans/{masterplan_id}/review", response_model=ReviewSession)
async def request_review(
    masterplan_id: str,
    request: ReviewRequest,
    context: RequestContext = Depends(get_request_context),
    service: MasterplanService = Depends(get_masterplan_service),
) -> ReviewSession:
    """
    Ask the assistant for suggestions across the whole masterplan.
    """
    return await service.request_review(masterplan_id, request.prompt, context)


@router.post("/masterplans/{masterplan_id}/review/apply", response_model=SaveVersionResponse)
async def apply_review(
    masterplan_id: str,
    session: ReviewSession,
    context: RequestContext = Depends(get_request_context),
    service: MasterplanService = Depends(get_masterplan_service),
) -> SaveVersionResponse:
    """
    Apply the selected suggestions of a review session as one version.
    """
    if session.masterplan_id != masterplan_id:
        raise ValidationError(
            f"Review session belongs to masterplan {session.masterplan_id}",
            field="masterplan_id",
        )
    result = await service.apply_review(session, context)
    return _version_response(result)


@router.get("/masterplans/{masterplan_id}/export")
async def export_masterplan(
    masterplan_id: str,
    format: str = Query(default=MasterplanFormat.MARKDOWN.value),
    service: MasterplanService = Depends(get_masterplan_service),
) -> Response:
    """
    Download one rendered format as a file.
    """
    export = await service.export(masterplan_id, format)

    return Response(
        content=export.content,
        media_type=export.mime_type,
        headers={"Content-Disposition": _content_disposition(export, masterplan_id)},
    )


@router.get("/templates", response_model=list[TemplateInfo])
async def get_templates() -> list[TemplateInfo]:
    """
    List the generation templates.
    """
    return [
        TemplateInfo(id=t.id, name=t.name, description=t.description, sections=t.sections)
        for t in list_templates()
    ]

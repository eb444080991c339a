"""
Masterplan service: generation, retrieval, versioning, AI assistance and export.
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

from product_house.clients.claude_client import ClaudeClient
from product_house.core.config import settings
from product_house.core.constants import (
    DEFAULT_FORMATS,
    DEFAULT_MASTERPLAN_TITLE,
    DEFAULT_TEMPLATE_ID,
    EXPORT_TYPES,
    MasterplanFormat,
)
from product_house.core.exceptions import (
    AuthorizationError,
    ConversationNotFoundError,
    MasterplanNotFoundError,
    NotFoundError,
    ValidationError,
    VersionNotFoundError,
)
from product_house.core.logging import LogContext, get_logger
from product_house.core.security import generate_review_id, require_user
from product_house.domain.context import ConversationMessage, RequestContext
from product_house.domain.masterplan import ExportFile, Masterplan, MasterplanSection, MasterplanVersion
from product_house.domain.review import ReviewSession
from product_house.masterplan import formatter
from product_house.masterplan.generator import MasterplanGenerator
from product_house.masterplan.review import build_review_request, parse_review_suggestions
from product_house.masterplan.templates import get_template
from product_house.masterplan.versioning import VersioningEngine, VersionResult, latest_version
from product_house.repositories.base import (
    CommentRepository,
    ConversationRepository,
    MasterplanRepository,
)

logger = get_logger(__name__)


class MasterplanService:
    """
    Service for managing the masterplan lifecycle.

    Completion calls always happen before anything is written, so a failed
    or timed-out call leaves stored state untouched.
    """

    def __init__(
        self,
        repository: MasterplanRepository,
        client: ClaudeClient,
        generator: Optional[MasterplanGenerator] = None,
        engine: Optional[VersioningEngine] = None,
        comment_repository: Optional[CommentRepository] = None,
        conversation_repository: Optional[ConversationRepository] = None,
        optimistic_concurrency: Optional[bool] = None,
    ) -> None:
        """
        Initialize the masterplan service.

        Args:
            repository: Masterplan and version storage
            client: Completion service client
            generator: Markdown-to-masterplan builder
            engine: Versioning engine (defaults from settings)
            comment_repository: Comment storage, cleared on delete
            conversation_repository: Stored conversations to generate from
            optimistic_concurrency: Check the stored version before writes
                (defaults from settings)
        """
        self.repository = repository
        self.client = client
        self.generator = generator or MasterplanGenerator()
        self.engine = engine or VersioningEngine(
            generator=self.generator,
            match_by=settings.versioning.match_sections_by,
            record_empty_versions=settings.versioning.record_empty_versions,
        )
        self.comment_repository = comment_repository
        self.conversation_repository = conversation_repository
        self.optimistic_concurrency = (
            settings.versioning.optimistic_concurrency
            if optimistic_concurrency is None
            else optimistic_concurrency
        )

    def _expected(self, masterplan: Masterplan, expected_version: Optional[str]) -> Optional[str]:
        if not self.optimistic_concurrency:
            return None
        return expected_version or masterplan.version

    async def _history_head(self, masterplan_id: str) -> Optional[str]:
        versions = await self.repository.list_versions(masterplan_id)
        return latest_version(v.version for v in versions)

    async def _stored_transcript(self, conversation_id: str) -> list[ConversationMessage]:
        if self.conversation_repository is None:
            return []
        conversation = await self.conversation_repository.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation.transcript()

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    async def generate(
        self,
        conversation_id: str,
        messages: Optional[Sequence[ConversationMessage]],
        context: RequestContext,
        title: str = DEFAULT_MASTERPLAN_TITLE,
        formats: Sequence[Union[MasterplanFormat, str]] = DEFAULT_FORMATS,
        template_id: str = DEFAULT_TEMPLATE_ID,
        timeout: Optional[float] = None,
    ) -> Masterplan:
        """
        Generate a masterplan from a conversation and store it.

        Args:
            conversation_id: Source conversation
            messages: Conversation transcript, oldest first; when empty the
                stored conversation is loaded
            context: Request context (a user is required)
            title: Document title
            formats: Formats to render
            template_id: Generation template
            timeout: Completion call timeout in seconds

        Returns:
            The stored masterplan at version 1.0

        Raises:
            AuthorizationError: Without an acting user
            ConversationNotFoundError: If no messages are given and the
                conversation is not stored
            ValidationError: If the transcript is empty
            TemplateNotFoundError: For an unknown template
            UpstreamServiceError: If the completion call fails
        """
        user = require_user(context, "generate a masterplan")
        if not messages:
            messages = await self._stored_transcript(conversation_id)
        if not messages:
            raise ValidationError("At least one message is required", field="messages")
        template = get_template(template_id)

        with LogContext(request_id=context.request_id, conversation_id=conversation_id):
            logger.info(
                "Generating masterplan",
                template=template.id,
                messages=len(messages),
                user_id=user.id,
            )
            raw_content = await self.client.generate_masterplan(
                messages,
                system_prompt=template.system_prompt,
                timeout=timeout,
            )
            return await self.create_from_markdown(
                raw_content,
                conversation_id=conversation_id,
                context=context,
                title=title,
                formats=formats,
            )

    async def create_from_markdown(
        self,
        raw_content: str,
        conversation_id: str,
        context: RequestContext,
        title: str = DEFAULT_MASTERPLAN_TITLE,
        formats: Sequence[Union[MasterplanFormat, str]] = DEFAULT_FORMATS,
    ) -> Masterplan:
        """Build a masterplan from Markdown without a completion call, and store it."""
        user = require_user(context, "create a masterplan")
        masterplan = self.generator.generate_from_markdown(
            raw_content,
            conversation_id=conversation_id,
            title=title,
            formats=formats,
            owner_id=user.id,
        )
        initial = self.engine.initial_version(masterplan, user)
        await self.repository.create(masterplan, initial)

        logger.info(
            "Masterplan stored",
            masterplan_id=masterplan.id,
            sections=len(masterplan.sections),
        )
        return masterplan

    # -------------------------------------------------------------------------
    # Retrieval
    # -------------------------------------------------------------------------

    async def get(self, masterplan_id: str, include_comments: bool = False) -> Masterplan:
        """
        Get a masterplan by ID.

        Args:
            masterplan_id: Masterplan to load
            include_comments: Attach the masterplan's comments, oldest first.
                Left as ``None`` when no comment repository is wired.

        Raises:
            MasterplanNotFoundError: If it does not exist
        """
        masterplan = await self.repository.get(masterplan_id)
        if masterplan is None:
            raise MasterplanNotFoundError(masterplan_id)
        if include_comments and self.comment_repository is not None:
            masterplan.comments = await self.comment_repository.list_by_masterplan(masterplan_id)
        return masterplan

    async def list_for_user(
        self,
        context: RequestContext,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Masterplan]:
        """Masterplans owned by the acting user, newest first."""
        user = require_user(context, "list masterplans")
        return await self.repository.list(filters={"owner_id": user.id}, limit=limit, offset=offset)

    async def delete(self, masterplan_id: str, context: RequestContext) -> bool:
        """
        Delete a masterplan with its history and comments.

        Only the owner or an admin may delete.
        """
        user = require_user(context, "delete a masterplan")
        masterplan = await self.get(masterplan_id)
        if masterplan.owner_id and masterplan.owner_id != user.id and not user.is_admin:
            raise AuthorizationError("Only the owner can delete this masterplan")

        if self.comment_repository is not None:
            await self.comment_repository.delete_by_masterplan(masterplan_id)
        deleted = await self.repository.delete(masterplan_id)

        logger.info("Masterplan deleted", masterplan_id=masterplan_id, user_id=user.id)
        return deleted

    # -------------------------------------------------------------------------
    # Versions
    # -------------------------------------------------------------------------

    async def list_versions(self, masterplan_id: str) -> list[MasterplanVersion]:
        """Version history in commit order."""
        await self.get(masterplan_id)
        return await self.repository.list_versions(masterplan_id)

    async def save_version(
        self,
        masterplan_id: str,
        sections: Sequence[MasterplanSection],
        context: RequestContext,
        expected_version: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> VersionResult:
        """
        Save edited sections as a new version.

        Args:
            masterplan_id: Masterplan to update
            sections: Full edited section list
            context: Request context (a user is required)
            expected_version: Version the edits were made against; defaults
                to the version just read
            summary: Optional changelog text

        Raises:
            ConflictError: If the stored version moved on
        """
        user = require_user(context, "save a version")
        masterplan = await self.get(masterplan_id)

        with LogContext(request_id=context.request_id, masterplan_id=masterplan_id):
            result = self.engine.create_version(
                masterplan,
                sections,
                user,
                summary=summary,
                history_head=await self._history_head(masterplan_id),
            )
            if not result.recorded:
                return result

            await self.repository.commit_version(
                result.masterplan,
                result.version,
                expected_version=self._expected(masterplan, expected_version),
            )
            return result

    async def restore_version(
        self,
        masterplan_id: str,
        version_id: str,
        context: RequestContext,
        expected_version: Optional[str] = None,
    ) -> Masterplan:
        """
        Reapply a past version to the live sections.

        No version record is appended.

        Raises:
            VersionNotFoundError: If the version is not in this masterplan's history
        """
        require_user(context, "restore a version")
        masterplan = await self.get(masterplan_id)
        version = await self.repository.get_version(masterplan_id, version_id)
        if version is None:
            raise VersionNotFoundError(version_id)

        with LogContext(request_id=context.request_id, masterplan_id=masterplan_id):
            restored = self.engine.restore_version(masterplan, version)
            await self.repository.update_masterplan(
                restored,
                expected_version=self._expected(masterplan, expected_version),
            )
        return restored

    # -------------------------------------------------------------------------
    # AI assistance
    # -------------------------------------------------------------------------

    async def refine_section(
        self,
        masterplan_id: str,
        section_id: str,
        instruction: str,
        context: RequestContext,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Ask for a rewrite of one section.

        Returns the suggested content; nothing is applied.
        """
        require_user(context, "refine a section")
        if not instruction.strip():
            raise ValidationError("Instruction must not be empty", field="instruction")

        masterplan = await self.get(masterplan_id)
        section = masterplan.get_section(section_id)
        if section is None:
            raise NotFoundError(resource_type="Section", resource_id=section_id)

        with LogContext(request_id=context.request_id, masterplan_id=masterplan_id):
            logger.info("Refining section", section_id=section_id)
            return await self.client.refine_section(
                section.title,
                section.content,
                instruction,
                timeout=timeout,
            )

    async def apply_section_content(
        self,
        masterplan_id: str,
        section_id: str,
        content: str,
        context: RequestContext,
        expected_version: Optional[str] = None,
    ) -> VersionResult:
        """Replace one section's content as a new version."""
        user = require_user(context, "edit a section")
        masterplan = await self.get(masterplan_id)

        with LogContext(request_id=context.request_id, masterplan_id=masterplan_id):
            result = self.engine.apply_ai_refinement(
                masterplan,
                section_id,
                content,
                user,
                history_head=await self._history_head(masterplan_id),
            )
            if result.recorded:
                await self.repository.commit_version(
                    result.masterplan,
                    result.version,
                    expected_version=self._expected(masterplan, expected_version),
                )
            return result

    async def request_review(
        self,
        masterplan_id: str,
        prompt: str,
        context: RequestContext,
        timeout: Optional[float] = None,
    ) -> ReviewSession:
        """
        Ask for bulk suggestions across the masterplan.

        The returned session is handed back to the caller; an empty session
        means the model proposed nothing usable.
        """
        require_user(context, "request a review")
        if not prompt.strip():
            raise ValidationError("Review prompt must not be empty", field="prompt")

        masterplan = await self.get(masterplan_id)

        with LogContext(request_id=context.request_id, masterplan_id=masterplan_id):
            response_text = await self.client.review_masterplan(
                build_review_request(masterplan, prompt),
                timeout=timeout,
            )
            suggestions = parse_review_suggestions(response_text, masterplan.sections)
            logger.info("Review suggestions parsed", suggestions=len(suggestions))

        return ReviewSession(
            id=generate_review_id(),
            masterplan_id=masterplan.id,
            base_version=masterplan.version,
            prompt=prompt,
            suggestions=suggestions,
        )

    async def apply_review(self, session: ReviewSession, context: RequestContext) -> VersionResult:
        """
        Apply the selected suggestions of a review as one new version.

        Raises:
            ValidationError: If no suggestion is selected
            ConflictError: If the masterplan moved on since the review
        """
        user = require_user(context, "apply review suggestions")
        if not session.selected_suggestions():
            raise ValidationError("No suggestions selected", field="suggestions")

        masterplan = await self.get(session.masterplan_id)
        sections = session.apply_to(masterplan.sections)

        with LogContext(request_id=context.request_id, masterplan_id=masterplan.id):
            result = self.engine.create_version(
                masterplan,
                sections,
                user,
                summary=f"Applied review: {session.prompt}" if session.prompt else "Applied review",
                history_head=await self._history_head(masterplan.id),
            )
            if result.recorded:
                await self.repository.commit_version(
                    result.masterplan,
                    result.version,
                    expected_version=self._expected(masterplan, session.base_version),
                )
            return result

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    async def export(self, masterplan_id: str, fmt: Union[MasterplanFormat, str]) -> ExportFile:
        """
        Package one format as a downloadable file.

        Uses the stored rendering when there is one and renders on demand
        otherwise.
        """
        key = formatter.coerce_format(fmt)
        masterplan = await self.get(masterplan_id)

        content = masterplan.formats.get(key)
        if content is None:
            content = formatter.render(masterplan, key)

        mime_type, extension = EXPORT_TYPES[key]
        base_name = formatter.slugify(masterplan.title) or masterplan.id
        return ExportFile(
            filename=f"{base_name}{extension}",
            mime_type=mime_type,
            extension=extension,
            content=content,
        )

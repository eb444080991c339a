"""
Unit tests for the masterplan service, with the completion client mocked.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from product_house.core.constants import MasterplanFormat
from product_house.core.exceptions import (
    AuthorizationError,
    ConflictError,
    ConversationNotFoundError,
    MasterplanNotFoundError,
    NotFoundError,
    TemplateNotFoundError,
    UnsupportedFormatError,
    UpstreamServiceError,
    ValidationError,
    VersionNotFoundError,
)
from product_house.domain.comment import MasterplanComment
from product_house.domain.context import ConversationMessage, RequestContext
from product_house.domain.conversation import Conversation, Message
from product_house.domain.masterplan import Masterplan
from product_house.masterplan.templates import get_template
from product_house.repositories.comment_repo import InMemoryCommentRepository
from product_house.repositories.conversation_repo import InMemoryConversationRepository
from product_house.repositories.masterplan_repo import InMemoryMasterplanRepository
from product_house.services.masterplan_service import MasterplanService

MESSAGES = [
    ConversationMessage(role="user", content="I want a roadmap tool"),
    ConversationMessage(role="assistant", content="Who is it for?"),
    ConversationMessage(role="user", content="Small product teams"),
]


@pytest_asyncio.fixture
async def generated(masterplan_service: MasterplanService, context: RequestContext) -> Masterplan:
    return await masterplan_service.generate("conv-1", MESSAGES, context, title="Roadmaps")


def _edit(masterplan: Masterplan, section_id: str, content: str) -> list:
    return [
        s.model_copy(update={"content": content}) if s.id == section_id else s
        for s in masterplan.sections
    ]


class TestGenerate:
    @pytest.mark.asyncio
    async def test_generate_stores_masterplan_and_initial_version(
        self,
        masterplan_service: MasterplanService,
        masterplan_repository: InMemoryMasterplanRepository,
        completion_client: AsyncMock,
        generated: Masterplan,
    ) -> None:
        assert generated.title == "Roadmaps"
        assert generated.owner_id == "user_alice"
        assert [s.id for s in generated.sections] == ["section-1", "section-2", "section-3"]
        assert await masterplan_repository.get(generated.id) == generated

        versions = await masterplan_service.list_versions(generated.id)
        assert [v.version for v in versions] == ["1.0"]

        completion_client.generate_masterplan.assert_awaited_once()
        kwargs = completion_client.generate_masterplan.await_args.kwargs
        assert kwargs["system_prompt"] == get_template("default").system_prompt

    @pytest.mark.asyncio
    async def test_generate_with_template(
        self,
        masterplan_service: MasterplanService,
        completion_client: AsyncMock,
        context: RequestContext,
    ) -> None:
        await masterplan_service.generate("conv-1", MESSAGES, context, template_id="mvp")

        kwargs = completion_client.generate_masterplan.await_args.kwargs
        assert kwargs["system_prompt"] == get_template("mvp").system_prompt

    @pytest.mark.asyncio
    async def test_unknown_template(self, masterplan_service: MasterplanService, context: RequestContext) -> None:
        with pytest.raises(TemplateNotFoundError):
            await masterplan_service.generate("conv-1", MESSAGES, context, template_id="nope")

    @pytest.mark.asyncio
    async def test_requires_user(
        self,
        masterplan_service: MasterplanService,
        anonymous_context: RequestContext,
        completion_client: AsyncMock,
    ) -> None:
        with pytest.raises(AuthorizationError):
            await masterplan_service.generate("conv-1", MESSAGES, anonymous_context)

        completion_client.generate_masterplan.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requires_messages(
        self,
        masterplan_service: MasterplanService,
        conversation_repository: InMemoryConversationRepository,
        context: RequestContext,
    ) -> None:
        await conversation_repository.save(Conversation(id="conv-empty", user_id="user_alice"))

        with pytest.raises(ValidationError):
            await masterplan_service.generate("conv-empty", [], context)

    @pytest.mark.asyncio
    async def test_without_messages_uses_stored_conversation(
        self,
        masterplan_service: MasterplanService,
        conversation_repository: InMemoryConversationRepository,
        completion_client: AsyncMock,
        context: RequestContext,
    ) -> None:
        await conversation_repository.save(Conversation(id="conv-9", user_id="user_alice"))
        for i, m in enumerate(MESSAGES):
            await conversation_repository.add_message(
                Message(id=f"msg_{i}", conversation_id="conv-9", role=m.role, content=m.content)
            )

        masterplan = await masterplan_service.generate("conv-9", None, context)

        assert masterplan.conversation_id == "conv-9"
        sent = completion_client.generate_masterplan.await_args.args[0]
        assert [m.content for m in sent] == [m.content for m in MESSAGES]

    @pytest.mark.asyncio
    async def test_without_messages_unknown_conversation(
        self,
        masterplan_service: MasterplanService,
        completion_client: AsyncMock,
        context: RequestContext,
    ) -> None:
        with pytest.raises(ConversationNotFoundError):
            await masterplan_service.generate("conv-missing", [], context)

        completion_client.generate_masterplan.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_upstream_failure_stores_nothing(
        self,
        masterplan_service: MasterplanService,
        masterplan_repository: InMemoryMasterplanRepository,
        completion_client: AsyncMock,
        context: RequestContext,
    ) -> None:
        completion_client.generate_masterplan.side_effect = UpstreamServiceError("boom", provider_status=500)

        with pytest.raises(UpstreamServiceError):
            await masterplan_service.generate("conv-1", MESSAGES, context)

        assert await masterplan_repository.list() == []

    @pytest.mark.asyncio
    async def test_create_from_markdown_skips_completion(
        self,
        masterplan_service: MasterplanService,
        completion_client: AsyncMock,
        context: RequestContext,
        sample_markdown: str,
    ) -> None:
        masterplan = await masterplan_service.create_from_markdown(
            sample_markdown,
            "conv-2",
            context,
            formats=["markdown", "pdf"],
        )

        assert set(masterplan.formats) == {MasterplanFormat.MARKDOWN, MasterplanFormat.PDF}
        completion_client.generate_masterplan.assert_not_awaited()


class TestRetrieval:
    @pytest.mark.asyncio
    async def test_get_missing(self, masterplan_service: MasterplanService) -> None:
        with pytest.raises(MasterplanNotFoundError) as exc_info:
            await masterplan_service.get("mp-missing")

        assert exc_info.value.resource_id == "mp-missing"

    @pytest.mark.asyncio
    async def test_get_attaches_comments_on_request(
        self,
        masterplan_service: MasterplanService,
        comment_repository: InMemoryCommentRepository,
        generated: Masterplan,
    ) -> None:
        await comment_repository.save(
            MasterplanComment(
                id="c1",
                masterplan_id=generated.id,
                section_id="section-1",
                user_id="user_alice",
                content="hi",
            )
        )

        plain = await masterplan_service.get(generated.id)
        with_comments = await masterplan_service.get(generated.id, include_comments=True)

        assert plain.comments is None
        assert [c.id for c in with_comments.comments] == ["c1"]

    @pytest.mark.asyncio
    async def test_list_for_user_only_returns_own(
        self,
        masterplan_service: MasterplanService,
        generated: Masterplan,
        other_context: RequestContext,
        context: RequestContext,
    ) -> None:
        assert [m.id for m in await masterplan_service.list_for_user(context)] == [generated.id]
        assert await masterplan_service.list_for_user(other_context) == []

    @pytest.mark.asyncio
    async def test_delete_removes_history_and_comments(
        self,
        masterplan_service: MasterplanService,
        comment_repository: InMemoryCommentRepository,
        generated: Masterplan,
        context: RequestContext,
    ) -> None:
        await comment_repository.save(
            MasterplanComment(
                id="c1",
                masterplan_id=generated.id,
                section_id="section-1",
                user_id="user_alice",
                content="hi",
            )
        )

        assert await masterplan_service.delete(generated.id, context) is True

        with pytest.raises(MasterplanNotFoundError):
            await masterplan_service.get(generated.id)
        assert await comment_repository.list_by_masterplan(generated.id) == []

    @pytest.mark.asyncio
    async def test_only_owner_or_admin_deletes(
        self,
        masterplan_service: MasterplanService,
        generated: Masterplan,
        other_context: RequestContext,
        admin_context: RequestContext,
    ) -> None:
        with pytest.raises(AuthorizationError):
            await masterplan_service.delete(generated.id, other_context)

        assert await masterplan_service.delete(generated.id, admin_context) is True


class TestVersions:
    @pytest.mark.asyncio
    async def test_save_version(
        self,
        masterplan_service: MasterplanService,
        generated: Masterplan,
        context: RequestContext,
    ) -> None:
        result = await masterplan_service.save_version(
            generated.id,
            _edit(generated, "section-1", "Edited summary."),
            context,
            summary="Tightened summary",
        )

        assert result.masterplan.version == "1.1"
        stored = await masterplan_service.get(generated.id)
        assert stored.get_section("section-1").content == "Edited summary."
        versions = await masterplan_service.list_versions(generated.id)
        assert [v.version for v in versions] == ["1.0", "1.1"]
        assert versions[-1].summary == "Tightened summary"
        assert versions[-1].user_id == "user_alice"

    @pytest.mark.asyncio
    async def test_stale_expected_version_conflicts(
        self,
        masterplan_service: MasterplanService,
        generated: Masterplan,
        context: RequestContext,
    ) -> None:
        await masterplan_service.save_version(generated.id, _edit(generated, "section-1", "first"), context)

        with pytest.raises(ConflictError):
            await masterplan_service.save_version(
                generated.id,
                _edit(generated, "section-1", "second"),
                context,
                expected_version="1.0",
            )

        stored = await masterplan_service.get(generated.id)
        assert stored.get_section("section-1").content == "first"
        assert stored.version == "1.1"

    @pytest.mark.asyncio
    async def test_concurrency_check_can_be_disabled(
        self,
        masterplan_repository: InMemoryMasterplanRepository,
        completion_client: AsyncMock,
        context: RequestContext,
        sample_markdown: str,
    ) -> None:
        service = MasterplanService(
            repository=masterplan_repository,
            client=completion_client,
            optimistic_concurrency=False,
        )
        masterplan = await service.create_from_markdown(sample_markdown, "conv-1", context)
        await service.save_version(masterplan.id, _edit(masterplan, "section-1", "first"), context)

        result = await service.save_version(
            masterplan.id,
            _edit(masterplan, "section-1", "second"),
            context,
            expected_version="1.0",
        )

        assert result.masterplan.version == "1.2"

    @pytest.mark.asyncio
    async def test_restore_then_save_keeps_numbers_increasing(
        self,
        masterplan_service: MasterplanService,
        generated: Masterplan,
        context: RequestContext,
    ) -> None:
        first = await masterplan_service.save_version(generated.id, _edit(generated, "section-1", "B"), context)
        second = await masterplan_service.save_version(
            generated.id,
            _edit(first.masterplan, "section-1", "C"),
            context,
        )

        restored = await masterplan_service.restore_version(generated.id, first.version.id, context)

        assert restored.version == "1.1"
        assert restored.get_section("section-1").content == "B"
        # Restore appends nothing
        assert len(await masterplan_service.list_versions(generated.id)) == 3

        after = await masterplan_service.save_version(
            generated.id,
            _edit(restored, "section-2", "new features"),
            context,
        )
        assert second.masterplan.version == "1.2"
        assert after.masterplan.version == "1.3"

    @pytest.mark.asyncio
    async def test_restore_unknown_version(
        self,
        masterplan_service: MasterplanService,
        generated: Masterplan,
        context: RequestContext,
    ) -> None:
        with pytest.raises(VersionNotFoundError):
            await masterplan_service.restore_version(generated.id, "ver_missing", context)


class TestAssistance:
    @pytest.mark.asyncio
    async def test_refine_returns_suggestion_without_applying(
        self,
        masterplan_service: MasterplanService,
        completion_client: AsyncMock,
        generated: Masterplan,
        context: RequestContext,
    ) -> None:
        suggestion = await masterplan_service.refine_section(
            generated.id,
            "section-3",
            "Mention caching",
            context,
        )

        assert suggestion == "Sharper section text."
        completion_client.refine_section.assert_awaited_once()
        args = completion_client.refine_section.await_args.args
        assert args[0] == "Technical Specifications"
        assert args[2] == "Mention caching"
        assert (await masterplan_service.get(generated.id)).version == "1.0"

    @pytest.mark.asyncio
    async def test_refine_unknown_section(
        self,
        masterplan_service: MasterplanService,
        generated: Masterplan,
        context: RequestContext,
    ) -> None:
        with pytest.raises(NotFoundError):
            await masterplan_service.refine_section(generated.id, "section-99", "x", context)

    @pytest.mark.asyncio
    async def test_apply_section_content(
        self,
        masterplan_service: MasterplanService,
        generated: Masterplan,
        context: RequestContext,
    ) -> None:
        result = await masterplan_service.apply_section_content(
            generated.id,
            "section-3",
            "Sharper section text.",
            context,
        )

        assert result.version.changed_section_ids == ["section-3"]
        stored = await masterplan_service.get(generated.id)
        assert stored.get_section("section-3").content == "Sharper section text."
        assert stored.version == "1.1"

    @pytest.mark.asyncio
    async def test_review_round_trip(
        self,
        masterplan_service: MasterplanService,
        generated: Masterplan,
        context: RequestContext,
    ) -> None:
        session = await masterplan_service.request_review(generated.id, "Think bigger", context)

        assert session.base_version == "1.0"
        assert [s.section_id for s in session.suggestions] == ["section-1", "section-3"]

        session.toggle(1)
        result = await masterplan_service.apply_review(session, context)

        stored = await masterplan_service.get(generated.id)
        assert stored.version == "1.1"
        assert stored.get_section("section-1").content == "A planning tool for distributed product teams."
        assert stored.get_section("section-3").content == generated.get_section("section-3").content
        assert result.version.changed_section_ids == ["section-1"]

    @pytest.mark.asyncio
    async def test_apply_review_with_nothing_selected(
        self,
        masterplan_service: MasterplanService,
        generated: Masterplan,
        context: RequestContext,
    ) -> None:
        session = await masterplan_service.request_review(generated.id, "Think bigger", context)
        session.select_none()

        with pytest.raises(ValidationError):
            await masterplan_service.apply_review(session, context)

    @pytest.mark.asyncio
    async def test_apply_stale_review_conflicts(
        self,
        masterplan_service: MasterplanService,
        generated: Masterplan,
        context: RequestContext,
    ) -> None:
        session = await masterplan_service.request_review(generated.id, "Think bigger", context)
        await masterplan_service.save_version(generated.id, _edit(generated, "section-2", "moved on"), context)

        with pytest.raises(ConflictError):
            await masterplan_service.apply_review(session, context)


class TestExport:
    @pytest.mark.asyncio
    async def test_export_stored_format(self, masterplan_service: MasterplanService, generated: Masterplan) -> None:
        export = await masterplan_service.export(generated.id, "markdown")

        assert export.filename == "roadmaps.md"
        assert export.mime_type == "text/markdown"
        assert export.content == generated.formats[MasterplanFormat.MARKDOWN]

    @pytest.mark.asyncio
    async def test_export_renders_on_demand(self, masterplan_service: MasterplanService, generated: Masterplan) -> None:
        export = await masterplan_service.export(generated.id, MasterplanFormat.PDF)

        assert export.filename == "roadmaps.html"
        assert export.mime_type == "text/html"
        assert export.content.startswith("<!DOCTYPE html>")

    @pytest.mark.asyncio
    async def test_export_unknown_format(self, masterplan_service: MasterplanService, generated: Masterplan) -> None:
        with pytest.raises(UnsupportedFormatError):
            await masterplan_service.export(generated.id, "docx")

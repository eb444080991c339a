"""
Unit tests for the comment service.
"""

import pytest
import pytest_asyncio

from product_house.core.constants import CommentCategory
from product_house.core.exceptions import (
    AuthorizationError,
    CommentNotFoundError,
    MasterplanNotFoundError,
    NotFoundError,
    ValidationError,
)
from product_house.domain.comment import MasterplanComment
from product_house.domain.context import RequestContext, User
from product_house.domain.masterplan import Masterplan
from product_house.masterplan.versioning import VersioningEngine
from product_house.repositories.masterplan_repo import InMemoryMasterplanRepository
from product_house.services.comment_service import CommentService


@pytest_asyncio.fixture
async def stored(
    masterplan_repository: InMemoryMasterplanRepository,
    sample_masterplan: Masterplan,
    engine: VersioningEngine,
    user: User,
) -> Masterplan:
    await masterplan_repository.create(sample_masterplan, engine.initial_version(sample_masterplan, user))
    return sample_masterplan


@pytest_asyncio.fixture
async def comment(
    comment_service: CommentService,
    stored: Masterplan,
    context: RequestContext,
) -> MasterplanComment:
    return await comment_service.add_comment(
        "s2",
        stored.id,
        context,
        "Is this in scope? @bob @carol",
        category=CommentCategory.CLARIFICATION,
    )


class TestAddComment:
    @pytest.mark.asyncio
    async def test_add_extracts_mentions(self, comment: MasterplanComment) -> None:
        assert comment.id.startswith("cmt_")
        assert comment.section_id == "s2"
        assert comment.user_id == "user_alice"
        assert comment.user_name == "Alice"
        assert comment.category == CommentCategory.CLARIFICATION
        assert comment.mentions == ["bob", "carol"]

    @pytest.mark.asyncio
    async def test_explicit_mentions_win(
        self,
        comment_service: CommentService,
        stored: Masterplan,
        context: RequestContext,
    ) -> None:
        created = await comment_service.add_comment("s1", stored.id, context, "@bob look", mentions=["dave"])

        assert created.mentions == ["dave"]

    @pytest.mark.asyncio
    async def test_requires_user(
        self,
        comment_service: CommentService,
        stored: Masterplan,
        anonymous_context: RequestContext,
    ) -> None:
        with pytest.raises(AuthorizationError):
            await comment_service.add_comment("s1", stored.id, anonymous_context, "hello")

    @pytest.mark.asyncio
    async def test_unknown_masterplan(self, comment_service: CommentService, context: RequestContext) -> None:
        with pytest.raises(MasterplanNotFoundError):
            await comment_service.add_comment("s1", "mp-missing", context, "hello")

    @pytest.mark.asyncio
    async def test_unknown_section(
        self,
        comment_service: CommentService,
        stored: Masterplan,
        context: RequestContext,
    ) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await comment_service.add_comment("s9", stored.id, context, "hello")

        assert exc_info.value.details["resource_type"] == "Section"

    @pytest.mark.asyncio
    async def test_blank_content(
        self,
        comment_service: CommentService,
        stored: Masterplan,
        context: RequestContext,
    ) -> None:
        with pytest.raises(ValidationError):
            await comment_service.add_comment("s1", stored.id, context, "   ")


class TestUpdateComment:
    @pytest.mark.asyncio
    async def test_author_updates_and_mentions_refresh(
        self,
        comment_service: CommentService,
        comment: MasterplanComment,
        context: RequestContext,
    ) -> None:
        updated = await comment_service.update_comment(
            comment.id,
            "Risky, ask @erin",
            category=CommentCategory.RISK,
            context=context,
        )

        assert updated.content == "Risky, ask @erin"
        assert updated.category == CommentCategory.RISK
        assert updated.mentions == ["erin"]
        assert updated.updated_at is not None
        assert (await comment_service.get_comment(comment.id)).content == "Risky, ask @erin"

    @pytest.mark.asyncio
    async def test_category_kept_when_omitted(
        self,
        comment_service: CommentService,
        comment: MasterplanComment,
    ) -> None:
        updated = await comment_service.update_comment(comment.id, "reworded")

        assert updated.category == CommentCategory.CLARIFICATION

    @pytest.mark.asyncio
    async def test_other_user_cannot_edit(
        self,
        comment_service: CommentService,
        comment: MasterplanComment,
        other_context: RequestContext,
    ) -> None:
        with pytest.raises(AuthorizationError):
            await comment_service.update_comment(comment.id, "hijack", context=other_context)

    @pytest.mark.asyncio
    async def test_admin_can_edit(
        self,
        comment_service: CommentService,
        comment: MasterplanComment,
        admin_context: RequestContext,
    ) -> None:
        updated = await comment_service.update_comment(comment.id, "moderated", context=admin_context)

        assert updated.content == "moderated"

    @pytest.mark.asyncio
    async def test_missing_comment(self, comment_service: CommentService) -> None:
        with pytest.raises(CommentNotFoundError):
            await comment_service.update_comment("cmt_missing", "text")


class TestDeleteAndList:
    @pytest.mark.asyncio
    async def test_delete_is_idempotent(
        self,
        comment_service: CommentService,
        comment: MasterplanComment,
        context: RequestContext,
    ) -> None:
        assert await comment_service.delete_comment(comment.id, context) is True
        assert await comment_service.delete_comment(comment.id, context) is False
        assert await comment_service.list_by_section("s2") == []

    @pytest.mark.asyncio
    async def test_other_user_cannot_delete(
        self,
        comment_service: CommentService,
        comment: MasterplanComment,
        other_context: RequestContext,
    ) -> None:
        with pytest.raises(AuthorizationError):
            await comment_service.delete_comment(comment.id, other_context)

        assert await comment_service.get_comment(comment.id) == comment

    @pytest.mark.asyncio
    async def test_lists_scope_to_section_and_masterplan(
        self,
        comment_service: CommentService,
        comment: MasterplanComment,
        stored: Masterplan,
        context: RequestContext,
    ) -> None:
        second = await comment_service.add_comment("s2", stored.id, context, "second")
        elsewhere = await comment_service.add_comment("s3", stored.id, context, "elsewhere")

        section_ids = [c.id for c in await comment_service.list_by_section("s2", masterplan_id=stored.id)]
        assert section_ids == [comment.id, second.id]

        all_ids = {c.id for c in await comment_service.list_by_masterplan(stored.id)}
        assert all_ids == {comment.id, second.id, elsewhere.id}

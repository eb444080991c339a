"""
Pytest configuration and fixtures.
"""

from datetime import datetime, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from product_house.api import deps
from product_house.clients.claude_client import ClaudeClient, CompletionResponse
from product_house.core.constants import MasterplanFormat, UserRole
from product_house.domain.context import RequestContext, User
from product_house.domain.masterplan import Masterplan, MasterplanSection
from product_house.main import app
from product_house.masterplan.generator import MasterplanGenerator
from product_house.masterplan.versioning import VersioningEngine
from product_house.repositories.comment_repo import InMemoryCommentRepository
from product_house.repositories.conversation_repo import InMemoryConversationRepository
from product_house.repositories.masterplan_repo import InMemoryMasterplanRepository
from product_house.services.comment_service import CommentService
from product_house.services.conversation_service import ConversationService
from product_house.services.masterplan_service import MasterplanService

SAMPLE_MARKDOWN = """# Executive Summary
A planning tool for small product teams.

## Core Features and Functionality
- Shared roadmaps
- Release notes

## Technical Specifications
Python service on PostgreSQL.
"""

REVIEW_RESPONSE = """Here are my suggestions.

SECTION_ID: section-1
SECTION_TITLE: Executive Summary
SUGGESTED_CONTENT:
A planning tool for distributed product teams.
END_SECTION

SECTION_ID: section-3
SECTION_TITLE: Technical Specifications
SUGGESTED_CONTENT:
Python service on PostgreSQL with Redis caching.
END_SECTION
"""


@pytest.fixture
def user() -> User:
    """Regular acting user."""
    return User(id="user_alice", name="Alice", email="alice@example.com")


@pytest.fixture
def other_user() -> User:
    return User(id="user_bob", name="Bob")


@pytest.fixture
def admin_user() -> User:
    return User(id="user_root", name="Root", role=UserRole.ADMIN)


@pytest.fixture
def context(user: User) -> RequestContext:
    """Request context for the regular user."""
    return RequestContext(user=user, request_id="req_test")


@pytest.fixture
def other_context(other_user: User) -> RequestContext:
    return RequestContext(user=other_user, request_id="req_other")


@pytest.fixture
def admin_context(admin_user: User) -> RequestContext:
    return RequestContext(user=admin_user, request_id="req_admin")


@pytest.fixture
def anonymous_context() -> RequestContext:
    return RequestContext()


@pytest.fixture
def sample_markdown() -> str:
    return SAMPLE_MARKDOWN


@pytest.fixture
def sample_masterplan() -> Masterplan:
    """A small masterplan with fixed timestamps."""
    stamp = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    return Masterplan(
        id="mp-test",
        conversation_id="conv-1",
        title="Roadmap Tool",
        version="1.0",
        created_at=stamp,
        updated_at=stamp,
        sections=[
            MasterplanSection(id="s1", title="Overview", level=1, content="What it is."),
            MasterplanSection(
                id="s2",
                title="Core Features",
                level=2,
                content="- Shared roadmaps\n- Release notes",
            ),
            MasterplanSection(id="s3", title="Architecture", level=2, content="Service and database."),
        ],
        formats={MasterplanFormat.MARKDOWN: ""},
        owner_id="user_alice",
    )


@pytest.fixture
def engine() -> VersioningEngine:
    return VersioningEngine(generator=MasterplanGenerator())


@pytest.fixture
def masterplan_repository() -> InMemoryMasterplanRepository:
    return InMemoryMasterplanRepository()


@pytest.fixture
def comment_repository() -> InMemoryCommentRepository:
    return InMemoryCommentRepository()


@pytest.fixture
def conversation_repository() -> InMemoryConversationRepository:
    return InMemoryConversationRepository()


@pytest.fixture
def completion_client() -> AsyncMock:
    """Completion client stub; no network."""
    client = AsyncMock(spec=ClaudeClient)
    client.generate_masterplan.return_value = SAMPLE_MARKDOWN
    client.refine_section.return_value = "Sharper section text."
    client.review_masterplan.return_value = REVIEW_RESPONSE
    client.complete.return_value = CompletionResponse(
        id="msg_test",
        content="Who will use it first?",
        stop_reason="end_turn",
        model="claude-test",
    )
    return client


@pytest.fixture
def masterplan_service(
    masterplan_repository: InMemoryMasterplanRepository,
    comment_repository: InMemoryCommentRepository,
    conversation_repository: InMemoryConversationRepository,
    completion_client: AsyncMock,
    engine: VersioningEngine,
) -> MasterplanService:
    return MasterplanService(
        repository=masterplan_repository,
        client=completion_client,
        engine=engine,
        comment_repository=comment_repository,
        conversation_repository=conversation_repository,
        optimistic_concurrency=True,
    )


@pytest.fixture
def comment_service(
    comment_repository: InMemoryCommentRepository,
    masterplan_repository: InMemoryMasterplanRepository,
) -> CommentService:
    return CommentService(
        comment_repository=comment_repository,
        masterplan_repository=masterplan_repository,
    )


@pytest.fixture
def conversation_service(
    conversation_repository: InMemoryConversationRepository,
    completion_client: AsyncMock,
) -> ConversationService:
    return ConversationService(repository=conversation_repository, client=completion_client)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Identity headers as forwarded by the identity provider."""
    return {"X-User-Id": "user_alice", "X-User-Name": "Alice"}


@pytest_asyncio.fixture
async def async_client(
    masterplan_service: MasterplanService,
    comment_service: CommentService,
    conversation_service: ConversationService,
    completion_client: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client wired to in-memory services."""
    app.dependency_overrides[deps.get_masterplan_service] = lambda: masterplan_service
    app.dependency_overrides[deps.get_comment_service] = lambda: comment_service
    app.dependency_overrides[deps.get_conversation_service] = lambda: conversation_service
    app.dependency_overrides[deps.get_claude_client] = lambda: completion_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()

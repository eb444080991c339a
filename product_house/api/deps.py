"""
API dependencies for dependency injection.
"""

from typing import Optional

from fastapi import Request

from product_house.clients.claude_client import ClaudeClient
from product_house.core.config import settings
from product_house.core.constants import StorageBackend
from product_house.core.logging import get_logger
from product_house.core.security import resolve_request_context
from product_house.domain.context import RequestContext
from product_house.masterplan.generator import MasterplanGenerator
from product_house.masterplan.versioning import VersioningEngine
from product_house.repositories.base import (
    CommentRepository,
    ConversationRepository,
    MasterplanRepository,
)
from product_house.repositories.comment_repo import InMemoryCommentRepository, SQLCommentRepository
from product_house.repositories.conversation_repo import (
    InMemoryConversationRepository,
    SQLConversationRepository,
)
from product_house.repositories.masterplan_repo import (
    InMemoryMasterplanRepository,
    SQLMasterplanRepository,
)
from product_house.services.comment_service import CommentService
from product_house.services.conversation_service import ConversationService
from product_house.services.masterplan_service import MasterplanService

logger = get_logger(__name__)


class ServiceContainer:
    """
    Container for all application services.
    Provides singleton instances of services.
    """

    _instance: Optional["ServiceContainer"] = None

    def __init__(self) -> None:
        self._initialized = False

    @classmethod
    def get_instance(cls) -> "ServiceContainer":
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def initialize(self) -> None:
        """Initialize all services."""
        if self._initialized:
            return

        # Initialize completion client
        self._claude_client = ClaudeClient()

        # Initialize repositories
        if settings.storage_backend == StorageBackend.DATABASE:
            self._masterplan_repository: MasterplanRepository = SQLMasterplanRepository()
            self._comment_repository: CommentRepository = SQLCommentRepository()
            self._conversation_repository: ConversationRepository = SQLConversationRepository()
        else:
            self._masterplan_repository = InMemoryMasterplanRepository()
            self._comment_repository = InMemoryCommentRepository()
            self._conversation_repository = InMemoryConversationRepository()

        # Initialize engines
        self._generator = MasterplanGenerator()
        self._versioning_engine = VersioningEngine(
            generator=self._generator,
            match_by=settings.versioning.match_sections_by,
            record_empty_versions=settings.versioning.record_empty_versions,
        )

        # Initialize services
        self._masterplan_service = MasterplanService(
            repository=self._masterplan_repository,
            client=self._claude_client,
            generator=self._generator,
            engine=self._versioning_engine,
            comment_repository=self._comment_repository,
            conversation_repository=self._conversation_repository,
            optimistic_concurrency=settings.versioning.optimistic_concurrency,
        )

        self._comment_service = CommentService(
            comment_repository=self._comment_repository,
            masterplan_repository=self._masterplan_repository,
        )

        self._conversation_service = ConversationService(
            repository=self._conversation_repository,
            client=self._claude_client,
        )

        logger.info("Services initialized", storage_backend=settings.storage_backend.value)
        self._initialized = True

    async def shutdown(self) -> None:
        """Release outbound connections."""
        if self._initialized:
            await self._claude_client.close()

    @property
    def masterplan_service(self) -> MasterplanService:
        """Get the masterplan service."""
        self.initialize()
        return self._masterplan_service

    @property
    def comment_service(self) -> CommentService:
        """Get the comment service."""
        self.initialize()
        return self._comment_service

    @property
    def conversation_service(self) -> ConversationService:
        """Get the conversation service."""
        self.initialize()
        return self._conversation_service

    @property
    def claude_client(self) -> ClaudeClient:
        """Get the completion client."""
        self.initialize()
        return self._claude_client


# Singleton container instance
container = ServiceContainer.get_instance()


# Dependency functions for FastAPI
def get_masterplan_service() -> MasterplanService:
    """Get the masterplan service instance."""
    return container.masterplan_service


def get_comment_service() -> CommentService:
    """Get the comment service instance."""
    return container.comment_service


def get_conversation_service() -> ConversationService:
    """Get the conversation service instance."""
    return container.conversation_service


def get_claude_client() -> ClaudeClient:
    """Get the completion client instance."""
    return container.claude_client


def get_request_context(request: Request) -> RequestContext:
    """Resolve the acting user and theme from identity headers."""
    return resolve_request_context(
        request.headers,
        request_id=request.headers.get("X-Request-Id"),
    )

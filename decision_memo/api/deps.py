"""
API dependencies for dependency injection.
"""

from typing import Optional

from fastapi import Request

from decision_memo.core.config import settings
from decision_memo.core.security import verify_slack_signature
from decision_memo.gateway.slack_client import SlackWebClient
from decision_memo.llm.anthropic_client import AnthropicDraftGenerator
from decision_memo.orchestration.conversation import ConversationOrchestrator
from decision_memo.repositories.cache_repo import InMemoryCacheRepository
from decision_memo.repositories.session_repo import InMemorySessionRepository
from decision_memo.services.ingestion import ContentIngestion
from decision_memo.services.memo_composer import MemoComposer
from decision_memo.services.question_planner import QuestionPlanner


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

        # Initialize external clients
        self._slack_client = SlackWebClient()
        self._draft_generator = AnthropicDraftGenerator()

        # Initialize repositories
        self._session_repository = InMemorySessionRepository()
        self._cache_repository = InMemoryCacheRepository(
            default_ttl_seconds=settings.memo.event_dedupe_ttl,
        )

        # Initialize services
        self._ingestion = ContentIngestion(self._slack_client)
        self._question_planner = QuestionPlanner(self._draft_generator)
        self._memo_composer = MemoComposer(self._draft_generator)

        self._orchestrator = ConversationOrchestrator(
            store=self._session_repository,
            gateway=self._slack_client,
            ingestion=self._ingestion,
            planner=self._question_planner,
            composer=self._memo_composer,
        )

        self._initialized = True

    async def shutdown(self) -> None:
        """Release network clients."""
        if self._initialized:
            await self._slack_client.close()

    @property
    def orchestrator(self) -> ConversationOrchestrator:
        """Get the conversation orchestrator."""
        self.initialize()
        return self._orchestrator

    @property
    def slack_client(self) -> SlackWebClient:
        """Get the Slack Web API client."""
        self.initialize()
        return self._slack_client

    @property
    def cache(self) -> InMemoryCacheRepository:
        """Get the cache repository."""
        self.initialize()
        return self._cache_repository


# Singleton container instance
container = ServiceContainer.get_instance()


# Dependency functions for FastAPI
def get_orchestrator() -> ConversationOrchestrator:
    """Get the conversation orchestrator instance."""
    return container.orchestrator


def get_cache() -> InMemoryCacheRepository:
    """Get the cache repository instance."""
    return container.cache


async def verify_slack_request(request: Request) -> bytes:
    """
    Authenticate an inbound Slack request and return its raw body.

    Raises:
        AuthenticationError: If the signature is missing, stale or invalid
    """
    body = await request.body()
    verify_slack_signature(
        settings.slack.signing_secret,
        body.decode("utf-8"),
        request.headers.get("X-Slack-Signature"),
        request.headers.get("X-Slack-Request-Timestamp"),
    )
    return body

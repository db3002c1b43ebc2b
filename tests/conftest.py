"""
Pytest configuration and fixtures.
"""

import asyncio
from typing import Any, AsyncGenerator, Optional, Union

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from decision_memo.api.deps import get_cache, get_orchestrator
from decision_memo.core.config import settings
from decision_memo.domain.events import FileMetadata, ThreadMessage
from decision_memo.gateway.base import MessagingGateway
from decision_memo.llm.base import DraftGenerator
from decision_memo.main import app
from decision_memo.orchestration.conversation import ConversationOrchestrator
from decision_memo.repositories.cache_repo import InMemoryCacheRepository
from decision_memo.repositories.session_repo import InMemorySessionRepository
from decision_memo.services.ingestion import ContentIngestion
from decision_memo.services.memo_composer import MemoComposer
from decision_memo.services.question_planner import QuestionPlanner

TEST_SIGNING_SECRET = "test-signing-secret"

SAMPLE_MEMO = """# Adopt Postgres for the billing service:
*What is the choice you made?*
We will move billing to Postgres.

*Why make this decision? What were the factors involved?*
• Reporting queries"""


class FakeGateway(MessagingGateway):
    """Records outbound traffic; failures are configured per method."""

    def __init__(self, dm_channel: str = "D100") -> None:
        self.dm_channel = dm_channel
        self.posts: list[dict[str, Any]] = []
        self.responses: list[dict[str, Any]] = []
        self.opened: list[str] = []
        self.thread_replies: list[ThreadMessage] = []
        self.file_metadata = FileMetadata(url="https://files.example/f1.txt", filetype="text")
        self.file_content: Union[bytes, str] = b"file transcript"
        self.failures: dict[str, Exception] = {}

    def _maybe_fail(self, method: str) -> None:
        if method in self.failures:
            raise self.failures[method]

    def texts(self, channel_id: Optional[str] = None) -> list[str]:
        return [p["text"] for p in self.posts if channel_id is None or p["channel_id"] == channel_id]

    async def open_direct_message(self, user_id: str) -> str:
        self._maybe_fail("open_direct_message")
        self.opened.append(user_id)
        return self.dm_channel

    async def post_message(
        self,
        channel_id: str,
        text: str,
        thread_ts: Optional[str] = None,
        unfurl_links: Optional[bool] = None,
    ) -> None:
        if channel_id != self.dm_channel:
            self._maybe_fail("post_message_thread")
        self.posts.append(
            {"channel_id": channel_id, "text": text, "thread_ts": thread_ts, "unfurl_links": unfurl_links}
        )

    async def respond(self, response_url: str, text: str, ephemeral: bool = True) -> None:
        self._maybe_fail("respond")
        self.responses.append({"response_url": response_url, "text": text, "ephemeral": ephemeral})

    async def get_thread_replies(self, channel_id: str, thread_ts: str) -> list[ThreadMessage]:
        self._maybe_fail("get_thread_replies")
        return list(self.thread_replies)

    async def get_file_metadata(self, file_id: str) -> FileMetadata:
        self._maybe_fail("get_file_metadata")
        return self.file_metadata

    async def download_file(self, url: str) -> Union[bytes, str]:
        self._maybe_fail("download_file")
        return self.file_content


class FakeDraftGenerator(DraftGenerator):
    """
    Returns queued responses in order; a queued exception is raised instead.

    Set ``gate`` to hold every call until the test releases it.
    """

    def __init__(self, responses: Optional[list[Union[str, Exception]]] = None) -> None:
        self.responses: list[Union[str, Exception]] = list(responses or [])
        self.prompts: list[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.started = asyncio.Event()

    async def complete(self, prompt: str, max_tokens: int) -> str:
        self.prompts.append(prompt)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if not self.responses:
            return SAMPLE_MEMO
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def draft_generator() -> FakeDraftGenerator:
    return FakeDraftGenerator()


@pytest.fixture
def session_store() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def cache() -> InMemoryCacheRepository:
    return InMemoryCacheRepository(default_ttl_seconds=600)


@pytest.fixture
def orchestrator(
    session_store: InMemorySessionRepository,
    gateway: FakeGateway,
    draft_generator: FakeDraftGenerator,
) -> ConversationOrchestrator:
    return ConversationOrchestrator(
        store=session_store,
        gateway=gateway,
        ingestion=ContentIngestion(gateway, max_context_chars=25000, bot_name="Decision Memo"),
        planner=QuestionPlanner(draft_generator, max_questions=2, max_tokens=1000),
        composer=MemoComposer(draft_generator, max_tokens=4000),
    )


@pytest.fixture
def signing_secret(monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setattr(settings.slack, "signing_secret", TEST_SIGNING_SECRET)
    return TEST_SIGNING_SECRET


@pytest_asyncio.fixture
async def async_client(
    orchestrator: ConversationOrchestrator,
    cache: InMemoryCacheRepository,
    signing_secret: str,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client wired to test doubles."""
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_cache] = lambda: cache
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def sample_memo() -> str:
    return SAMPLE_MEMO

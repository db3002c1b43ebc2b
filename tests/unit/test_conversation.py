"""
Unit tests for the conversation orchestrator, driven through fake transport
and draft generator.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from decision_memo.core.constants import CATCH_ALL_QUESTION, MEMO_SECTION_HEADINGS, Stage
from decision_memo.core.exceptions import DraftGeneratorError, MessagingGatewayError
from decision_memo.domain.events import (
    CommandInvoked,
    DirectMessageReceived,
    FileReference,
    ShortcutInvoked,
    ThreadMessage,
)
from decision_memo.domain.session import Session
from decision_memo.orchestration.conversation import ConversationOrchestrator
from decision_memo.repositories.session_repo import InMemorySessionRepository
from decision_memo.services import formatter
from tests.conftest import FakeDraftGenerator, FakeGateway

DM = "D100"


def _command() -> CommandInvoked:
    return CommandInvoked(user_id="U1", team_id="T1", response_url="https://hooks.slack.test/commands/1")


def _dm(text: str = "", files: list[FileReference] | None = None) -> DirectMessageReceived:
    return DirectMessageReceived(channel_id=DM, user_id="U1", text=text, files=files or [])


def _shortcut(thread_ts: str | None = "100.0") -> ShortcutInvoked:
    return ShortcutInvoked(
        user_id="U1",
        team_id="T1",
        channel_id="C1",
        message=ThreadMessage(sender="U2", text="Should we switch vendors?", ts="100.5", thread_ts=thread_ts),
    )


async def _start(orchestrator: ConversationOrchestrator) -> None:
    await orchestrator.handle_command(_command())


async def _asking(session_store: InMemorySessionRepository) -> Session:
    return await session_store.create(
        DM,
        Session(
            channel_id=DM,
            user_id="U1",
            stage=Stage.ASKING_QUESTIONS,
            context="We decided to switch database vendors because of cost.",
            clarifying_questions=["Who signed off?", CATCH_ALL_QUESTION],
        ),
    )


class TestCommand:
    @pytest.mark.asyncio
    async def test_opens_dm_and_prompts_for_context(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        session_store: InMemorySessionRepository,
    ) -> None:
        await _start(orchestrator)

        assert gateway.opened == ["U1"]
        assert gateway.responses[0]["text"] == formatter.command_started("T1", DM)
        assert gateway.texts(DM) == [formatter.context_prompt()]
        session = await session_store.get(DM)
        assert session.stage == Stage.STARTED
        assert session.user_id == "U1"

    @pytest.mark.asyncio
    async def test_failure_answers_through_response_url(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        session_store: InMemorySessionRepository,
    ) -> None:
        gateway.failures["open_direct_message"] = MessagingGatewayError("conversations.open", "user_not_found")

        await _start(orchestrator)

        assert gateway.responses[-1]["text"] == formatter.COMMAND_FAILED
        assert await session_store.count() == 0

    @pytest.mark.asyncio
    async def test_rerun_replaces_session(
        self,
        orchestrator: ConversationOrchestrator,
        session_store: InMemorySessionRepository,
    ) -> None:
        await _asking(session_store)

        await _start(orchestrator)

        assert (await session_store.get(DM)).stage == Stage.STARTED


class TestTextFlow:
    @pytest.mark.asyncio
    async def test_full_dialogue(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
        sample_memo: str,
    ) -> None:
        draft_generator.responses = ['["Who signed off?"]', sample_memo]
        await _start(orchestrator)

        await orchestrator.handle_direct_message(_dm("We decided to move billing to Postgres."))

        session = await session_store.get(DM)
        assert session.stage == Stage.ASKING_QUESTIONS
        assert session.context == "We decided to move billing to Postgres."
        assert session.clarifying_questions == ["Who signed off?", CATCH_ALL_QUESTION]
        assert gateway.texts(DM)[-2:] == [
            formatter.CONTEXT_RECEIVED,
            formatter.render_questions(["Who signed off?", CATCH_ALL_QUESTION]),
        ]

        posted_before = len(gateway.posts)
        await orchestrator.handle_direct_message(_dm("1) The CTO 2) Nothing else"))

        delivered = gateway.texts(DM)[posted_before:]
        assert delivered[0] == formatter.GENERATING
        assert delivered[1:] == formatter.render_memo_messages(sample_memo)
        assert len(delivered[1:]) == 3
        assert "Answer: 1) The CTO 2) Nothing else" in draft_generator.prompts[-1]
        assert await session_store.get(DM) is None

    @pytest.mark.asyncio
    async def test_empty_question_list_leaves_catch_all(
        self,
        orchestrator: ConversationOrchestrator,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
    ) -> None:
        draft_generator.responses = ["[]"]
        await _start(orchestrator)

        await orchestrator.handle_direct_message(
            _dm("We decided to switch database vendors because of cost.")
        )

        session = await session_store.get(DM)
        assert session.clarifying_questions == [CATCH_ALL_QUESTION]

    @pytest.mark.asyncio
    async def test_composition_failure_delivers_fallback_memo(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
    ) -> None:
        draft_generator.responses = [DraftGeneratorError("HTTP 500: overloaded")]
        await _asking(session_store)

        await orchestrator.handle_direct_message(_dm("It was the CFO"))

        messages = gateway.texts(DM)[-3:]
        assert messages[0] == formatter.MEMO_READY
        assert messages[1].startswith("*Decision Memo*")
        for heading in MEMO_SECTION_HEADINGS:
            assert heading in messages[1]
        assert orchestrator.composer.fallback_count == 1
        assert await session_store.get(DM) is None

    @pytest.mark.asyncio
    async def test_titled_memo_is_split(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
    ) -> None:
        draft_generator.responses = ["# Vendor Migration\n*What is the choice you made?*\nSwitch vendors."]
        await _asking(session_store)

        await orchestrator.handle_direct_message(_dm("CFO approved"))

        assert gateway.texts(DM)[-2].startswith("*Vendor Migration*\n\n*What is the choice you made?*")

    @pytest.mark.asyncio
    async def test_planner_hard_failure_goes_straight_to_memo(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        session_store: InMemorySessionRepository,
        sample_memo: str,
    ) -> None:
        orchestrator.planner.plan_clarifying_questions = AsyncMock(side_effect=RuntimeError("boom"))
        await _start(orchestrator)

        await orchestrator.handle_direct_message(_dm("Context"))

        texts = gateway.texts(DM)
        assert formatter.PLANNING_FAILED in texts
        assert texts[-3:] == formatter.render_memo_messages(sample_memo)
        assert await session_store.get(DM) is None

    @pytest.mark.asyncio
    async def test_follow_up_during_planning_extends_context(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
        sample_memo: str,
    ) -> None:
        await _start(orchestrator)
        draft_generator.responses = ['["Who signed off?"]', sample_memo]
        draft_generator.gate = asyncio.Event()

        planning = asyncio.create_task(orchestrator.handle_direct_message(_dm("Part 1: we picked vendor B")))
        await draft_generator.started.wait()
        await orchestrator.handle_direct_message(_dm("Part 2: the CFO approved"))

        waiting = await session_store.get(DM)
        assert waiting.stage == Stage.STARTED
        assert waiting.clarifying_questions == []

        draft_generator.gate.set()
        await planning

        questions = ["Who signed off?", CATCH_ALL_QUESTION]
        session = await session_store.get(DM)
        assert session.stage == Stage.ASKING_QUESTIONS
        assert session.clarifying_questions == questions
        assert session.context == "Part 1: we picked vendor B\n\nPart 2: the CFO approved"
        assert gateway.texts(DM) == [
            formatter.context_prompt(),
            formatter.CONTEXT_RECEIVED,
            formatter.CONTEXT_ADDED,
            formatter.render_questions(questions),
        ]

        await orchestrator.handle_direct_message(_dm("The CFO"))

        assert "Part 2: the CFO approved" in draft_generator.prompts[-1]
        assert "Answer: The CFO" in draft_generator.prompts[-1]
        assert gateway.texts(DM)[4] == formatter.GENERATING
        assert gateway.texts(DM)[-3:] == formatter.render_memo_messages(sample_memo)

    @pytest.mark.asyncio
    async def test_planner_failure_drafts_from_extended_context(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
        sample_memo: str,
    ) -> None:
        entered = asyncio.Event()
        release = asyncio.Event()

        async def failing_plan(context: str, participants: str = "") -> list[str]:
            entered.set()
            await release.wait()
            raise RuntimeError("boom")

        orchestrator.planner.plan_clarifying_questions = failing_plan
        await _start(orchestrator)

        planning = asyncio.create_task(orchestrator.handle_direct_message(_dm("Part 1")))
        await entered.wait()
        await orchestrator.handle_direct_message(_dm("Part 2"))
        release.set()
        await planning

        assert "Part 1\n\nPart 2" in draft_generator.prompts[-1]
        assert gateway.texts(DM)[-3:] == formatter.render_memo_messages(sample_memo)
        assert await session_store.get(DM) is None

    @pytest.mark.asyncio
    async def test_questions_dropped_if_session_moved_on(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
    ) -> None:
        await _start(orchestrator)
        draft_generator.responses = ['["Who?"]']
        draft_generator.gate = asyncio.Event()

        planning = asyncio.create_task(orchestrator.handle_direct_message(_dm("Context")))
        await draft_generator.started.wait()
        await session_store.update(DM, lambda session: setattr(session, "stage", Stage.GENERATING))
        draft_generator.gate.set()
        await planning

        session = await session_store.get(DM)
        assert session.stage == Stage.GENERATING
        assert session.clarifying_questions == []
        assert not any(text.startswith(formatter.CLARIFYING_HEADER) for text in gateway.texts(DM))

    @pytest.mark.asyncio
    async def test_message_without_session_is_ignored(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
    ) -> None:
        await orchestrator.handle_direct_message(_dm("hello?"))

        assert gateway.posts == []
        assert draft_generator.prompts == []


class TestFileFlow:
    @pytest.mark.asyncio
    async def test_text_file_becomes_context(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
    ) -> None:
        draft_generator.responses = ["[]"]
        gateway.file_content = b"Transcript: we chose vendor B."
        await _start(orchestrator)

        await orchestrator.handle_direct_message(_dm("", [FileReference(id="F1", filetype="text")]))

        session = await session_store.get(DM)
        assert session.stage == Stage.ASKING_QUESTIONS
        assert session.context == "Transcript: we chose vendor B."
        assert formatter.FILE_RECEIVED in gateway.texts(DM)

    @pytest.mark.asyncio
    async def test_unsupported_file_keeps_session_started(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
    ) -> None:
        await _start(orchestrator)

        await orchestrator.handle_direct_message(_dm("", [FileReference(id="F1", filetype="pdf")]))

        assert "paste your context directly" in gateway.texts(DM)[-1]
        assert (await session_store.get(DM)).stage == Stage.STARTED
        assert draft_generator.prompts == []

    @pytest.mark.asyncio
    async def test_missing_scope_explains_reinstall(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        session_store: InMemorySessionRepository,
    ) -> None:
        gateway.failures["get_file_metadata"] = MessagingGatewayError("files.info", "missing_scope")
        await _start(orchestrator)

        await orchestrator.handle_direct_message(_dm("", [FileReference(id="F1", filetype="text")]))

        assert "'files:read' permission" in gateway.texts(DM)[-1]
        assert (await session_store.get(DM)).stage == Stage.STARTED


class TestShortcut:
    @pytest.mark.asyncio
    async def test_thread_capture_asks_questions(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
    ) -> None:
        draft_generator.responses = ['["Who owns the migration?"]']
        gateway.thread_replies = [
            ThreadMessage(sender="U2", text="Should we switch vendors?", ts="100.0", thread_ts="100.0"),
            ThreadMessage(sender="U3", text="Yes, cost halves", ts="100.5", thread_ts="100.0"),
        ]

        await orchestrator.handle_shortcut(_shortcut())

        notification = gateway.posts[0]
        assert notification["channel_id"] == "C1"
        assert notification["thread_ts"] == "100.0"
        assert notification["unfurl_links"] is False

        session = await session_store.get(DM)
        assert session.stage == Stage.ASKING_QUESTIONS
        assert session.original_channel == "C1"
        assert session.thread_ts == "100.0"
        assert session.context == "<@U2>: Should we switch vendors?\n\n<@U3>: Yes, cost halves"
        assert session.clarifying_questions == ["Who owns the migration?", CATCH_ALL_QUESTION]

        dm_texts = gateway.texts(DM)
        assert dm_texts[0] == formatter.shortcut_intro("C1", True)
        assert dm_texts[1] == formatter.capture_preview("Should we switch vendors?", True)
        assert dm_texts[2] == formatter.render_questions(session.clarifying_questions)

    @pytest.mark.asyncio
    async def test_single_message_capture(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        session_store: InMemorySessionRepository,
    ) -> None:
        await orchestrator.handle_shortcut(_shortcut(thread_ts=None))

        session = await session_store.get(DM)
        assert session.context == "<@U2>: Should we switch vendors?"
        assert session.thread_ts == "100.5"
        assert gateway.texts(DM)[0] == formatter.shortcut_intro("C1", False)

    @pytest.mark.asyncio
    async def test_unreadable_thread_ends_session(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
    ) -> None:
        gateway.failures["get_thread_replies"] = MessagingGatewayError("conversations.replies", "not_in_channel")
        gateway.failures["post_message_thread"] = MessagingGatewayError("chat.postMessage", "not_in_channel")

        await orchestrator.handle_shortcut(_shortcut())

        assert await session_store.get(DM) is None
        dm_texts = gateway.texts(DM)
        assert len(dm_texts) == 1
        assert "/invite @Decision Memo" in dm_texts[0]
        assert draft_generator.prompts == []

    @pytest.mark.asyncio
    async def test_unexpected_failure_reported_in_thread(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
    ) -> None:
        gateway.failures["open_direct_message"] = RuntimeError("network down")

        await orchestrator.handle_shortcut(_shortcut())

        assert gateway.posts[-1]["channel_id"] == "C1"
        assert gateway.posts[-1]["text"] == formatter.shortcut_failed("U1")
        assert gateway.posts[-1]["thread_ts"] == "100.0"


class TestStop:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["stop", "STOP ", " Stop"])
    async def test_stop_cancels(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        session_store: InMemorySessionRepository,
        text: str,
    ) -> None:
        await _asking(session_store)

        await orchestrator.handle_direct_message(_dm(text))

        assert await session_store.get(DM) is None
        assert gateway.texts(DM) == [formatter.stop_acknowledgment()]

    @pytest.mark.asyncio
    async def test_stop_during_memo_drafting_discards_memo(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
    ) -> None:
        await _asking(session_store)
        draft_generator.gate = asyncio.Event()

        answering = asyncio.create_task(orchestrator.handle_direct_message(_dm("CFO approved")))
        await draft_generator.started.wait()
        assert (await session_store.get(DM)).stage == Stage.GENERATING

        await orchestrator.handle_direct_message(_dm("STOP "))
        draft_generator.gate.set()
        await answering

        texts = gateway.texts(DM)
        assert formatter.MEMO_READY not in texts
        assert texts[-1] == formatter.stop_acknowledgment()
        assert await session_store.get(DM) is None

    @pytest.mark.asyncio
    async def test_stop_during_planning_discards_questions(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        draft_generator: FakeDraftGenerator,
        session_store: InMemorySessionRepository,
    ) -> None:
        await _start(orchestrator)
        draft_generator.responses = ['["Who?"]']
        draft_generator.gate = asyncio.Event()

        planning = asyncio.create_task(orchestrator.handle_direct_message(_dm("Context")))
        await draft_generator.started.wait()

        await orchestrator.handle_direct_message(_dm("stop"))
        draft_generator.gate.set()
        await planning

        assert not any(text.startswith(formatter.CLARIFYING_HEADER) for text in gateway.texts(DM))
        assert await session_store.get(DM) is None

    @pytest.mark.asyncio
    async def test_message_while_generating_is_ignored(
        self,
        orchestrator: ConversationOrchestrator,
        gateway: FakeGateway,
        session_store: InMemorySessionRepository,
    ) -> None:
        await session_store.create(DM, Session(channel_id=DM, user_id="U1", stage=Stage.GENERATING))

        await orchestrator.handle_direct_message(_dm("done yet?"))

        assert gateway.posts == []
        assert (await session_store.get(DM)).stage == Stage.GENERATING


@pytest.mark.asyncio
async def test_stats(
    orchestrator: ConversationOrchestrator,
    session_store: InMemorySessionRepository,
) -> None:
    await _asking(session_store)

    stats = await orchestrator.stats()

    assert stats == {"active_sessions": 1, "question_planning_degraded": 0, "memo_fallbacks": 0}

"""
Conversation orchestrator: runs the memo dialogue for every inbound event.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from decision_memo.core.constants import Effect, Stage
from decision_memo.core.exceptions import (
    IngestionError,
    MessagingGatewayError,
    ProtocolError,
    ThreadAccessDeniedError,
)
from decision_memo.core.logging import LogContext, get_logger
from decision_memo.domain.events import CommandInvoked, DirectMessageReceived, ShortcutInvoked
from decision_memo.domain.session import Session
from decision_memo.gateway.base import MessagingGateway
from decision_memo.orchestration.state_machine import Decision, advance, decide
from decision_memo.repositories.base import SessionMutator, SessionStore
from decision_memo.services import formatter
from decision_memo.services.ingestion import ContentIngestion
from decision_memo.services.memo_composer import MemoComposer
from decision_memo.services.question_planner import QuestionPlanner

logger = get_logger(__name__)


class ConversationOrchestrator:
    """
    Drives each DM session from invocation to delivered memo.

    Sessions are only changed through the store, and never while an external
    call is pending: results of a slow model call are dropped if the user
    stopped (or restarted) the session in the meantime.
    """

    def __init__(
        self,
        store: SessionStore,
        gateway: MessagingGateway,
        ingestion: ContentIngestion,
        planner: QuestionPlanner,
        composer: MemoComposer,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            store: Session store keyed by DM channel
            gateway: Chat platform transport
            ingestion: Context capture
            planner: Clarifying question planner
            composer: Memo composer
        """
        self.store = store
        self.gateway = gateway
        self.ingestion = ingestion
        self.planner = planner
        self.composer = composer

    # ------------------------------------------------------------------
    # Slash command
    # ------------------------------------------------------------------

    async def handle_command(self, event: CommandInvoked) -> None:
        """Open a DM and ask the user for context."""
        with LogContext(event_type="command", user_id=event.user_id):
            try:
                channel_id = await self.gateway.open_direct_message(event.user_id)

                if event.response_url:
                    await self.gateway.respond(
                        event.response_url,
                        formatter.command_started(event.team_id, channel_id),
                    )

                session = await self.store.create(
                    channel_id, Session(channel_id=channel_id, user_id=event.user_id)
                )
                logger.info("Session started from command", channel_id=channel_id, session_id=session.id)

                await self.gateway.post_message(channel_id, formatter.context_prompt())
            except Exception:
                logger.exception("Error starting DM conversation")
                if event.response_url:
                    await self._best_effort(self.gateway.respond(event.response_url, formatter.COMMAND_FAILED))

    # ------------------------------------------------------------------
    # Message shortcut
    # ------------------------------------------------------------------

    async def handle_shortcut(self, event: ShortcutInvoked) -> None:
        """Capture the message or thread and go straight to clarifying questions."""
        with LogContext(event_type="shortcut", user_id=event.user_id, source_channel=event.channel_id):
            try:
                await self._run_shortcut(event)
            except Exception:
                logger.exception("Error processing message shortcut")
                if event.anchor_ts:
                    await self._best_effort(
                        self.gateway.post_message(
                            event.channel_id,
                            formatter.shortcut_failed(event.user_id),
                            thread_ts=event.anchor_ts,
                            unfurl_links=False,
                        )
                    )

    async def _run_shortcut(self, event: ShortcutInvoked) -> None:
        channel_id = await self.gateway.open_direct_message(event.user_id)

        try:
            await self.gateway.post_message(
                event.channel_id,
                formatter.thread_notification(event.user_id, event.team_id, channel_id),
                thread_ts=event.anchor_ts,
                unfurl_links=False,
            )
        except MessagingGatewayError as e:
            # The DM flow works without it
            logger.info("Could not post thread notification", slack_error=e.error)

        session = await self.store.create(
            channel_id,
            Session(
                channel_id=channel_id,
                user_id=event.user_id,
                original_channel=event.channel_id,
                thread_ts=event.anchor_ts,
            ),
        )

        try:
            captured = await self.ingestion.from_thread(event.channel_id, event.message)
        except ThreadAccessDeniedError as e:
            await self.store.delete(channel_id, expected_id=session.id)
            logger.info("Session closed, thread not readable", channel_id=channel_id)
            await self.gateway.post_message(channel_id, e.user_message)
            return

        updated = await self._begin_planning(
            session,
            captured.context,
            raw_messages=[message.model_dump() for message in captured.messages],
        )
        if updated is None:
            return

        await self.gateway.post_message(
            channel_id, formatter.shortcut_intro(event.channel_id, captured.in_thread)
        )
        await self.gateway.post_message(
            channel_id, formatter.capture_preview(captured.parent.text, captured.in_thread)
        )
        await self._ask_clarifying_questions(updated)

    # ------------------------------------------------------------------
    # Direct messages
    # ------------------------------------------------------------------

    async def handle_direct_message(self, event: DirectMessageReceived) -> None:
        """Advance the channel's session according to ``decide``."""
        with LogContext(event_type="direct_message", channel_id=event.channel_id):
            session = await self.store.get(event.channel_id)
            decision = decide(session, event)

            if decision.effect == Effect.IGNORE:
                if decision.protocol_error is not None:
                    logger.warning("Ignoring unexpected message", **decision.protocol_error.details)
                return

            try:
                await self._run_decision(session, event, decision)
            except ProtocolError as e:
                logger.warning("Ignoring message that lost a race", **e.details)
            except Exception:
                logger.exception("Error processing message")
                await self._best_effort(self.gateway.post_message(event.channel_id, formatter.MESSAGE_FAILED))

    async def _run_decision(
        self,
        session: Session,
        event: DirectMessageReceived,
        decision: Decision,
    ) -> None:
        effect = decision.effect

        if effect == Effect.CANCEL:
            await self.store.delete(event.channel_id)
            logger.info("Session cancelled by user", session_id=session.id, stage=session.stage.value)
            await self._post_all(event.channel_id, decision.replies)

        elif effect == Effect.INGEST_FILE:
            await self._ingest_file(session, event, decision.next_stage)

        elif effect == Effect.PLAN_FROM_TEXT:
            updated = await self._begin_planning(session, self.ingestion.from_text(event.text))
            if updated is None:
                return
            await self._post_all(event.channel_id, decision.replies)
            await self._ask_clarifying_questions(updated, decision.next_stage)

        elif effect == Effect.EXTEND_CONTEXT:
            updated = await self._extend_context(session, event.text, decision.next_stage)
            if updated is None:
                return
            logger.info("Context extended while planning", context_length=len(updated.context))
            await self._post_all(event.channel_id, decision.replies)

        elif effect == Effect.COMPOSE_WITH_ANSWERS:
            updated = await self._transition(session, decision.next_stage, clarifying_answers=event.text)
            if updated is None:
                return
            await self._post_all(event.channel_id, decision.replies)
            await self._compose_and_deliver(
                updated,
                lambda: self.composer.compose_memo_with_clarification(
                    updated.context,
                    updated.participants,
                    updated.clarifying_questions,
                    # The single reply answers the whole question set
                    [updated.clarifying_answers or ""],
                ),
            )

    async def _ingest_file(self, session: Session, event: DirectMessageReceived, next_stage: Stage) -> None:
        try:
            content = await self.ingestion.from_file(event.files[0])
        except IngestionError as e:
            logger.warning("File ingestion failed", code=e.code, **e.details)
            await self.gateway.post_message(event.channel_id, e.user_message)
            return

        updated = await self._begin_planning(session, content)
        if updated is None:
            return
        await self.gateway.post_message(event.channel_id, formatter.FILE_RECEIVED)
        await self._ask_clarifying_questions(updated, next_stage)

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def _update(self, session: Session, mutate: SessionMutator) -> Optional[Session]:
        updated = await self.store.update(session.channel_id, mutate, expected_id=session.id)
        if updated is None:
            logger.info("Session no longer active", session_id=session.id)
        return updated

    async def _transition(self, session: Session, next_stage: Stage, **changes: Any) -> Optional[Session]:
        """
        Apply ``changes`` and move to ``next_stage`` if the stored session is
        still the one (and in the stage) the caller saw.

        Returns None if the session was cancelled or replaced.

        Raises:
            ProtocolError: If another event already moved the session on
        """
        expected_stage = session.stage

        def mutate(current: Session) -> None:
            if current.stage != expected_stage:
                raise ProtocolError(current.stage.value, "direct_message")
            for key, value in changes.items():
                setattr(current, key, value)
            advance(current, next_stage)

        return await self._update(session, mutate)

    async def _begin_planning(self, session: Session, context: str, **changes: Any) -> Optional[Session]:
        """
        Store the captured context on a STARTED session.

        The session stays STARTED until its questions are stored; follow-up
        messages in the meantime extend the context.

        Raises:
            ProtocolError: If another message already supplied the context
        """

        def mutate(current: Session) -> None:
            if current.stage != Stage.STARTED or current.context:
                raise ProtocolError(current.stage.value, "direct_message")
            current.context = context
            for key, value in changes.items():
                setattr(current, key, value)

        return await self._update(session, mutate)

    async def _extend_context(self, session: Session, text: str, next_stage: Stage) -> Optional[Session]:
        def mutate(current: Session) -> None:
            if current.stage != Stage.STARTED or not current.context:
                raise ProtocolError(current.stage.value, "direct_message")
            current.context = self.ingestion.append_text(current.context, text)
            advance(current, next_stage)

        return await self._update(session, mutate)

    async def _ask_clarifying_questions(
        self,
        session: Session,
        next_stage: Stage = Stage.ASKING_QUESTIONS,
    ) -> None:
        """
        Plan the clarifying questions, then store them and advance in one step.

        If planning fails the memo is drafted from the context alone.
        """
        channel_id = session.channel_id
        try:
            questions = await self.planner.plan_clarifying_questions(session.context, session.participants)
        except Exception:
            logger.exception("Error generating clarifying questions")
            await self._best_effort(self.gateway.post_message(channel_id, formatter.PLANNING_FAILED))
            await self._compose_without_questions(session)
            return

        def set_questions(current: Session) -> None:
            if current.stage != Stage.STARTED:
                raise ProtocolError(current.stage.value, "clarifying_questions")
            current.clarifying_questions = questions
            advance(current, next_stage)

        try:
            updated = await self.store.update(channel_id, set_questions, expected_id=session.id)
        except ProtocolError as e:
            logger.warning("Discarding clarifying questions", **e.details)
            return
        if updated is None:
            logger.info("Session closed while planning questions", session_id=session.id)
            return

        logger.info(
            "Asking clarifying questions",
            count=len(questions),
            context_extended=updated.context != session.context,
        )
        await self.gateway.post_message(channel_id, formatter.render_questions(questions))

    async def _compose_without_questions(self, session: Session) -> None:
        """Skip the question round and draft from the latest stored context."""

        def skip_questions(current: Session) -> None:
            if current.stage != Stage.STARTED:
                raise ProtocolError(current.stage.value, "clarifying_questions")
            advance(current, Stage.ASKING_QUESTIONS)
            advance(current, Stage.GENERATING)

        try:
            updated = await self._update(session, skip_questions)
        except ProtocolError as e:
            logger.warning("Discarding fallback memo", **e.details)
            return
        if updated is None:
            return

        await self._compose_and_deliver(
            updated,
            lambda: self.composer.compose_memo(updated.context, updated.participants),
        )

    async def _compose_and_deliver(
        self,
        session: Session,
        compose: Callable[[], Awaitable[str]],
    ) -> None:
        """Draft the memo, deliver it if the session is still live, then close the session."""
        channel_id = session.channel_id
        try:
            memo = await compose()

            current = await self.store.get(channel_id)
            if current is None or current.id != session.id:
                logger.info("Session closed while drafting, discarding memo", session_id=session.id)
                return

            await self._post_all(channel_id, formatter.render_memo_messages(memo))
            logger.info("Decision memo delivered", session_id=session.id, from_shortcut=session.from_shortcut)
        except Exception:
            logger.exception("Error delivering memo")
            await self._best_effort(self.gateway.post_message(channel_id, formatter.MEMO_FAILED))
        finally:
            await self.store.delete(channel_id, expected_id=session.id)

    async def _post_all(self, channel_id: str, messages: list[str]) -> None:
        for text in messages:
            await self.gateway.post_message(channel_id, text)

    async def _best_effort(self, call: Awaitable[Any]) -> None:
        """Await a notification whose failure must not mask the original error."""
        try:
            await call
        except Exception as e:
            logger.error("Failed to send error notification", error=str(e))

    async def stats(self) -> dict[str, int]:
        """Counters for health reporting."""
        return {
            "active_sessions": await self.store.count(),
            "question_planning_degraded": self.planner.degraded_count,
            "memo_fallbacks": self.composer.fallback_count,
        }

"""
Decision memo drafting with a deterministic fallback.
"""

from __future__ import annotations

from typing import Optional

from decision_memo.core.config import settings
from decision_memo.core.constants import FALLBACK_MEMO_TITLE, MEMO_SECTION_HEADINGS
from decision_memo.core.exceptions import DraftGeneratorError
from decision_memo.core.logging import get_logger
from decision_memo.llm.base import DraftGenerator
from decision_memo.prompts.memo_prompts import (
    BULLET_SECTION_HINT,
    CLARIFIED_MEMO_PROMPT,
    DECISION_MEMO_PROMPT,
    FALLBACK_MEMO,
    MEMO_QUESTIONS,
    MEMO_STRUCTURE,
    participants_line,
)

logger = get_logger(__name__)


def build_memo_structure() -> str:
    """Title, heading and formatting rules shared by both memo prompts."""
    first, *rest = MEMO_SECTION_HEADINGS
    bullet_sections = "\n\n".join(f"{heading}\n{BULLET_SECTION_HINT}" for heading in rest)
    return MEMO_STRUCTURE.format(first_heading=first, bullet_sections=bullet_sections)


def format_clarification(questions: list[str], answers: list[str]) -> str:
    """
    Pair questions with answers by position.

    A question without a matching answer is rendered with an empty answer.
    Answers beyond the last question are kept as unpaired answers.
    """
    blocks = []
    for index, question in enumerate(questions):
        answer = answers[index] if index < len(answers) else ""
        blocks.append(f"Question: {question}\nAnswer: {answer}\n\n")
    for answer in answers[len(questions):]:
        blocks.append(f"Answer: {answer}\n\n")
    return "".join(blocks)


def fallback_memo(clarified: bool = False) -> str:
    """Generic memo used when the draft generator is unavailable."""
    return FALLBACK_MEMO.format(
        title=FALLBACK_MEMO_TITLE,
        source="conversation and clarification" if clarified else "conversation",
        first_heading=MEMO_SECTION_HEADINGS[0],
        second_heading=MEMO_SECTION_HEADINGS[1],
        third_heading=MEMO_SECTION_HEADINGS[2],
        fourth_heading=MEMO_SECTION_HEADINGS[3],
        fifth_heading=MEMO_SECTION_HEADINGS[4],
    )


class MemoComposer:
    """
    Drafts decision memos.

    Draft generator failures never reach the user: both entry points return
    the fallback memo instead, log ``memo_fallback_used`` and bump
    ``fallback_count``.
    """

    def __init__(self, draft_generator: DraftGenerator, max_tokens: Optional[int] = None) -> None:
        self.draft_generator = draft_generator
        self.max_tokens = max_tokens or settings.anthropic.memo_max_tokens
        self.fallback_count = 0

    def build_prompt(self, context: str, participants: str = "") -> str:
        return DECISION_MEMO_PROMPT.format(
            context=context,
            participants_line=participants_line(participants),
            memo_questions=MEMO_QUESTIONS,
            structure=build_memo_structure(),
        )

    def build_clarified_prompt(
        self,
        context: str,
        participants: str,
        questions: list[str],
        answers: list[str],
    ) -> str:
        return CLARIFIED_MEMO_PROMPT.format(
            context=context,
            participants_line=participants_line(participants),
            clarification=format_clarification(questions, answers),
            memo_questions=MEMO_QUESTIONS,
            structure=build_memo_structure(),
        )

    async def _draft(self, prompt: str, clarified: bool) -> str:
        try:
            memo = await self.draft_generator.complete(prompt, max_tokens=self.max_tokens)
        except DraftGeneratorError as e:
            return self._fallback(clarified, reason=e.code, error=e.message)

        if not memo or not memo.strip():
            return self._fallback(clarified, reason="EMPTY_RESPONSE")
        return memo

    def _fallback(self, clarified: bool, reason: str, error: Optional[str] = None) -> str:
        self.fallback_count += 1
        logger.warning(
            "memo_fallback_used",
            clarified=clarified,
            reason=reason,
            error=error,
            fallback_count=self.fallback_count,
        )
        return fallback_memo(clarified)

    async def compose_memo(self, context: str, participants: str = "") -> str:
        """Draft a memo from the context alone."""
        logger.info("Composing decision memo", context_length=len(context))
        return await self._draft(self.build_prompt(context, participants), clarified=False)

    async def compose_memo_with_clarification(
        self,
        context: str,
        participants: str,
        questions: list[str],
        answers: list[str],
    ) -> str:
        """Draft a memo from the context plus the clarification round."""
        logger.info(
            "Composing decision memo with clarification",
            context_length=len(context),
            question_count=len(questions),
        )
        prompt = self.build_clarified_prompt(context, participants, questions, answers)
        return await self._draft(prompt, clarified=True)

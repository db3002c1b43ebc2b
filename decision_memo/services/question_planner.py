"""
Clarifying-question planning.

The model is asked for a JSON array of at most ``max_questions`` strategic
questions. Responses are parsed in two ordered strategies because models
occasionally wrap the array in prose or break strict JSON:

1. strict JSON of the whole response;
2. regex extraction of the bracketed list body, split on ``","``.

Whatever the model returns, the fixed catch-all question is appended, so the
final list is never empty and the catch-all is always last.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from decision_memo.core.config import settings
from decision_memo.core.constants import CATCH_ALL_QUESTION, ParseStrategy
from decision_memo.core.exceptions import DraftGeneratorError
from decision_memo.core.logging import get_logger
from decision_memo.llm.base import DraftGenerator
from decision_memo.prompts.memo_prompts import (
    CLARIFYING_QUESTIONS_PROMPT,
    MEMO_QUESTIONS,
    participants_line,
)

logger = get_logger(__name__)

_BRACKETED_LIST = re.compile(r"\[(.*)\]", re.DOTALL)


@dataclass
class QuestionParseResult:
    """Outcome of parsing a question-list response."""

    questions: list[str] = field(default_factory=list)
    strategy: ParseStrategy = ParseStrategy.NONE
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.strategy != ParseStrategy.NONE


def _clean(items: list[Any], limit: int) -> list[str]:
    """Drop blank and null entries, then keep the first ``limit`` real questions."""
    cleaned = [str(item).strip() for item in items if item is not None]
    return [q for q in cleaned if q][:limit]


def parse_question_list(text: str, limit: int = 2) -> QuestionParseResult:
    """
    Parse a model response into at most ``limit`` questions.

    Args:
        text: Raw model response
        limit: Maximum questions to keep

    Returns:
        Parse result; ``strategy`` is NONE when nothing could be recovered
    """
    try:
        parsed = json.loads(text.strip())
    except json.JSONDecodeError as e:
        json_error = str(e)
    else:
        if isinstance(parsed, list):
            return QuestionParseResult(_clean(parsed, limit), ParseStrategy.JSON)
        return QuestionParseResult(
            [], ParseStrategy.JSON, error=f"Expected a JSON array, got {type(parsed).__name__}"
        )

    match = _BRACKETED_LIST.search(text)
    if match and match.group(1):
        parts = match.group(1).split('","')
        questions = [part.strip().strip("[]").strip().strip('"').strip() for part in parts]
        return QuestionParseResult(_clean(questions, limit), ParseStrategy.REGEX)

    return QuestionParseResult([], ParseStrategy.NONE, error=json_error)


def with_catch_all(questions: list[str]) -> list[str]:
    """Append the fixed catch-all question."""
    return [*questions, CATCH_ALL_QUESTION]


class QuestionPlanner:
    """
    Builds the clarification prompt and turns the model's answer into the
    session's clarifying questions.
    """

    def __init__(
        self,
        draft_generator: DraftGenerator,
        max_questions: Optional[int] = None,
        max_tokens: Optional[int] = None,
    ) -> None:
        """
        Initialize the planner.

        Args:
            draft_generator: LLM completion service
            max_questions: Max model-proposed questions
            max_tokens: Completion budget
        """
        self.draft_generator = draft_generator
        self.max_questions = max_questions or settings.memo.max_questions
        self.max_tokens = max_tokens or settings.anthropic.question_max_tokens
        self.degraded_count = 0

    def build_prompt(self, context: str, participants: str = "") -> str:
        return CLARIFYING_QUESTIONS_PROMPT.format(
            context=context,
            participants_line=participants_line(participants),
            memo_questions=MEMO_QUESTIONS,
            max_questions=self.max_questions,
            catch_all=CATCH_ALL_QUESTION,
        )

    async def propose_questions(self, context: str, participants: str = "") -> list[str]:
        """
        Ask the model for bespoke clarifying questions.

        Never raises for model failures: an unreachable or misbehaving model
        simply yields no questions.
        """
        try:
            response = await self.draft_generator.complete(
                self.build_prompt(context, participants),
                max_tokens=self.max_tokens,
            )
        except DraftGeneratorError as e:
            self.degraded_count += 1
            logger.warning(
                "question_planning_degraded",
                reason=e.code,
                error=e.message,
            )
            return []

        result = parse_question_list(response, limit=self.max_questions)
        if not result.ok:
            logger.warning(
                "Could not parse clarifying questions",
                error=result.error,
                response_preview=response[:200],
            )
        else:
            logger.info(
                "Parsed clarifying questions",
                strategy=result.strategy.value,
                count=len(result.questions),
            )
        return result.questions

    async def plan_clarifying_questions(self, context: str, participants: str = "") -> list[str]:
        """Model-proposed questions followed by the catch-all question."""
        return with_catch_all(await self.propose_questions(context, participants))

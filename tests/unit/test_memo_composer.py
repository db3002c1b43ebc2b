"""
Unit tests for memo composition.
"""

import pytest

from decision_memo.core.constants import MEMO_SECTION_HEADINGS
from decision_memo.core.exceptions import DraftGeneratorError, DraftGeneratorTimeoutError
from decision_memo.services.memo_composer import (
    MemoComposer,
    build_memo_structure,
    fallback_memo,
    format_clarification,
)
from tests.conftest import FakeDraftGenerator


def test_structure_lists_every_heading_in_order() -> None:
    structure = build_memo_structure()

    positions = [structure.index(heading) for heading in MEMO_SECTION_HEADINGS]
    assert positions == sorted(positions)


def test_format_clarification_pairs_by_position() -> None:
    text = format_clarification(["Q1?", "Q2?"], ["all answers here"])

    assert text == "Question: Q1?\nAnswer: all answers here\n\nQuestion: Q2?\nAnswer: \n\n"


def test_format_clarification_keeps_unpaired_answers() -> None:
    assert format_clarification([], ["The CFO approved"]) == "Answer: The CFO approved\n\n"
    assert format_clarification(["Q1?"], ["a", "b"]) == "Question: Q1?\nAnswer: a\n\nAnswer: b\n\n"


def test_fallback_memo_shape() -> None:
    memo = fallback_memo(clarified=True)

    assert memo.startswith("# Decision Memo\n")
    assert "Based on the conversation and clarification" in memo
    for heading in MEMO_SECTION_HEADINGS:
        assert heading in memo


class TestMemoComposer:
    @pytest.mark.asyncio
    async def test_returns_model_draft(self, sample_memo: str) -> None:
        composer = MemoComposer(FakeDraftGenerator([sample_memo]), max_tokens=100)

        assert await composer.compose_memo("ctx") == sample_memo
        assert composer.fallback_count == 0

    @pytest.mark.asyncio
    async def test_clarified_prompt_includes_answers(self) -> None:
        generator = FakeDraftGenerator()
        composer = MemoComposer(generator, max_tokens=100)

        await composer.compose_memo_with_clarification(
            "We chose Rust", "", ["Why now?"], ["Perf regressions"]
        )

        prompt = generator.prompts[0]
        assert "We chose Rust" in prompt
        assert "Question: Why now?\nAnswer: Perf regressions" in prompt
        assert "DO NOT include the clarifying questions and answers in the memo." in prompt

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failure",
        [DraftGeneratorError("HTTP 401: invalid x-api-key"), DraftGeneratorTimeoutError(30.0)],
    )
    async def test_failure_returns_fallback(self, failure: Exception) -> None:
        composer = MemoComposer(FakeDraftGenerator([failure]), max_tokens=100)

        memo = await composer.compose_memo("ctx")

        assert memo == fallback_memo(clarified=False)
        assert composer.fallback_count == 1

    @pytest.mark.asyncio
    async def test_blank_draft_returns_fallback(self) -> None:
        composer = MemoComposer(FakeDraftGenerator(["   \n"]), max_tokens=100)

        memo = await composer.compose_memo_with_clarification("ctx", "", ["q"], ["a"])

        assert memo == fallback_memo(clarified=True)
        assert composer.fallback_count == 1

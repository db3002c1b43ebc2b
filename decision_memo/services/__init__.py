"""
Service layer implementations.
"""

from decision_memo.services.ingestion import CapturedThread, ContentIngestion
from decision_memo.services.memo_composer import MemoComposer
from decision_memo.services.question_planner import QuestionPlanner

__all__ = [
    "CapturedThread",
    "ContentIngestion",
    "MemoComposer",
    "QuestionPlanner",
]

"""
Orchestration module for the memo dialogue.
"""

from decision_memo.orchestration.conversation import ConversationOrchestrator
from decision_memo.orchestration.state_machine import (
    Decision,
    StateMachine,
    advance,
    create_memo_state_machine,
    decide,
    is_stop_request,
)

__all__ = [
    "ConversationOrchestrator",
    "Decision",
    "StateMachine",
    "advance",
    "create_memo_state_machine",
    "decide",
    "is_stop_request",
]

"""
State machine for the decision memo dialogue.

``decide`` is the pure half of the orchestration: given the current session
and an inbound DM it returns what should happen, without any I/O. The
orchestrator runs the resulting effect.
"""

from dataclasses import dataclass, field
from typing import Optional

from decision_memo.core.constants import STOP_KEYWORD, Effect, Stage
from decision_memo.core.exceptions import ProtocolError, StateTransitionError
from decision_memo.core.logging import get_logger
from decision_memo.domain.events import DirectMessageReceived
from decision_memo.domain.session import Session
from decision_memo.services import formatter

logger = get_logger(__name__)


class StateMachine:
    """
    Generic state machine over named states.
    """

    def __init__(
        self,
        states: list[str],
        initial_state: str,
        final_states: list[str],
        transitions: dict[str, list[str]],
    ) -> None:
        """
        Initialize the state machine.

        Args:
            states: List of valid states
            initial_state: Starting state
            final_states: Terminal states
            transitions: Valid transitions {from_state: [to_states]}
        """
        self.states = set(states)
        self.initial_state = initial_state
        self.final_states = set(final_states)
        self.transitions = transitions

        if initial_state not in self.states:
            raise ValueError(f"Initial state '{initial_state}' not in states")
        for final in final_states:
            if final not in self.states:
                raise ValueError(f"Final state '{final}' not in states")

    def can_transition(self, from_state: str, to_state: str) -> bool:
        """Check if transition is valid."""
        if from_state not in self.transitions:
            return False
        return to_state in self.transitions[from_state]

    def is_final(self, state: str) -> bool:
        """Check if state is a final state."""
        return state in self.final_states


MEMO_STATES = [stage.value for stage in Stage]

MEMO_TRANSITIONS = {
    Stage.STARTED.value: [Stage.ASKING_QUESTIONS.value],
    Stage.ASKING_QUESTIONS.value: [Stage.GENERATING.value],
    Stage.GENERATING.value: [],
}


def create_memo_state_machine() -> StateMachine:
    """Create state machine for the memo dialogue."""
    return StateMachine(
        states=MEMO_STATES,
        initial_state=Stage.STARTED.value,
        final_states=[Stage.GENERATING.value],
        transitions=MEMO_TRANSITIONS,
    )


memo_state_machine = create_memo_state_machine()


def advance(session: Session, to_stage: Stage) -> None:
    """
    Move a session forward.

    Raises:
        StateTransitionError: For backward or skipping moves
    """
    if session.stage == to_stage:
        return
    if not memo_state_machine.can_transition(session.stage.value, to_stage.value):
        raise StateTransitionError(session.stage.value, to_stage.value)
    session.stage = to_stage


def is_stop_request(text: Optional[str]) -> bool:
    return (text or "").strip().lower() == STOP_KEYWORD


@dataclass
class Decision:
    """What to do with an inbound DM."""

    effect: Effect
    next_stage: Optional[Stage] = None
    replies: list[str] = field(default_factory=list)
    protocol_error: Optional[ProtocolError] = None


def _unexpected(session: Session) -> Decision:
    return Decision(
        effect=Effect.IGNORE,
        next_stage=session.stage,
        protocol_error=ProtocolError(session.stage.value, "direct_message"),
    )


def decide(session: Optional[Session], event: DirectMessageReceived) -> Decision:
    """
    Map (session, DM) to the next effect, stage and immediate replies.

    | Stage            | Context | DM        | Effect               | Next stage        |
    |------------------|---------|-----------|----------------------|-------------------|
    | (none)           |         | any       | IGNORE               | -                 |
    | any              |         | "stop"    | CANCEL               | (deleted)         |
    | GENERATING       |         | any       | IGNORE (protocol)    | GENERATING        |
    | STARTED          | empty   | with file | INGEST_FILE          | ASKING_QUESTIONS* |
    | STARTED          | empty   | text      | PLAN_FROM_TEXT       | ASKING_QUESTIONS* |
    | STARTED          | set     | text      | EXTEND_CONTEXT       | STARTED           |
    | ASKING_QUESTIONS |         | any       | COMPOSE_WITH_ANSWERS | GENERATING        |

    * reached once the clarifying questions are stored. A STARTED session
    that already has context is waiting on the planner.
    """
    if session is None:
        return Decision(effect=Effect.IGNORE)

    if is_stop_request(event.text):
        return Decision(effect=Effect.CANCEL, replies=[formatter.stop_acknowledgment()])

    if memo_state_machine.is_final(session.stage.value):
        return _unexpected(session)

    if session.stage == Stage.STARTED and session.context:
        if not event.text.strip():
            return _unexpected(session)
        return Decision(
            effect=Effect.EXTEND_CONTEXT,
            next_stage=Stage.STARTED,
            replies=[formatter.CONTEXT_ADDED],
        )

    if session.stage == Stage.STARTED:
        if event.has_file:
            return Decision(effect=Effect.INGEST_FILE, next_stage=Stage.ASKING_QUESTIONS)
        return Decision(
            effect=Effect.PLAN_FROM_TEXT,
            next_stage=Stage.ASKING_QUESTIONS,
            replies=[formatter.CONTEXT_RECEIVED],
        )

    return Decision(
        effect=Effect.COMPOSE_WITH_ANSWERS,
        next_stage=Stage.GENERATING,
        replies=[formatter.GENERATING],
    )

"""
Session domain model.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from decision_memo.core.constants import Stage
from decision_memo.core.security import generate_session_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session(BaseModel):
    """State of one in-progress memo dialogue in a DM channel."""

    id: str = Field(default_factory=generate_session_id, description="Session instance token")
    channel_id: str = Field(..., description="DM channel the dialogue runs in")
    user_id: str = Field(..., description="User driving the session")
    stage: Stage = Field(default=Stage.STARTED)

    context: str = Field(default="", description="Normalized material the memo is based on")
    # Reserved; no input path populates it yet
    participants: str = Field(default="")

    clarifying_questions: list[str] = Field(default_factory=list)
    clarifying_answers: Optional[str] = Field(
        default=None, description="Single reply treated as the answer to all questions"
    )

    # Provenance for shortcut-originated sessions
    raw_messages: list[dict[str, Any]] = Field(default_factory=list)
    original_channel: Optional[str] = Field(default=None)
    thread_ts: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def touch(self) -> None:
        """Mark the session as modified."""
        self.updated_at = _utcnow()

    @property
    def from_shortcut(self) -> bool:
        """Check if the session was opened from a message shortcut."""
        return self.original_channel is not None

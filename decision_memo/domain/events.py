"""
Inbound conversation events and the Slack objects they carry.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from decision_memo.core.constants import HUMAN_MESSAGE_SUBTYPES


class ThreadMessage(BaseModel):
    """A single Slack message, as captured from a shortcut or a thread."""

    sender: Optional[str] = Field(default=None, description="Slack user ID of the author")
    text: str = Field(default="")
    subtype: Optional[str] = Field(default=None)
    is_bot: bool = Field(default=False, description="Posted by a bot identity")
    ts: Optional[str] = Field(default=None)
    thread_ts: Optional[str] = Field(default=None)

    @classmethod
    def from_slack(cls, data: dict[str, Any]) -> ThreadMessage:
        """Create from a Slack message object."""
        return cls(
            sender=data.get("user"),
            text=data.get("text") or "",
            subtype=data.get("subtype"),
            is_bot=bool(data.get("bot_id")),
            ts=data.get("ts"),
            thread_ts=data.get("thread_ts"),
        )

    @property
    def is_automated(self) -> bool:
        """Bot posts and platform subtypes (joins, edits, ...) are not conversation content."""
        return self.is_bot or bool(self.subtype)

    @property
    def is_thread_parent(self) -> bool:
        return not self.thread_ts or self.thread_ts == self.ts


class FileReference(BaseModel):
    """A file attached to a DM."""

    id: str
    filetype: str = Field(default="")
    name: Optional[str] = Field(default=None)

    @classmethod
    def from_slack(cls, data: dict[str, Any]) -> FileReference:
        return cls(id=data["id"], filetype=data.get("filetype") or "", name=data.get("name"))


class FileMetadata(BaseModel):
    """Resolved download location of a file."""

    url: str
    filetype: str = Field(default="")


class CommandInvoked(BaseModel):
    """The slash command was run."""

    user_id: str
    team_id: str
    response_url: Optional[str] = Field(default=None)

    @classmethod
    def from_slack_payload(cls, form: dict[str, str]) -> CommandInvoked:
        return cls(
            user_id=form["user_id"],
            team_id=form.get("team_id", ""),
            response_url=form.get("response_url"),
        )


class ShortcutInvoked(BaseModel):
    """The message shortcut was run on a message or thread."""

    user_id: str
    team_id: str
    channel_id: str
    message: ThreadMessage

    @classmethod
    def from_slack_payload(cls, payload: dict[str, Any]) -> ShortcutInvoked:
        return cls(
            user_id=payload["user"]["id"],
            team_id=(payload.get("team") or {}).get("id", ""),
            channel_id=payload["channel"]["id"],
            message=ThreadMessage.from_slack(payload.get("message") or {}),
        )

    @property
    def thread_ts(self) -> Optional[str]:
        """Thread the message belongs to, if any."""
        return self.message.thread_ts

    @property
    def anchor_ts(self) -> Optional[str]:
        """Timestamp to reply under: the thread root, else the message itself."""
        return self.message.thread_ts or self.message.ts


class DirectMessageReceived(BaseModel):
    """A user posted in a DM with the bot."""

    channel_id: str
    user_id: Optional[str] = Field(default=None)
    text: str = Field(default="")
    files: list[FileReference] = Field(default_factory=list)

    @classmethod
    def from_slack_event(cls, event: dict[str, Any]) -> Optional[DirectMessageReceived]:
        """
        Build from an Events API ``message`` event.

        Returns None for events that are not human DMs (channel posts, bot
        echoes, edits and other subtypes).
        """
        if event.get("type") != "message" or event.get("channel_type") != "im":
            return None
        if event.get("bot_id"):
            return None
        subtype = event.get("subtype")
        if subtype and subtype not in HUMAN_MESSAGE_SUBTYPES:
            return None

        return cls(
            channel_id=event["channel"],
            user_id=event.get("user"),
            text=event.get("text") or "",
            files=[FileReference.from_slack(f) for f in event.get("files") or []],
        )

    @property
    def has_file(self) -> bool:
        return bool(self.files)

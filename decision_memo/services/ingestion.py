"""
Content ingestion: turns pasted text, Slack threads and uploaded files into
the single context string a memo is drafted from.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from decision_memo.core.config import settings
from decision_memo.core.constants import ACCEPTED_FILE_TYPES, TRUNCATION_NOTICE
from decision_memo.core.exceptions import (
    FileDownloadFailedError,
    MessagingGatewayError,
    MissingScopeError,
    ThreadAccessDeniedError,
    UnsupportedFileTypeError,
)
from decision_memo.core.logging import get_logger
from decision_memo.domain.events import FileReference, ThreadMessage
from decision_memo.gateway.base import MessagingGateway
from decision_memo.services.formatter import mention

logger = get_logger(__name__)


@dataclass
class CapturedThread:
    """Context captured from a message shortcut."""

    context: str
    parent: ThreadMessage
    messages: list[ThreadMessage] = field(default_factory=list)
    in_thread: bool = False


def render_message(message: ThreadMessage) -> str:
    return f"{mention(message.sender)}: {message.text}"


def render_transcript(messages: list[ThreadMessage]) -> str:
    """
    Render human messages as ``sender: text`` blocks in their original order.

    Bot posts and messages with a platform subtype are dropped.
    """
    return "\n\n".join(
        render_message(message) for message in messages if not message.is_automated
    )


def coerce_to_text(payload: Any) -> str:
    """Downloaded payloads may be bytes or already-parsed structures."""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload).decode("utf-8", errors="replace")
    return json.dumps(payload)


def is_accepted_filetype(filetype: Optional[str]) -> bool:
    return (filetype or "").lower() in ACCEPTED_FILE_TYPES


class ContentIngestion:
    """
    Normalizes every input shape to a context string capped at
    ``max_context_chars``.
    """

    def __init__(
        self,
        gateway: MessagingGateway,
        max_context_chars: Optional[int] = None,
        bot_name: Optional[str] = None,
    ) -> None:
        self.gateway = gateway
        self.max_context_chars = max_context_chars or settings.memo.max_context_chars
        self.bot_name = bot_name or settings.slack.bot_name

    def truncate(self, text: str) -> str:
        """Cut text to the cap and append the truncation notice."""
        if len(text) <= self.max_context_chars:
            return text
        logger.info(
            "Context truncated",
            original_length=len(text),
            max_context_chars=self.max_context_chars,
        )
        return text[: self.max_context_chars] + TRUNCATION_NOTICE

    def from_text(self, text: str) -> str:
        """Pasted text is used verbatim."""
        return self.truncate(text)

    def append_text(self, context: str, text: str) -> str:
        """Add a follow-up message to context that is already being worked on."""
        if context.endswith(TRUNCATION_NOTICE):
            return context
        return self.truncate(f"{context}\n\n{text}")

    async def from_thread(self, channel_id: str, root: ThreadMessage) -> CapturedThread:
        """
        Capture the message a shortcut was run on, plus its thread if it has one.

        Raises:
            ThreadAccessDeniedError: If the thread's replies cannot be read
        """
        if not root.thread_ts:
            return CapturedThread(
                context=self.truncate(render_message(root)),
                parent=root,
                messages=[root],
                in_thread=False,
            )

        try:
            replies = await self.gateway.get_thread_replies(channel_id, root.thread_ts)
        except MessagingGatewayError as e:
            logger.warning(
                "Thread replies unavailable",
                channel_id=channel_id,
                thread_ts=root.thread_ts,
                slack_error=e.error,
            )
            raise ThreadAccessDeniedError(channel_id, self.bot_name, reason=e.error) from e

        human = [message for message in replies if not message.is_automated]
        logger.info(
            "Captured thread",
            channel_id=channel_id,
            total_messages=len(replies),
            human_messages=len(human),
        )

        if not human:
            # Nothing but bot posts: the selected message is the context
            return CapturedThread(
                context=self.truncate(render_message(root)),
                parent=root,
                messages=[root],
                in_thread=True,
            )

        parent = next((m for m in human if m.is_thread_parent), human[0])
        return CapturedThread(
            context=self.truncate(render_transcript(human)),
            parent=parent,
            messages=human,
            in_thread=True,
        )

    async def from_file(self, file: FileReference) -> str:
        """
        Download an uploaded plain-text file.

        Raises:
            UnsupportedFileTypeError: Before any network call, for non-text files
            MissingScopeError: If the bot may not read files
            FileDownloadFailedError: For any other lookup or download failure
        """
        if not is_accepted_filetype(file.filetype):
            raise UnsupportedFileTypeError(file.filetype)

        logger.info("Processing file upload", file_id=file.id, filetype=file.filetype)

        try:
            metadata = await self.gateway.get_file_metadata(file.id)
            payload = await self.gateway.download_file(metadata.url)
        except MessagingGatewayError as e:
            if e.is_missing_scope:
                raise MissingScopeError("files:read") from e
            raise FileDownloadFailedError(file.id, e.error) from e

        content = coerce_to_text(payload)
        logger.info("Downloaded file content", file_id=file.id, size=len(content))
        return self.truncate(content)

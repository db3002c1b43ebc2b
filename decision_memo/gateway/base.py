"""
Messaging gateway interface consumed by the conversation core.
"""

from abc import ABC, abstractmethod
from typing import Optional, Union

from decision_memo.domain.events import FileMetadata, ThreadMessage


class MessagingGateway(ABC):
    """
    Chat-platform transport used by the orchestrator.

    Every method raises ``MessagingGatewayError`` on failure.
    """

    @abstractmethod
    async def open_direct_message(self, user_id: str) -> str:
        """Open (or reuse) a DM with the user and return its channel ID."""
        ...

    @abstractmethod
    async def post_message(
        self,
        channel_id: str,
        text: str,
        thread_ts: Optional[str] = None,
        unfurl_links: Optional[bool] = None,
    ) -> None:
        """Post a message to a channel, optionally inside a thread."""
        ...

    @abstractmethod
    async def respond(self, response_url: str, text: str, ephemeral: bool = True) -> None:
        """Reply to a slash command through its response URL."""
        ...

    @abstractmethod
    async def get_thread_replies(self, channel_id: str, thread_ts: str) -> list[ThreadMessage]:
        """Get the root message and all replies of a thread, oldest first."""
        ...

    @abstractmethod
    async def get_file_metadata(self, file_id: str) -> FileMetadata:
        """Resolve where a file can be downloaded from."""
        ...

    @abstractmethod
    async def download_file(self, url: str) -> Union[bytes, str]:
        """Download a private file with the bot's credentials."""
        ...

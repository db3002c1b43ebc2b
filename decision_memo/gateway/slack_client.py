"""
Slack Web API client implementing the messaging gateway.
"""

from typing import Any, Optional, Union

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from decision_memo.core.config import settings
from decision_memo.core.exceptions import MessagingGatewayError
from decision_memo.core.logging import get_logger
from decision_memo.domain.events import FileMetadata, ThreadMessage
from decision_memo.gateway.base import MessagingGateway

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def _is_retryable(exc: BaseException) -> bool:
    """Network failures, rate limits and Slack-side 5xx are worth another attempt."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return False


class SlackWebClient(MessagingGateway):
    """
    Messaging gateway over the Slack Web API.
    """

    def __init__(
        self,
        bot_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the Slack client.

        Args:
            bot_token: Bot OAuth token (defaults to SLACK_BOT_TOKEN)
            base_url: Web API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        self.bot_token = bot_token if bot_token is not None else settings.slack.bot_token
        self.base_url = (base_url or settings.slack.api_base_url).rstrip("/")
        self.timeout = timeout or settings.slack.timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @property
    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.bot_token}"}

    @retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(settings.slack.max_retries),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _send(
        self,
        method: str,
        url: str,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        client = await self._get_client()
        response = await client.request(method, url, json=json, params=params, headers=headers)
        response.raise_for_status()
        return response

    async def _call(
        self,
        api_method: str,
        payload: Optional[dict[str, Any]] = None,
        http_method: str = "POST",
    ) -> dict[str, Any]:
        """
        Call a Web API method.

        Args:
            api_method: Slack method name (e.g. ``chat.postMessage``)
            payload: JSON body for POST, query parameters for GET
            http_method: HTTP method

        Returns:
            Parsed response body

        Raises:
            MessagingGatewayError: On transport failure or ``ok: false``
        """
        url = f"{self.base_url}/{api_method}"
        headers = self._auth_headers
        try:
            if http_method == "GET":
                response = await self._send("GET", url, params=payload, headers=headers)
            else:
                response = await self._send("POST", url, json=payload, headers=headers)
        except httpx.HTTPStatusError as e:
            logger.error(
                "Slack request failed",
                api_method=api_method,
                status_code=e.response.status_code,
            )
            raise MessagingGatewayError(
                api_method,
                f"http_{e.response.status_code}",
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            logger.error("Slack request error", api_method=api_method, error=str(e))
            raise MessagingGatewayError(api_method, "request_failed", details={"reason": str(e)}) from e

        data = response.json()
        if not data.get("ok"):
            error = data.get("error", "unknown_error")
            logger.warning(
                "Slack API returned an error",
                api_method=api_method,
                slack_error=error,
                needed=data.get("needed"),
            )
            raise MessagingGatewayError(api_method, error, details={"needed": data.get("needed")})

        return data

    async def open_direct_message(self, user_id: str) -> str:
        data = await self._call("conversations.open", {"users": user_id})
        return data["channel"]["id"]

    async def post_message(
        self,
        channel_id: str,
        text: str,
        thread_ts: Optional[str] = None,
        unfurl_links: Optional[bool] = None,
    ) -> None:
        payload: dict[str, Any] = {"channel": channel_id, "text": text}
        if thread_ts:
            payload["thread_ts"] = thread_ts
        if unfurl_links is not None:
            payload["unfurl_links"] = unfurl_links
        await self._call("chat.postMessage", payload)

    async def respond(self, response_url: str, text: str, ephemeral: bool = True) -> None:
        body = {
            "response_type": "ephemeral" if ephemeral else "in_channel",
            "text": text,
        }
        try:
            await self._send("POST", response_url, json=body)
        except httpx.HTTPError as e:
            logger.error("Slack response_url post failed", error=str(e))
            raise MessagingGatewayError("response_url", "request_failed", details={"reason": str(e)}) from e

    async def get_thread_replies(self, channel_id: str, thread_ts: str) -> list[ThreadMessage]:
        messages: list[ThreadMessage] = []
        cursor: Optional[str] = None

        while True:
            params: dict[str, Any] = {"channel": channel_id, "ts": thread_ts, "limit": 200}
            if cursor:
                params["cursor"] = cursor
            data = await self._call("conversations.replies", params, http_method="GET")
            messages.extend(ThreadMessage.from_slack(m) for m in data.get("messages", []))

            cursor = (data.get("response_metadata") or {}).get("next_cursor")
            if not data.get("has_more") or not cursor:
                break

        return messages

    async def get_file_metadata(self, file_id: str) -> FileMetadata:
        data = await self._call("files.info", {"file": file_id}, http_method="GET")
        file_info = data["file"]
        return FileMetadata(url=file_info["url_private"], filetype=file_info.get("filetype", ""))

    async def download_file(self, url: str) -> Union[bytes, str]:
        try:
            response = await self._send("GET", url, headers=self._auth_headers)
        except httpx.HTTPStatusError as e:
            raise MessagingGatewayError(
                "files.download",
                f"http_{e.response.status_code}",
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            raise MessagingGatewayError("files.download", "request_failed", details={"reason": str(e)}) from e

        content_type = response.headers.get("content-type", "")
        if content_type.startswith("text/"):
            return response.text
        return response.content

    async def __aenter__(self) -> "SlackWebClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

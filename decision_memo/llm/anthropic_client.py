"""
Anthropic Messages API client implementing the draft generator.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import anthropic

from decision_memo.core.config import settings
from decision_memo.core.exceptions import DraftGeneratorError, DraftGeneratorTimeoutError
from decision_memo.core.logging import get_logger
from decision_memo.llm.base import DraftGenerator

logger = get_logger(__name__)


class AnthropicDraftGenerator(DraftGenerator):
    """
    Draft generator backed by ``anthropic.AsyncAnthropic``.

    Every call is bounded by ``timeout_seconds``; expiry is reported as
    ``DraftGeneratorTimeoutError`` so callers take their normal fallback path.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        client: Optional[Any] = None,
    ) -> None:
        """
        Initialize the generator.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY)
            model: Model name
            timeout_seconds: Upper bound for one completion
            client: Pre-built async client, used by tests
        """
        self.model = model or settings.anthropic.model
        self.timeout_seconds = timeout_seconds or settings.anthropic.timeout_seconds
        self._client = client or anthropic.AsyncAnthropic(
            api_key=api_key if api_key is not None else settings.anthropic.api_key,
            max_retries=0,
        )

    async def complete(self, prompt: str, max_tokens: int) -> str:
        logger.debug(
            "Sending completion request",
            model=self.model,
            max_tokens=max_tokens,
            prompt_length=len(prompt),
        )

        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self.model,
                    max_tokens=max_tokens,
                    messages=[{"role": "user", "content": prompt}],
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Completion timed out", timeout_seconds=self.timeout_seconds)
            raise DraftGeneratorTimeoutError(self.timeout_seconds) from e
        except anthropic.APIStatusError as e:
            logger.error("Completion rejected", status_code=e.status_code, error=str(e))
            raise DraftGeneratorError(
                f"HTTP {e.status_code}: {e.message}",
                details={"status_code": e.status_code, "type": type(e).__name__},
            ) from e
        except anthropic.APIError as e:
            logger.error("Completion failed", error=str(e))
            raise DraftGeneratorError(str(e), details={"type": type(e).__name__}) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            raise DraftGeneratorError(
                "Empty completion",
                details={"stop_reason": getattr(response, "stop_reason", None)},
            )

        logger.debug(
            "Received completion",
            model=self.model,
            response_length=len(text),
            stop_reason=getattr(response, "stop_reason", None),
        )
        return text

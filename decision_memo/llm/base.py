"""
Draft generator interface consumed by the question planner and memo composer.
"""

from abc import ABC, abstractmethod


class DraftGenerator(ABC):
    """
    Text completion service: prompt in, text out.

    Implementations raise ``DraftGeneratorError`` (or its timeout subclass)
    on any failure.
    """

    @abstractmethod
    async def complete(self, prompt: str, max_tokens: int) -> str:
        """Complete a single user prompt."""
        ...

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[dict] = None


class LLMProvider(ABC):
    """Chat-completion capability used by the intent classifier and the Q&A handler."""

    @abstractmethod
    async def generate(
        self,
        messages: List[dict],
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        """Return the assistant message for ``messages``."""

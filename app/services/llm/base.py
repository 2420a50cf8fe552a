from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from app.services.result import Result


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[dict] = None


class LLMProvider(ABC):
    """Abstract base class for chat-completion providers.

    Implementations never raise for provider failures: timeouts and API
    errors come back as a failed Result with an ``ai_*`` error code.
    """

    @abstractmethod
    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> Result[LLMResponse]:
        """Generate a completion."""
        pass

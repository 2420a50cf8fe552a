from app.services.llm.base import LLMProvider, LLMResponse
from app.services.llm.openai_provider import OpenAICompatibleProvider

__all__ = ["LLMProvider", "LLMResponse", "OpenAICompatibleProvider"]

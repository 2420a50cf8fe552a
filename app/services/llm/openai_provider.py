from typing import List, Optional

import httpx

from app.errors import AI_MODEL_DECOMMISSIONED, AI_PROVIDER_ERROR, AI_PROVIDER_TIMEOUT
from app.logging_config import get_logger
from app.services.llm.base import LLMProvider, LLMResponse
from app.services.result import Result

logger = get_logger("llm.openai")

DECOMMISSIONED_MARKERS = ("decommissioned", "deprecated", "model_not_found", "does not exist")


class OpenAICompatibleProvider(LLMProvider):
    """Chat completions over any OpenAI-compatible API (Groq, OpenAI)."""

    def __init__(self, api_key: str, base_url: str, default_model: str):
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = f"{base_url.rstrip('/')}/chat/completions"

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> Result[LLMResponse]:
        """Generate a completion; failures come back as Result.failure."""
        model = model or self.default_model
        timeout = timeout_seconds if timeout_seconds is not None else 20.0
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        logger.debug(f"LLM request: model={model}, messages_count={len(messages)}")

        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.post(
                    self.base_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.TimeoutException as exc:
            logger.warning(f"LLM timeout after {timeout}s: {exc}")
            return Result.failure(f"LLM timeout after {timeout}s", AI_PROVIDER_TIMEOUT)
        except httpx.HTTPError as exc:
            logger.error(f"LLM transport error: {exc}")
            return Result.failure(f"LLM transport error: {exc}", AI_PROVIDER_ERROR)

        logger.debug(f"LLM response status: {response.status_code}")

        if response.status_code != 200:
            body = response.text[:500]
            logger.error(f"LLM error: {response.status_code} {body}")
            lowered = body.lower()
            if response.status_code in (400, 404) and any(marker in lowered for marker in DECOMMISSIONED_MARKERS):
                return Result.failure(f"Model {model} unavailable: {body}", AI_MODEL_DECOMMISSIONED)
            return Result.failure(f"LLM API error: {response.status_code} - {body}", AI_PROVIDER_ERROR)

        try:
            data = response.json()
        except ValueError as exc:
            return Result.failure(f"LLM returned invalid JSON: {exc}", AI_PROVIDER_ERROR)

        if not isinstance(data, dict):
            return Result.failure("LLM returned a non-object body", AI_PROVIDER_ERROR)

        content = ""
        choices = data.get("choices") or []
        if choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            if not isinstance(message, dict):
                return Result.failure("LLM returned a malformed choice", AI_PROVIDER_ERROR)
            content = message.get("content") or ""
        logger.debug(f"LLM content: {content[:100] if content else 'EMPTY'}")

        return Result.success(
            LLMResponse(
                content=content,
                model=data.get("model", model),
                usage=data.get("usage"),
            )
        )

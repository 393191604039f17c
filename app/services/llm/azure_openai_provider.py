import time
from typing import List, Optional

import httpx

from app.errors import DependencyUnavailable, ProviderRejected, ProviderTimeout
from app.logging_config import get_logger
from app.services.llm.base import LLMProvider, LLMResponse

logger = get_logger("llm.azure_openai")


class AzureOpenAIProvider(LLMProvider):
    """Azure OpenAI chat completions over REST."""

    def __init__(
        self,
        endpoint: Optional[str],
        api_key: Optional[str],
        deployment_id: Optional[str],
        api_version: str = "2024-02-15-preview",
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = (endpoint or "").rstrip("/")
        self.api_key = api_key
        self.deployment_id = deployment_id
        self.api_version = api_version
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.endpoint}/openai/deployments/{self.deployment_id}/chat/completions"

    async def generate(
        self,
        messages: List[dict],
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        if not (self.endpoint and self.api_key and self.deployment_id):
            raise DependencyUnavailable("Azure OpenAI is not configured")

        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        payload = {"messages": messages, "temperature": temperature, "max_tokens": max_tokens}
        started = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(
                    self.url,
                    params={"api-version": self.api_version},
                    headers={"api-key": self.api_key, "Content-Type": "application/json"},
                    json=payload,
                )
        except httpx.TimeoutException as exc:
            logger.warning(
                "LLM request timed out",
                extra={"context": {"elapsed_ms": _elapsed_ms(started), "timeout_seconds": timeout}},
            )
            raise ProviderTimeout("LLM request timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("LLM transport error", extra={"context": {"error": str(exc)}})
            raise ProviderRejected(f"LLM transport error: {exc}") from exc

        if response.status_code != 200:
            logger.error(
                "LLM error response",
                extra={"context": {"status": response.status_code, "body": response.text[:500]}},
            )
            raise ProviderRejected(f"LLM API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderRejected("LLM API returned an unreadable body") from exc
        if not isinstance(data, dict):
            raise ProviderRejected("LLM API returned an unreadable body")
        content = ""
        choices = data.get("choices") or []
        if choices:
            content = (choices[0].get("message") or {}).get("content") or ""
        logger.debug(
            "LLM response",
            extra={"context": {"elapsed_ms": _elapsed_ms(started), "chars": len(content)}},
        )
        return LLMResponse(content=content, model=data.get("model", self.deployment_id or ""), usage=data.get("usage"))


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 2)

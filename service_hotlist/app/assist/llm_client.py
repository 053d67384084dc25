"""
Client for OpenAI-compatible chat completion endpoints.
"""

from typing import Optional

import httpx

from shared.errors import MalformedUpstreamPayload, UpstreamFailure
from shared.logging import get_logger


LLM_SOURCE = "llm"


class LLMClient:
    """Sends a system/user prompt pair and returns the first reply."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.logger = get_logger("hotlist.llm_client")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def chat(self, system: str, user: str, *, max_tokens: int, temperature: float) -> str:
        """Run one chat completion and return the assistant message text."""
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            response = await self._get_client().post(
                f"{self.base_url}/chat/completions",
                json=body,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            self.logger.error("LLM request error", error=str(exc))
            raise UpstreamFailure(LLM_SOURCE, str(exc) or exc.__class__.__name__) from exc

        if response.status_code >= 400:
            self.logger.error(
                "LLM API error",
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise UpstreamFailure(
                LLM_SOURCE,
                f"LLM API error: {response.status_code}",
                {"status_code": response.status_code},
            )

        try:
            return response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedUpstreamPayload(LLM_SOURCE, "unexpected chat completion shape") from exc

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

"""
HTTP client used as the producer for upstream hot-list fetches.
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import MalformedUpstreamPayload, UpstreamFailure
from shared.logging import get_logger


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class UpstreamClient:
    """Thin async GET wrapper around a shared httpx client."""

    def __init__(
        self,
        *,
        timeout: float = 6.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.logger = get_logger("hotlist.upstream")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
                headers={"User-Agent": DEFAULT_USER_AGENT},
            )
        return self._client

    async def get(
        self,
        source: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """GET ``url`` and return parsed JSON or text depending on the content type."""
        client = self._get_client()
        request_timeout = timeout if timeout is not None else self.timeout

        try:
            response = await client.get(url, headers=headers, timeout=request_timeout)
        except httpx.TimeoutException as exc:
            self.logger.warning("Upstream request timed out", source=source, url=url)
            raise UpstreamFailure(source, "request timed out", {"url": url}) from exc
        except httpx.HTTPError as exc:
            self.logger.error("Upstream request error", source=source, url=url, error=str(exc))
            raise UpstreamFailure(source, str(exc) or exc.__class__.__name__, {"url": url}) from exc

        if response.status_code >= 400:
            self.logger.error(
                "Upstream request failed",
                source=source,
                url=url,
                status_code=response.status_code,
            )
            raise UpstreamFailure(
                source,
                f"Unexpected status {response.status_code}",
                {"url": url, "status_code": response.status_code},
            )

        self.logger.debug("Upstream payload retrieved", source=source, url=url)
        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            try:
                return response.json()
            except ValueError as exc:
                raise MalformedUpstreamPayload(source, "invalid JSON body", {"url": url}) from exc
        return response.text

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

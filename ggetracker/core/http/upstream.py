"""
UpstreamClient: HTTP access to the live game proxy and the asset host

Purpose
-------
Wrap one `httpx.AsyncClient` for every outbound call the API makes:
commands to the live game-server proxy and downloads of sprite sheets and
scripts from the game's asset host.

Responsibilities
----------------
- Rewrite asset-host and Discord CDN URLs through the CDN proxy
- Turn non-2xx responses and transport failures into `UpstreamError`
- Run asset fetches under the injected RetryPolicy
- Send game commands as ``<EMPIRE_API_URL>/<zone>/<command>/<payload>``

Non-Responsibilities
--------------------
- Caching (callers go through the cache accessor)
- Serializing access to the game proxy (the castle admission queue does)
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from ggetracker.core.config.config import Config
from ggetracker.core.constants import CDN_REWRITE_PREFIXES
from ggetracker.core.exceptions import UpstreamError
from ggetracker.core.logging.logger import get_logger
from ggetracker.core.http.retry_policy import RetryPolicy

logger = get_logger(__name__)


class UpstreamClient:
    def __init__(
        self,
        retry_policy: Optional[RetryPolicy] = None,
        empire_api_url: Optional[str] = None,
        cdn_proxy_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._retry = retry_policy or RetryPolicy(max_attempts=Config.FETCH_RETRY_ATTEMPTS)
        self._empire_api_url = (empire_api_url or Config.EMPIRE_API_URL).rstrip("/")
        self._cdn_proxy_url = cdn_proxy_url or Config.CDN_PROXY_URL
        self._client = httpx.AsyncClient(
            timeout=timeout_seconds or Config.HTTP_TIMEOUT_SECONDS,
            transport=transport,
            headers={"Accept": "application/json"},
            follow_redirects=True,
        )

    def rewrite_url(self, url: str) -> str:
        """Route asset-host and Discord CDN URLs through the CDN proxy."""
        if url.startswith(CDN_REWRITE_PREFIXES):
            rewritten = str(httpx.URL(self._cdn_proxy_url, params={"url": url}))
            logger.debug("Rewritten URL to CDN proxy", extra={"url": url, "rewritten": rewritten})
            return rewritten
        return url

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise UpstreamError(url, message=f"Upstream request failed: {exc}") from exc

        if not response.is_success:
            raise UpstreamError(url, status_code=response.status_code)
        return response

    # ═══════════════════════════════════════════════════════════════════════
    # ASSET FETCHES (retried)
    # ═══════════════════════════════════════════════════════════════════════

    async def fetch_json(self, url: str) -> Any:
        """
        GET a JSON document, retrying transient failures.

        Raises
        ------
        UpstreamError
            After the last attempt failed, or on a body that is not JSON.
        """
        target = self.rewrite_url(url)

        async def attempt() -> Any:
            response = await self._get(target)
            try:
                return response.json()
            except ValueError as exc:
                raise UpstreamError(target, response.status_code, "Upstream body is not JSON") from exc

        return await self._retry.execute(attempt, f"fetch_json:{url}")

    async def fetch_text(self, url: str) -> str:
        """GET a text document, retrying transient failures."""
        target = self.rewrite_url(url)

        async def attempt() -> str:
            response = await self._get(target)
            return response.text

        return await self._retry.execute(attempt, f"fetch_text:{url}")

    # ═══════════════════════════════════════════════════════════════════════
    # GAME PROXY COMMANDS (not retried)
    # ═══════════════════════════════════════════════════════════════════════

    async def send_command(self, zone: str, command: str, payload: str = "null") -> Any:
        """
        Send one command to the live game proxy and return its JSON body.

        Game commands mutate the proxy's session, so they are never retried.
        """
        url = f"{self._empire_api_url}/{zone}/{command}/{payload}"
        response = await self._get(url)

        logger.debug(
            "Game command sent",
            extra={"zone": zone, "command": command, "status_code": response.status_code},
        )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(url, response.status_code, "Game proxy body is not JSON") from exc

    async def close(self) -> None:
        await self._client.aclose()

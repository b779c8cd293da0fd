"""
Headless asset rendering.

Purpose
-------
Serve PNG renderings of game assets that only exist as CreateJS sprite
sheets plus drawing scripts. Rendering needs a real browser, so every
render is a job on the render admission queue and the resulting PNG is
cached as base64 text for a day in the versioned ``assets`` namespace.

Flow
----
1. Validate the asset name
2. Cache lookup (raw mode, base64 PNG)
3. On miss: download the sprite-sheet JSON (retried) to size the canvas
4. Queue the render: open a page, inject CreateJS and the asset script,
   draw the first library symbol, read the canvas back as PNG
5. The page is closed whatever happens
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Tuple

from ggetracker.core.browser.manager import BrowserManager
from ggetracker.core.cache.accessor import CacheAccessor
from ggetracker.core.cache.keys import query_key
from ggetracker.core.config.config import Config
from ggetracker.core.constants import (
    ASSET_IMAGE_CACHE_TTL_SECONDS,
    ASSET_NAME_PATTERN,
    ASSETS_CACHE_NAMESPACE,
    CREATEJS_SCRIPTS,
)
from ggetracker.core.exceptions import InvalidInputError, NotFoundError, UpstreamError
from ggetracker.core.http.upstream import UpstreamClient
from ggetracker.core.logging.logger import get_logger
from ggetracker.core.queue.admission import AdmissionQueue
from ggetracker.modules.assets.render import FIRST_LIBRARY_NAME_SCRIPT, RENDER_ASSET_SCRIPT
from ggetracker.modules.shared.base_service import BaseService

_ASSET_NAME_RE = re.compile(ASSET_NAME_PATTERN)
_EXTENSION_RE = re.compile(r"\.[^./]+$")


def normalize_asset_name(asset: str) -> str:
    """
    Lower-case, trim and drop any file extension, then validate.

    Raises:
        InvalidInputError: If the name is empty, too long or has other
            characters than ``[0-9a-z_-]``
    """
    name = _EXTENSION_RE.sub("", str(asset).strip().lower())
    if not _ASSET_NAME_RE.match(name):
        raise InvalidInputError(
            "asset", "Invalid asset parameter. Please check the asset format."
        )
    return name


def canvas_size(frames: List[List[float]]) -> Tuple[int, int]:
    """Canvas sized to the largest frame of the sprite sheet."""
    width = max(frame[2] - frame[0] for frame in frames)
    height = max(frame[3] - frame[1] for frame in frames)
    return int(width), int(height)


class AssetService(BaseService):
    """
    Cached PNG renderings of game assets.

    Public Methods
    --------------
    - render_image() -> base64 PNG data of one asset
    """

    def __init__(
        self,
        accessor: CacheAccessor,
        upstream: UpstreamClient,
        browser: BrowserManager,
        queue: AdmissionQueue,
        assets_base_url: str = "",
    ) -> None:
        super().__init__(accessor, get_logger(__name__))
        self._upstream = upstream
        self._browser = browser
        self._queue = queue
        self._assets_base_url = (assets_base_url or Config.ASSETS_BASE_URL).rstrip("/")

    def asset_url(self, asset: str, extension: str) -> str:
        return f"{self._assets_base_url}/assets/itemassets/{asset}.{extension}"

    async def render_image(self, asset: str) -> str:
        """
        Return the base64 PNG rendering of an asset.

        Raises:
            InvalidInputError: Malformed asset name
            NotFoundError: No sprite sheet or no drawable symbol for the asset
            UpstreamError: The asset host failed after all retries
            AdmissionJobError: The render job failed
        """
        name = normalize_asset_name(asset)

        async def produce() -> str:
            return await self._produce_image(name)

        return await self._cache.get_or_compute(
            ASSETS_CACHE_NAMESPACE,
            query_key(f"/assets/images/{name}"),
            produce,
            ttl_seconds=ASSET_IMAGE_CACHE_TTL_SECONDS,
            raw=True,
        )

    async def _produce_image(self, name: str) -> str:
        try:
            sprite_sheet: Dict[str, Any] = await self._upstream.fetch_json(
                self.asset_url(name, "json")
            )
        except UpstreamError as exc:
            if exc.status_code == 404:
                raise NotFoundError("asset", name, "Asset not found") from exc
            raise

        frames = (sprite_sheet or {}).get("frames") or []
        if not frames:
            raise NotFoundError("asset", name, "Asset has no frames")
        width, height = canvas_size(frames)

        return await self._queue.run(
            lambda: self._render(name, width, height),
            passthrough=(NotFoundError,),
        )

    async def _render(self, name: str, width: int, height: int) -> str:
        page = await self._browser.new_page()
        try:
            for script in CREATEJS_SCRIPTS:
                await page.add_script_tag(url=script)
            await page.add_script_tag(url=self._upstream.rewrite_url(self.asset_url(name, "js")))

            library_name = await page.evaluate(FIRST_LIBRARY_NAME_SCRIPT)
            if not library_name:
                raise NotFoundError("asset", name, "Asset library not found")

            data_url = await page.evaluate(
                RENDER_ASSET_SCRIPT,
                {
                    "name": library_name,
                    "spritesheetUrl": self._upstream.rewrite_url(self.asset_url(name, "json")),
                    "width": width,
                    "height": height,
                },
            )
            if not data_url:
                raise NotFoundError("asset", name, "Asset symbol not found")
        finally:
            await page.close()

        self.log_operation("render_image", asset=name, width=width, height=height)
        return data_url.split(",", 1)[1]

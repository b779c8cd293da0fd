"""
BrowserManager: lifecycle of the shared headless Chromium

Purpose
-------
Own the single headless browser used for asset rendering: launch it lazily
on first use, hand out the live instance afterwards, and relaunch it
transparently after a crash or disconnect.

Responsibilities
----------------
- `acquire()` is idempotent and safe under concurrent callers
- Detect unusable browsers (disconnected event, `is_connected()` false)
- Open pages for render jobs
- Close the browser and the Playwright driver on shutdown

Non-Responsibilities
--------------------
- Serializing access (render jobs reach the browser only through the
  render admission queue)
- Page contents or rendering logic (see ggetracker.modules.assets)

Architecture Notes
------------------
- Launch is guarded by an asyncio.Lock so a burst of first callers triggers
  one launch
- A disconnect only drops the reference; the next `acquire()` relaunches
- The launcher is injectable so the lifecycle can run without Chromium
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from playwright.async_api import Browser, Error as PlaywrightError, Page, Playwright, async_playwright

from ggetracker.core.config.config import Config
from ggetracker.core.constants import CHROMIUM_ARGS
from ggetracker.core.exceptions import ResourceUnavailableError
from ggetracker.core.logging.logger import get_logger

logger = get_logger(__name__)

Launcher = Callable[[], Awaitable[Browser]]


class BrowserManager:
    """
    Lazily launched, self-healing headless browser.

    Example
    -------
    >>> manager = BrowserManager()
    >>> page = await manager.new_page()
    >>> try:
    ...     await page.goto("about:blank")
    ... finally:
    ...     await page.close()
    """

    def __init__(
        self,
        headless: Optional[bool] = None,
        launcher: Optional[Launcher] = None,
    ) -> None:
        self._headless = Config.BROWSER_HEADLESS if headless is None else headless
        self._launcher: Launcher = launcher or self._launch_chromium
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()
        self._closing = False
        self._launch_count = 0
        self._disconnect_count = 0

    # ═══════════════════════════════════════════════════════════════════════
    # ACQUISITION
    # ═══════════════════════════════════════════════════════════════════════

    def _is_usable(self, browser: Optional[Browser]) -> bool:
        return browser is not None and browser.is_connected()

    async def acquire(self) -> Browser:
        """
        Return the live browser, launching or relaunching it if needed.

        Raises
        ------
        ResourceUnavailableError
            If Chromium cannot be launched.
        """
        if self._is_usable(self._browser):
            return self._browser  # type: ignore[return-value]

        async with self._lock:
            if self._is_usable(self._browser):
                return self._browser  # type: ignore[return-value]

            self._closing = False
            relaunch = self._launch_count > 0
            start_time = time.monotonic()

            logger.info(
                "Launching headless browser",
                extra={
                    "relaunch": relaunch,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )

            try:
                browser = await self._launcher()
            except (PlaywrightError, OSError) as exc:
                logger.critical(
                    "Headless browser launch failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise ResourceUnavailableError("browser", exc) from exc

            browser.on("disconnected", self._on_disconnected)
            self._browser = browser
            self._launch_count += 1

            logger.info(
                "Headless browser ready",
                extra={
                    "launch_count": self._launch_count,
                    "launch_time_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )
            return browser

    async def new_page(self) -> Page:
        """Open a fresh page on the live browser."""
        browser = await self.acquire()
        return await browser.new_page()

    def _on_disconnected(self, browser: Browser) -> None:
        if browser is not self._browser:
            return

        self._browser = None
        if self._closing:
            return

        self._disconnect_count += 1
        logger.error(
            "Headless browser disconnected; it will be relaunched on next use",
            extra={
                "disconnect_count": self._disconnect_count,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    async def _launch_chromium(self) -> Browser:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(
            headless=self._headless,
            args=list(CHROMIUM_ARGS),
        )

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    async def shutdown(self) -> None:
        """Close the browser and stop the driver. Safe to call repeatedly."""
        async with self._lock:
            self._closing = True
            browser, self._browser = self._browser, None
            playwright, self._playwright = self._playwright, None

            if browser is not None:
                try:
                    await browser.close()
                except PlaywrightError as exc:
                    logger.warning(
                        "Error while closing headless browser",
                        extra={"error": str(exc), "error_type": type(exc).__name__},
                    )

            if playwright is not None:
                await playwright.stop()

            logger.info("BrowserManager shutdown complete")

    def get_status(self) -> Dict[str, Any]:
        return {
            "connected": self._is_usable(self._browser),
            "headless": self._headless,
            "launches": self._launch_count,
            "disconnects": self._disconnect_count,
        }

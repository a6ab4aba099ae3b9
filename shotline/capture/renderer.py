"""Playwright renderer. One browser per run, one isolated context per device."""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncIterator, Optional, Protocol

from playwright.async_api import Browser, Page, Playwright, async_playwright

from shotline.models.config import CaptureConfig, DeviceConfig

logger = logging.getLogger(__name__)

DISABLE_ANIMATIONS_CSS = (
    "*,*::before,*::after{"
    "animation:none!important;"
    "transition:none!important;"
    "scroll-behavior:auto!important}"
)


class DeviceSession(Protocol):
    async def capture(self, url: str) -> bytes: ...


class Renderer(Protocol):
    def device_session(self, device: DeviceConfig) -> AbstractAsyncContextManager[DeviceSession]: ...


class PlaywrightDeviceSession:
    """Captures routes with a single page bound to one device viewport."""

    def __init__(self, page: Page, config: CaptureConfig):
        self.page = page
        self.config = config

    async def capture(self, url: str) -> bytes:
        await self.page.goto(
            url, wait_until=self.config.wait_until, timeout=self.config.timeout_ms,
        )
        if self.config.disable_animations:
            await self.page.add_style_tag(content=DISABLE_ANIMATIONS_CSS)
        if self.config.settle_ms:
            await self.page.wait_for_timeout(self.config.settle_ms)
        return await self.page.screenshot(
            full_page=self.config.full_page, timeout=self.config.timeout_ms,
        )


class PlaywrightRenderer:
    """Headless Chromium renderer.

    Use as an async context manager; each ``device_session`` gets a fresh
    browser context so no viewport or storage state leaks between devices.
    """

    def __init__(self, config: CaptureConfig, user_agent: Optional[str] = None):
        self.config = config
        self.user_agent = user_agent
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def __aenter__(self) -> "PlaywrightRenderer":
        self._playwright = await async_playwright().start()
        logger.debug("Launching headless Chromium for capture...")
        self._browser = await self._playwright.chromium.launch(headless=True)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()
            self._browser = None
            self._playwright = None

    @asynccontextmanager
    async def device_session(self, device: DeviceConfig) -> AsyncIterator[PlaywrightDeviceSession]:
        if self._browser is None:
            raise RuntimeError("Renderer not started; use 'async with PlaywrightRenderer(...)'")
        context = await self._browser.new_context(
            viewport={"width": device.width, "height": device.height},
            user_agent=self.user_agent,
        )
        try:
            page = await context.new_page()
            yield PlaywrightDeviceSession(page, self.config)
        finally:
            await context.close()

"""
Browser capability interface.

The login and crawl algorithms are written against ``PortalDriver`` only:
navigate, wait for, read text/attributes/markup, fill, click, capture a
network response in an auxiliary tab, and fetch with the context cookies.
``PlaywrightDriver`` is the single implementation against a real browser;
tests use an in-memory fake.

Selectors are Playwright selectors. Every method that addresses an element
accepts an optional ``frame`` selector naming the iframe to look inside.
Timeouts are seconds.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

from playwright.async_api import (
    Browser,
    BrowserContext,
    Locator,
    Page,
    Playwright,
    async_playwright,
)

from noticeboard.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Response of a direct authenticated GET."""
    status: int
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class PortalDriver(Protocol):
    async def navigate(self, url: str, *, timeout: float | None = None) -> str:
        """Go to ``url`` and return the final URL after redirects."""
        ...

    async def current_url(self) -> str: ...

    async def wait_for(
        self,
        selector: str,
        *,
        timeout: float,
        state: str = "visible",
        frame: str | None = None,
    ) -> None: ...

    async def count(self, selector: str, *, frame: str | None = None) -> int: ...

    async def read_text(self, selector: str, *, frame: str | None = None) -> str | None:
        """Text content of the first match, or None when nothing matches."""
        ...

    async def read_attribute(
        self, selector: str, name: str, *, frame: str | None = None
    ) -> str | None: ...

    async def read_html(self, selector: str, *, frame: str | None = None) -> str: ...

    async def fill(self, selector: str, value: str, *, frame: str | None = None) -> None: ...

    async def click(self, selector: str, *, frame: str | None = None) -> None: ...

    async def cookies(self) -> list[dict[str, Any]]: ...

    async def set_cookie(self, name: str, value: str, *, domain: str, path: str = "/") -> None:
        """Replace every cookie in the context with this one."""
        ...

    async def capture_response(self, url: str, pattern: str, *, timeout: float) -> bytes:
        """Open ``url`` in an auxiliary tab and return the body of the first
        response whose URL matches ``pattern``. The tab is always closed."""
        ...

    async def fetch(
        self, url: str, *, headers: dict[str, str], timeout: float
    ) -> FetchResult: ...

    async def close(self) -> None: ...


class PlaywrightDriver:
    """PortalDriver backed by a Chromium context with isolated cookies."""

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
        navigation_timeout: float = 30.0,
    ):
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._navigation_timeout = navigation_timeout

    @classmethod
    async def launch(cls, config: Settings) -> PlaywrightDriver:
        """Start Chromium with a fixed viewport and user agent."""
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(headless=config.browser_headless)
            context = await browser.new_context(
                viewport={
                    "width": config.browser_viewport_width,
                    "height": config.browser_viewport_height,
                },
                user_agent=config.browser_user_agent,
            )
            page = await context.new_page()
        except Exception:
            await playwright.stop()
            raise
        return cls(
            playwright, browser, context, page,
            navigation_timeout=config.navigation_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _locator(self, selector: str, frame: str | None) -> Locator:
        if frame:
            return self._page.frame_locator(frame).locator(selector)
        return self._page.locator(selector)

    @staticmethod
    def _ms(seconds: float) -> float:
        return seconds * 1000

    # ------------------------------------------------------------------
    # PortalDriver
    # ------------------------------------------------------------------

    async def navigate(self, url: str, *, timeout: float | None = None) -> str:
        await self._page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=self._ms(timeout or self._navigation_timeout),
        )
        return self._page.url

    async def current_url(self) -> str:
        return self._page.url

    async def wait_for(
        self,
        selector: str,
        *,
        timeout: float,
        state: str = "visible",
        frame: str | None = None,
    ) -> None:
        await self._locator(selector, frame).first.wait_for(
            state=state, timeout=self._ms(timeout)
        )

    async def count(self, selector: str, *, frame: str | None = None) -> int:
        return await self._locator(selector, frame).count()

    async def read_text(self, selector: str, *, frame: str | None = None) -> str | None:
        locator = self._locator(selector, frame)
        if not await locator.count():
            return None
        return await locator.first.text_content()

    async def read_attribute(
        self, selector: str, name: str, *, frame: str | None = None
    ) -> str | None:
        locator = self._locator(selector, frame)
        if not await locator.count():
            return None
        return await locator.first.get_attribute(name)

    async def read_html(self, selector: str, *, frame: str | None = None) -> str:
        return await self._locator(selector, frame).first.inner_html()

    async def fill(self, selector: str, value: str, *, frame: str | None = None) -> None:
        await self._locator(selector, frame).first.fill(value)

    async def click(self, selector: str, *, frame: str | None = None) -> None:
        await self._locator(selector, frame).first.click()

    async def cookies(self) -> list[dict[str, Any]]:
        return [dict(c) for c in await self._context.cookies()]

    async def set_cookie(self, name: str, value: str, *, domain: str, path: str = "/") -> None:
        await self._context.clear_cookies()
        await self._context.add_cookies(
            [{"name": name, "value": value, "domain": domain, "path": path}]
        )

    async def capture_response(self, url: str, pattern: str, *, timeout: float) -> bytes:
        matcher = re.compile(pattern)
        tab = await self._context.new_page()
        try:
            async with tab.expect_response(
                lambda response: bool(matcher.search(response.url)),
                timeout=self._ms(timeout),
            ) as response_info:
                await tab.goto(url, wait_until="networkidle", timeout=self._ms(timeout))
            response = await response_info.value
            body = await response.body()
            logger.info(
                "Captured viewer response %s (%.2f KB, content-type=%s)",
                response.url, len(body) / 1024, response.headers.get("content-type"),
            )
            return body
        finally:
            await tab.close()

    async def fetch(
        self, url: str, *, headers: dict[str, str], timeout: float
    ) -> FetchResult:
        response = await self._context.request.get(
            url, headers=headers, timeout=self._ms(timeout)
        )
        try:
            return FetchResult(
                status=response.status,
                body=await response.body(),
                headers=dict(response.headers),
            )
        finally:
            await response.dispose()

    async def close(self) -> None:
        try:
            try:
                await self._context.close()
            finally:
                await self._browser.close()
        finally:
            await self._playwright.stop()

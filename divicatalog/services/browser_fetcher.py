"""Playwright-backed page rendering behind a small, mockable interface."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Optional, Protocol

from playwright.async_api import Browser, Error as PlaywrightError, Page, Playwright, async_playwright

from divicatalog.models.config import CatalogConfig

logger = logging.getLogger(__name__)

# Accept buttons of the consent managers seen on the source site, most specific first
CONSENT_SELECTORS = (
    "#onetrust-accept-btn-handler",
    "#CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll",
    "button#accept-cookies",
    "button:has-text('Accept All')",
    "button:has-text('Accept')",
    "button:has-text('I agree')",
)


class RenderedPage(Protocol):
    url: str
    html: str

    async def evaluate(self, expression: str) -> Any: ...

    async def wait_for(self, selector: str, timeout_ms: int) -> bool: ...

    async def settle(self, ms: int) -> None: ...

    async def screenshot(self) -> bytes: ...


class PageRenderer(Protocol):
    def render(self, url: str) -> AsyncContextManager[RenderedPage]: ...


class PlaywrightPage:
    """:class:`RenderedPage` over a live Playwright page."""

    def __init__(self, page: Page, html: str) -> None:
        self._page = page
        self.url = page.url
        self.html = html

    async def evaluate(self, expression: str) -> Any:
        return await self._page.evaluate(expression)

    async def wait_for(self, selector: str, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightError as exc:
            logger.debug("Selector %r not found on %s: %s", selector, self.url, exc)
            return False

    async def settle(self, ms: int) -> None:
        if ms > 0:
            await self._page.wait_for_timeout(ms)

    async def screenshot(self) -> bytes:
        return await self._page.screenshot(full_page=False)


async def dismiss_consent(page: Page, timeout_ms: int = 2_000) -> bool:
    """Click the first visible consent button; return whether one was clicked."""
    for selector in CONSENT_SELECTORS:
        try:
            button = page.locator(selector).first
            if await button.is_visible(timeout=timeout_ms):
                await button.click(timeout=timeout_ms)
                logger.debug("Dismissed consent overlay via %s", selector)
                return True
        except PlaywrightError:
            continue
    return False


class PlaywrightRenderer:
    """Headless Chromium renderer.

    The browser is launched on first use and shared; every :meth:`render`
    call gets its own isolated context which is closed on exit.
    """

    def __init__(self, config: CatalogConfig) -> None:
        self.config = config
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self) -> "PlaywrightRenderer":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _ensure_browser(self) -> Browser:
        if self._browser is None:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=[
                    # Chromium's sandbox needs user namespaces that containers usually drop.
                    "--no-sandbox",
                    "--disable-dev-shm-usage",
                    "--disable-gpu",
                ],
            )
        return self._browser

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    @asynccontextmanager
    async def render(self, url: str) -> AsyncIterator[RenderedPage]:
        browser = await self._ensure_browser()
        viewport = self.config.viewports
        context = await browser.new_context(
            viewport={"width": viewport.w, "height": viewport.h},
            user_agent=self.config.user_agent,
        )
        try:
            page = await context.new_page()
            await page.goto(url, wait_until="domcontentloaded", timeout=self.config.timeouts.nav_ms)
            await dismiss_consent(page, self.config.timeouts.consent_ms)
            html = await page.content()
            yield PlaywrightPage(page, html)
        finally:
            await context.close()

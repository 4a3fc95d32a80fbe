"""Page rendering backends used by the source adapters.

Adapters only need two capabilities from a renderer: load a page and wait
for it to settle, then read text, attributes and styles from the loaded
document. ``PlaywrightRenderer`` drives headless Chromium for sources that
build their results client-side; ``StaticRenderer`` fetches plain HTML with
requests and queries it with BeautifulSoup.
"""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Optional, Protocol, Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup
from playwright.async_api import (
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
)

logger = logging.getLogger("cover_scout")

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]
URL_ATTRIBUTES = {"src", "href", "data-src"}


class RenderedPage(Protocol):
    """Read-only view over a loaded document."""

    async def wait_for(self, selector: str, timeout: float) -> bool: ...

    async def settle(self, seconds: float) -> None: ...

    async def text(self, selector: str) -> Optional[str]: ...

    async def attribute(self, selector: str, name: str) -> Optional[str]: ...

    async def style(self, selector: str, prop: str) -> Optional[str]: ...


class Renderer(Protocol):
    """Opens render sessions; each session is released when its block exits."""

    def open(
        self,
        url: str,
        user_agent: str,
        viewport: Optional[Tuple[int, int]],
        timeout: float,
    ) -> AsyncContextManager[RenderedPage]: ...


class PlaywrightPage:
    """RenderedPage backed by a live Playwright page."""

    def __init__(self, page: Page) -> None:
        self.page = page

    async def wait_for(self, selector: str, timeout: float) -> bool:
        try:
            await self.page.wait_for_selector(selector, timeout=timeout * 1000)
        except PlaywrightTimeoutError:
            logger.debug("Selector %s did not appear within %.1fs", selector, timeout)
            return False
        return True

    async def settle(self, seconds: float) -> None:
        if seconds:
            await self.page.wait_for_timeout(int(seconds * 1000))

    async def text(self, selector: str) -> Optional[str]:
        element = await self.page.query_selector(selector)
        if element is None:
            return None
        content = await element.text_content()
        return (content or "").strip()

    async def attribute(self, selector: str, name: str) -> Optional[str]:
        element = await self.page.query_selector(selector)
        if element is None:
            return None
        # Prefer the DOM property so relative src values come back absolute.
        value = await element.evaluate(
            "(el, name) => (name in el && typeof el[name] === 'string')"
            " ? el[name] : el.getAttribute(name)",
            name,
        )
        return value or None

    async def style(self, selector: str, prop: str) -> Optional[str]:
        element = await self.page.query_selector(selector)
        if element is None:
            return None
        value = await element.evaluate(
            "(el, prop) => window.getComputedStyle(el).getPropertyValue(prop)",
            prop,
        )
        return value or None


class PlaywrightRenderer:
    """Launch a fresh Chromium instance per render session."""

    def __init__(self, playwright: Playwright, headless: bool = True) -> None:
        self.playwright = playwright
        self.headless = headless

    @asynccontextmanager
    async def open(
        self,
        url: str,
        user_agent: str,
        viewport: Optional[Tuple[int, int]],
        timeout: float,
    ) -> AsyncIterator[PlaywrightPage]:
        browser = await self.playwright.chromium.launch(
            headless=self.headless, args=BROWSER_ARGS
        )
        try:
            context_options = {"user_agent": user_agent}
            if viewport:
                context_options["viewport"] = {"width": viewport[0], "height": viewport[1]}
            context = await browser.new_context(**context_options)
            page = await context.new_page()
            page.set_default_navigation_timeout(timeout * 1000)
            logger.info("Navigating to: %s", url)
            await page.goto(url, wait_until="networkidle")
            yield PlaywrightPage(page)
        finally:
            await browser.close()


class StaticPage:
    """RenderedPage over already-downloaded HTML."""

    _STYLE_DECLARATION = re.compile(
        r"\s*([-\w]+)\s*:\s*"
        r"((?:url\([^)]*\)|\"[^\"]*\"|'[^']*'|[^;])+?)"
        r"\s*(?:;|$)"
    )

    def __init__(self, html: str, base_url: str = "") -> None:
        self.soup = BeautifulSoup(html, "html.parser")
        self.base_url = base_url

    async def wait_for(self, selector: str, timeout: float) -> bool:
        return self.soup.select_one(selector) is not None

    async def settle(self, seconds: float) -> None:
        return None

    async def text(self, selector: str) -> Optional[str]:
        element = self.soup.select_one(selector)
        if element is None:
            return None
        return element.get_text(strip=True)

    async def attribute(self, selector: str, name: str) -> Optional[str]:
        element = self.soup.select_one(selector)
        if element is None:
            return None
        value = element.get(name)
        if not value:
            return None
        if isinstance(value, list):
            value = " ".join(value)
        if name in URL_ATTRIBUTES and not value.startswith("data:"):
            value = urljoin(self.base_url, value)
        return value

    async def style(self, selector: str, prop: str) -> Optional[str]:
        element = self.soup.select_one(selector)
        if element is None:
            return None
        declarations = element.get("style") or ""
        for match in self._STYLE_DECLARATION.finditer(declarations):
            if match.group(1).lower() == prop.lower():
                return match.group(2)
        return None


class StaticRenderer:
    """Fetch result pages over plain HTTP for sources that render server-side."""

    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self.session = session or requests.Session()

    @asynccontextmanager
    async def open(
        self,
        url: str,
        user_agent: str,
        viewport: Optional[Tuple[int, int]],
        timeout: float,
    ) -> AsyncIterator[StaticPage]:
        logger.info("Fetching: %s", url)
        response = self.session.get(url, headers={"User-Agent": user_agent}, timeout=timeout)
        try:
            response.raise_for_status()
            yield StaticPage(response.text, base_url=response.url or url)
        finally:
            response.close()

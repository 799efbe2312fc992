from __future__ import annotations

"""Web page extraction through a headless browser."""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, AsyncIterator, Callable
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.rag.errors import EmptyContentError, InvalidUrlError, NavigationTimeoutError, UpstreamError
from src.rag.types import Document

logger = logging.getLogger(__name__)

BrowserLauncher = Callable[[], AsyncContextManager[Any]]

_BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

_VISIBLE_TEXT_SCRIPT = """
() => {
  document
    .querySelectorAll('script, style, nav, footer, header')
    .forEach((el) => el.remove());
  return document.body ? document.body.innerText : '';
}
"""


def validate_url(url: str) -> str:
    """Return the stripped URL or raise InvalidUrlError."""
    candidate = (url or "").strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        raise InvalidUrlError()
    try:
        parsed = urlparse(candidate)
    except ValueError as exc:
        raise InvalidUrlError() from exc
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidUrlError()
    return candidate


@asynccontextmanager
async def launch_chromium() -> AsyncIterator[Any]:
    """Launch a headless Chromium instance and close it on exit."""
    from playwright.async_api import async_playwright

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=True, args=_BROWSER_ARGS)
        try:
            yield browser
        finally:
            await browser.close()
            logger.debug("browser_closed")


@dataclass(frozen=True)
class UrlExtractor:
    """Render a page and return its visible text as one Document."""
    timeout: float = 30.0
    launcher: BrowserLauncher = field(default=launch_chromium)

    async def extract(self, source: str) -> list[Document]:
        url = validate_url(source)
        logger.info("url_navigation_started", extra={"url": url})
        try:
            async with self.launcher() as browser:
                page = await browser.new_page()
                await page.goto(url, wait_until="networkidle", timeout=self.timeout * 1000)
                title = await page.title()
                content = await page.evaluate(_VISIBLE_TEXT_SCRIPT)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeoutError(
                f"Navigation to {url} timed out after {self.timeout:g}s"
            ) from exc
        except PlaywrightError as exc:
            raise UpstreamError(f"Browser failed to load {url}: {exc}") from exc

        text = content if isinstance(content, str) else ""
        logger.info("url_extracted", extra={"url": url, "characters": len(text)})
        if not text.strip():
            raise EmptyContentError("No content extracted from the URL")
        return [
            Document(
                text=text,
                metadata={"source": url, "source_type": "url", "title": title or ""},
            )
        ]

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Literal

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from postdigest.logging_utils import structured_log
from postdigest.services.feed.errors import RenderTimeout, SessionError
from postdigest.services.feed.types import RawFeedItem

FEED_CONTAINER_SELECTOR = "div[data-testid='cellInnerDiv']"
FEED_ITEM_SELECTOR = "article[data-testid='tweet']"

# Reads every rendered item into the RawFeedItem shape; validation happens in Python.
COLLECT_ITEMS_SCRIPT = """
(articles) => articles.map((article) => {
  const timeEl = article.querySelector("a[href*='/status/'] time");
  const linkEl = timeEl ? timeEl.closest("a") : null;
  const textEl = article.querySelector("div[data-testid='tweetText']");
  let quotedPermalink = null;
  const quoted = article.querySelector("div[role='link'][tabindex='0']");
  if (quoted) {
    const quotedTime = quoted.querySelector("time");
    const quotedLink = quotedTime ? quotedTime.closest("a") : null;
    if (quotedLink && quotedLink.href) quotedPermalink = quotedLink.href;
  }
  const images = [];
  article.querySelectorAll("div[data-testid='tweetPhoto'] img").forEach((img) => {
    if (img.src) images.push(img.src);
  });
  return {
    permalink: linkEl ? linkEl.href : null,
    timestamp: timeEl ? timeEl.getAttribute("datetime") : null,
    text: textEl ? textEl.innerText : null,
    has_video_player: Boolean(article.querySelector("div[data-testid='videoPlayer']")),
    quoted_permalink: quotedPermalink,
    image_urls: images,
  };
})
"""

logger = logging.getLogger(__name__)


class SessionCookie(BaseModel):
    name: str = Field(min_length=1)
    value: str
    domain: str = Field(min_length=1)
    path: str = "/"
    expires: float = -1
    http_only: bool = Field(default=False, alias="httpOnly")
    secure: bool = False
    same_site: Literal["Strict", "Lax", "None"] | None = Field(default=None, alias="sameSite")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def ensure_cookie_file(path: str | Path, blob: str | None) -> bool:
    """Write the cookie blob to ``path`` when the file does not exist yet."""
    cookie_path = Path(path)
    if not blob or cookie_path.exists():
        return False
    cookie_path.write_text(blob, encoding="utf-8")
    structured_log(logger, "info", "session.cookie_file_created", path=str(cookie_path))
    return True


def load_session_cookies(path: str | Path) -> list[dict]:
    cookie_path = Path(path)
    if not cookie_path.is_file():
        raise SessionError(f"Cookies file not found at {cookie_path}; capture a login session first.")
    try:
        raw = json.loads(cookie_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SessionError(f"Cookies file {cookie_path} is not readable JSON.") from exc
    if not isinstance(raw, list) or not raw:
        raise SessionError(f"Cookies file {cookie_path} holds no cookie records.")
    try:
        cookies = [SessionCookie.model_validate(item) for item in raw]
    except ValidationError as exc:
        raise SessionError(f"Cookies file {cookie_path} has invalid cookie records.") from exc
    return [cookie.model_dump(by_alias=True, exclude_none=True) for cookie in cookies]


class PlaywrightFeedPage:
    def __init__(self, page: Page, *, base_url: str) -> None:
        self._page = page
        self._base_url = base_url.rstrip("/")

    async def open_feed(self, identity: str, *, timeout_seconds: float) -> None:
        timeout_ms = timeout_seconds * 1000
        try:
            await self._page.goto(
                f"{self._base_url}/{identity}",
                wait_until="domcontentloaded",
                timeout=timeout_ms,
            )
            await self._page.wait_for_selector(
                FEED_CONTAINER_SELECTOR,
                state="visible",
                timeout=timeout_ms,
            )
        except PlaywrightTimeoutError as exc:
            raise RenderTimeout(
                f"Feed for @{identity} did not render within {timeout_seconds:.0f}s."
            ) from exc

    async def scroll_by(self, offset_px: int) -> None:
        await self._page.evaluate("(offset) => window.scrollBy(0, offset)", offset_px)

    async def settle(self, seconds: float) -> None:
        await self._page.wait_for_timeout(seconds * 1000)

    async def count_items(self) -> int:
        return await self._page.locator(FEED_ITEM_SELECTOR).count()

    async def collect_items(self) -> list[RawFeedItem]:
        rows = await self._page.eval_on_selector_all(FEED_ITEM_SELECTOR, COLLECT_ITEMS_SCRIPT)
        return [RawFeedItem.from_mapping(row) for row in rows or []]


@asynccontextmanager
async def open_feed_session(
    *,
    cookies_path: str | Path,
    base_url: str,
    headless: bool = True,
) -> AsyncIterator[PlaywrightFeedPage]:
    """Authenticated browser page that is closed on every exit path."""
    cookies = load_session_cookies(cookies_path)
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=headless, args=["--no-sandbox"])
        try:
            context = await browser.new_context()
            await context.add_cookies(cookies)
            page = await context.new_page()
            yield PlaywrightFeedPage(page, base_url=base_url)
        finally:
            await browser.close()


class BrowserSessionProvider:
    def __init__(
        self,
        *,
        cookies_path: str | Path,
        base_url: str,
        headless: bool = True,
    ) -> None:
        self._cookies_path = cookies_path
        self._base_url = base_url
        self._headless = headless

    def open(self, identity: str):
        structured_log(logger, "debug", "session.opening", identity=identity, headless=self._headless)
        return open_feed_session(
            cookies_path=self._cookies_path,
            base_url=self._base_url,
            headless=self._headless,
        )

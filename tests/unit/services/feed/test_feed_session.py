from __future__ import annotations

import json

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from postdigest.services.feed.errors import RenderTimeout, SessionError
from postdigest.services.feed.session import ensure_cookie_file, load_session_cookies, open_feed_session
from postdigest.services.feed.types import RawFeedItem

COOKIE_BLOB = json.dumps(
    [
        {
            "name": "auth_token",
            "value": "secret",
            "domain": ".x.com",
            "path": "/",
            "httpOnly": True,
            "secure": True,
            "sameSite": "None",
            "storeId": "0",
        }
    ]
)


def test_ensure_cookie_file_writes_blob_once(tmp_path) -> None:
    path = tmp_path / "cookies.json"

    assert ensure_cookie_file(path, COOKIE_BLOB) is True
    assert ensure_cookie_file(path, "[]") is False
    assert path.read_text(encoding="utf-8") == COOKIE_BLOB


def test_ensure_cookie_file_without_blob_is_noop(tmp_path) -> None:
    path = tmp_path / "cookies.json"

    assert ensure_cookie_file(path, None) is False
    assert not path.exists()


def test_load_session_cookies_keeps_browser_field_names(tmp_path) -> None:
    path = tmp_path / "cookies.json"
    path.write_text(COOKIE_BLOB, encoding="utf-8")

    cookies = load_session_cookies(path)

    assert cookies == [
        {
            "name": "auth_token",
            "value": "secret",
            "domain": ".x.com",
            "path": "/",
            "expires": -1,
            "httpOnly": True,
            "secure": True,
            "sameSite": "None",
        }
    ]


@pytest.mark.parametrize("content", [None, "not json", "[]", '[{"name": "a"}]'])
def test_load_session_cookies_rejects_unusable_files(tmp_path, content: str | None) -> None:
    path = tmp_path / "cookies.json"
    if content is not None:
        path.write_text(content, encoding="utf-8")

    with pytest.raises(SessionError):
        load_session_cookies(path)


def test_raw_feed_item_from_mapping_tolerates_missing_fields() -> None:
    item = RawFeedItem.from_mapping(
        {
            "permalink": "https://x.com/nasa/status/1",
            "timestamp": "",
            "text": "hello",
            "image_urls": ["https://pbs.twimg.com/media/a.jpg", ""],
        }
    )

    assert item.timestamp is None
    assert item.has_video_player is False
    assert item.quoted_permalink is None
    assert item.image_urls == ("https://pbs.twimg.com/media/a.jpg",)


class FakeBrowserPage:
    def __init__(self, *, goto_error: Exception | None = None, wait_error: Exception | None = None) -> None:
        self._goto_error = goto_error
        self._wait_error = wait_error
        self.goto_calls: list[tuple[str, dict]] = []
        self.wait_calls: list[tuple[str, dict]] = []

    async def goto(self, url: str, **kwargs) -> None:
        self.goto_calls.append((url, kwargs))
        if self._goto_error is not None:
            raise self._goto_error

    async def wait_for_selector(self, selector: str, **kwargs) -> None:
        self.wait_calls.append((selector, kwargs))
        if self._wait_error is not None:
            raise self._wait_error


class FakeBrowserContext:
    def __init__(self, page: FakeBrowserPage) -> None:
        self._page = page
        self.cookies: list[dict] = []

    async def add_cookies(self, cookies: list[dict]) -> None:
        self.cookies.extend(cookies)

    async def new_page(self) -> FakeBrowserPage:
        return self._page


class FakeBrowser:
    def __init__(self, page: FakeBrowserPage) -> None:
        self.context = FakeBrowserContext(page)
        self.close_calls = 0

    async def new_context(self) -> FakeBrowserContext:
        return self.context

    async def close(self) -> None:
        self.close_calls += 1


class FakePlaywright:
    def __init__(self, browser: FakeBrowser) -> None:
        self._browser = browser
        self.launch_calls: list[dict] = []
        self.chromium = self

    async def launch(self, **kwargs) -> FakeBrowser:
        self.launch_calls.append(kwargs)
        return self._browser

    async def __aenter__(self) -> FakePlaywright:
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None


@pytest.fixture
def fake_playwright(monkeypatch, tmp_path):
    def _install(page: FakeBrowserPage) -> tuple[FakePlaywright, str]:
        cookies_path = tmp_path / "cookies.json"
        cookies_path.write_text(COOKIE_BLOB, encoding="utf-8")
        playwright = FakePlaywright(FakeBrowser(page))
        monkeypatch.setattr("postdigest.services.feed.session.async_playwright", lambda: playwright)
        return playwright, str(cookies_path)

    return _install


@pytest.mark.asyncio
async def test_feed_that_never_renders_raises_render_timeout_and_closes_browser(fake_playwright) -> None:
    page = FakeBrowserPage(wait_error=PlaywrightTimeoutError("Timeout 12000ms exceeded"))
    playwright, cookies_path = fake_playwright(page)

    async with open_feed_session(cookies_path=cookies_path, base_url="https://x.com/") as feed_page:
        with pytest.raises(RenderTimeout):
            await feed_page.open_feed("nasa", timeout_seconds=12)

    assert page.goto_calls == [
        ("https://x.com/nasa", {"wait_until": "domcontentloaded", "timeout": 12000})
    ]
    assert page.wait_calls[0][1]["timeout"] == 12000
    assert playwright._browser.context.cookies[0]["name"] == "auth_token"
    assert playwright._browser.close_calls == 1


@pytest.mark.asyncio
async def test_navigation_timeout_raises_render_timeout(fake_playwright) -> None:
    page = FakeBrowserPage(goto_error=PlaywrightTimeoutError("Navigation timeout"))
    playwright, cookies_path = fake_playwright(page)

    async with open_feed_session(cookies_path=cookies_path, base_url="https://x.com") as feed_page:
        with pytest.raises(RenderTimeout):
            await feed_page.open_feed("nasa", timeout_seconds=5)

    assert page.wait_calls == []
    assert playwright._browser.close_calls == 1


@pytest.mark.asyncio
async def test_browser_is_closed_when_extraction_body_fails(fake_playwright) -> None:
    playwright, cookies_path = fake_playwright(FakeBrowserPage())

    with pytest.raises(RuntimeError):
        async with open_feed_session(cookies_path=cookies_path, base_url="https://x.com"):
            raise RuntimeError("collect script failed")

    assert playwright._browser.close_calls == 1


@pytest.mark.asyncio
async def test_missing_cookies_fail_before_browser_launch(monkeypatch, tmp_path) -> None:
    playwright = FakePlaywright(FakeBrowser(FakeBrowserPage()))
    monkeypatch.setattr("postdigest.services.feed.session.async_playwright", lambda: playwright)

    with pytest.raises(SessionError):
        async with open_feed_session(cookies_path=tmp_path / "missing.json", base_url="https://x.com"):
            pass

    assert playwright.launch_calls == []

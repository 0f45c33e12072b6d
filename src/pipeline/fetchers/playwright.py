from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

from pydantic import ValidationError

from src.errors import ChannelUnavailable
from src.schemas import BusinessRecord
from ..field_extractor import FieldExtractor, PageDocument


DEFAULT_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36"

RESULT_CARD_SELECTOR = 'div[role="feed"] a.hfpxzc'
RESULTS_FEED_SELECTOR = 'div[role="feed"]'
PROFILE_NAME_SELECTOR = 'h1.DUwDvf'


@runtime_checkable
class PageChannel(Protocol):
    """Request/response channel to a page context, as driven by the auto sequence."""

    async def request(self, message: Dict[str, Any]) -> Dict[str, Any]: ...

    async def extract_data(self) -> BusinessRecord: ...

    async def click_next(self, index: int) -> bool: ...

    async def check_profile_loaded(self) -> bool: ...


class BasePageChannel:
    """Serialises requests (at most one in flight) and decodes the replies.

    Subclasses implement ``_dispatch``. Any failure while handling a request
    surfaces as ChannelUnavailable.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    async def request(self, message: Dict[str, Any]) -> Dict[str, Any]:
        action = str(message.get("action", ""))
        async with self._lock:
            try:
                response = await self._dispatch(action, message)
            except ChannelUnavailable:
                raise
            except Exception as e:
                raise ChannelUnavailable(action, e) from e
        if not isinstance(response, dict):
            raise ChannelUnavailable(action, "no response")
        return response

    async def _dispatch(self, action: str, message: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def extract_data(self) -> BusinessRecord:
        response = await self.request({"action": "extractData"})
        data = response.get("data")
        if not isinstance(data, dict):
            raise ChannelUnavailable("extractData", "response carried no data")
        try:
            return BusinessRecord.model_validate(data)
        except ValidationError as e:
            raise ChannelUnavailable("extractData", e) from e

    async def click_next(self, index: int) -> bool:
        response = await self.request({"action": "clickNext", "index": int(index)})
        return bool(response.get("success", False))

    async def check_profile_loaded(self) -> bool:
        response = await self.request({"action": "checkProfileLoaded"})
        return bool(response.get("isLoaded", False))


class PlaywrightPageChannel(BasePageChannel):
    """Page channel backed by a Chromium page driven through Playwright.

    Uses security-first launch settings:
    - Sandbox enabled (no --no-sandbox)
    - Extensions and plugins disabled
    """

    def __init__(
        self,
        *,
        extractor: Optional[FieldExtractor] = None,
        headless: bool = True,
        timeout_ms: int = 30000,
        scroll_wait_ms: int = 1500,
        user_agent: str = DEFAULT_UA,
        locale: str = "en-US",
    ) -> None:
        super().__init__()
        self.extractor = extractor or FieldExtractor()
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.scroll_wait_ms = scroll_wait_ms
        self.user_agent = user_agent
        self.locale = locale
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self._name_before_click: str = ""

    async def open(self, url: str) -> int:
        """Launch the browser (once) and navigate to ``url``; returns the HTTP status."""
        try:
            return await self._open(url)
        except ChannelUnavailable:
            raise
        except Exception as e:
            raise ChannelUnavailable("open", e) from e

    async def _open(self, url: str) -> int:
        if self.page is None:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=[
                    '--disable-dev-shm-usage',     # Prevent /dev/shm issues in containers
                    '--disable-gpu',
                    '--disable-extensions',
                    '--disable-plugins',
                    '--no-first-run',
                    '--disable-default-apps',
                ],
            )
            self._context = await self._browser.new_context(user_agent=self.user_agent, locale=self.locale)
            self.page = await self._context.new_page()
        response = await self.page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
        if not response:
            raise ChannelUnavailable("open", f"no response received for {url}")
        return response.status

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self._browser = None
        self._context = None
        self._playwright = None
        self.page = None

    async def __aenter__(self) -> "PlaywrightPageChannel":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _dispatch(self, action: str, message: Dict[str, Any]) -> Dict[str, Any]:
        if self.page is None:
            raise ChannelUnavailable(action, "no page open")
        if action == "extractData":
            return await self._extract_data()
        if action == "clickNext":
            return await self._click_next(int(message.get("index", 0)))
        if action == "checkProfileLoaded":
            return await self._check_profile_loaded()
        raise ChannelUnavailable(action, "unknown action")

    async def _extract_data(self) -> Dict[str, Any]:
        html = await self.page.content()
        record = self.extractor.extract(PageDocument(html=html, url=self.page.url))
        return {"data": record.to_storage()}

    async def _click_next(self, index: int) -> Dict[str, Any]:
        cards = self.page.locator(RESULT_CARD_SELECTOR)
        count = await cards.count()
        if index >= count:
            # Results are lazy-loaded: scroll the feed once and recount
            feed = self.page.locator(RESULTS_FEED_SELECTOR)
            if await feed.count():
                await feed.first.evaluate("el => el.scrollBy(0, el.scrollHeight)")
                await self.page.wait_for_timeout(self.scroll_wait_ms)
                count = await cards.count()
        if index >= count:
            return {"success": False}
        self._name_before_click = await self._current_profile_name()
        card = cards.nth(index)
        await card.scroll_into_view_if_needed()
        await card.click()
        return {"success": True}

    async def _check_profile_loaded(self) -> Dict[str, Any]:
        name = await self._current_profile_name()
        # The pane still shows the previous business until the new one renders
        loaded = bool(name) and name != self._name_before_click
        return {"isLoaded": loaded}

    async def _current_profile_name(self) -> str:
        heading = self.page.locator(PROFILE_NAME_SELECTOR)
        if not await heading.count():
            return ""
        first = heading.first
        if not await first.is_visible():
            return ""
        return (await first.inner_text()).strip()

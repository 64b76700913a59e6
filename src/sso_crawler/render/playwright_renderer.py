"""Playwright implementation of the rendering collaborator."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Request
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..core.config import CrawlerConfig
from ..recon.urls import normalize_url
from .base import ActivityListener, RenderError

logger = logging.getLogger(__name__)

MUTATION_BINDING = "__ssoCrawlerMutation"

# Coalesces bursts of DOM mutations into one binding call every 50ms.
MUTATION_SCRIPT = """
(() => {
    if (window.__ssoCrawlerObserver) return;
    let scheduled = false;
    const notify = () => {
        if (scheduled) return;
        scheduled = true;
        setTimeout(() => {
            scheduled = false;
            try { window.%(binding)s(); } catch (e) {}
        }, 50);
    };
    const observe = () => {
        const observer = new MutationObserver(notify);
        observer.observe(document.documentElement, {
            childList: true,
            subtree: true,
            attributes: true,
            characterData: true,
        });
        window.__ssoCrawlerObserver = observer;
    };
    if (document.documentElement) {
        observe();
    } else {
        document.addEventListener('DOMContentLoaded', observe, { once: true });
    }
})();
""" % {"binding": MUTATION_BINDING}

JSON_HEADERS = {"Content-Type": "application/json"}


class PlaywrightPageContext:
    """Wraps a Playwright page and forwards its activity to listeners.

    Requests already in flight when a listener subscribes are replayed to
    it so the pending counter starts out accurate.
    """

    def __init__(
        self,
        page: Page,
        *,
        owned: bool = True,
        on_close: Optional[Callable[[Page], None]] = None,
    ) -> None:
        self._page = page
        self._owned = owned
        self._on_close = on_close
        self._listeners: List[ActivityListener] = []
        self._pending = 0
        page.on("request", self._on_request)
        page.on("requestfinished", self._on_request_done)
        page.on("requestfailed", self._on_request_done)

    @property
    def identity(self) -> Page:
        return self._page

    @property
    def url(self) -> str:
        return self._page.url

    def subscribe(self, listener: ActivityListener) -> None:
        for _ in range(self._pending):
            listener.request_started()
        self._listeners.append(listener)

    def mutation_observed(self) -> None:
        for listener in self._listeners:
            listener.mutation_observed()

    def _on_request(self, _request: Request) -> None:
        self._pending += 1
        for listener in self._listeners:
            listener.request_started()

    def _on_request_done(self, _request: Request) -> None:
        self._pending = max(0, self._pending - 1)
        for listener in self._listeners:
            listener.request_finished()

    async def content(self) -> str:
        return await self._page.content()

    async def scroll_to_top(self) -> None:
        try:
            await self._page.evaluate("window.scrollTo(0, 0)")
        except PlaywrightError:
            logger.debug("Could not scroll %s to the top", self.url, exc_info=True)

    async def screenshot(self) -> bytes:
        return await self._page.screenshot(full_page=True, type="png")

    async def close(self) -> None:
        self._listeners.clear()
        self._page.remove_listener("request", self._on_request)
        self._page.remove_listener("requestfinished", self._on_request_done)
        self._page.remove_listener("requestfailed", self._on_request_done)
        if self._on_close is not None:
            self._on_close(self._page)
        if self._owned and not self._page.is_closed():
            await self._page.close()


class PlaywrightRenderer:
    """Opens crawl targets as tabs of the user's authenticated browser context.

    The page the user logged in on is captured in place rather than reloaded.
    """

    def __init__(
        self,
        context: BrowserContext,
        home: Page,
        *,
        viewport: Optional[dict] = None,
        timeout: float = 60.0,
    ) -> None:
        self._context = context
        self._home = home
        self._viewport = viewport
        self._timeout_ms = timeout * 1000
        self._pages: Dict[Page, PlaywrightPageContext] = {}

    async def install(self) -> None:
        """Register the mutation observer for every page of the context."""

        await self._context.expose_binding(MUTATION_BINDING, self._on_mutation)
        await self._context.add_init_script(MUTATION_SCRIPT)

    async def start_url(self) -> str:
        if self._home.is_closed():
            raise RenderError("The starting page has been closed")
        url = self._home.url
        if not url or url == "about:blank":
            raise RenderError("The starting page has not loaded a document")
        return url

    async def open(self, url: str) -> PlaywrightPageContext:
        if not self._home.is_closed() and normalize_url(self._home.url) == url:
            return self._wrap(self._home, owned=False)

        page = await self._context.new_page()
        if self._viewport:
            await page.set_viewport_size(self._viewport)
        wrapper = self._wrap(page, owned=True)
        try:
            await page.goto(url, wait_until="load", timeout=self._timeout_ms)
        except PlaywrightTimeoutError as exc:
            await wrapper.close()
            raise RenderError(f"Timed out loading {url}") from exc
        except PlaywrightError as exc:
            await wrapper.close()
            raise RenderError(f"Failed to load {url}: {exc}") from exc
        except BaseException:
            await wrapper.close()
            raise
        return wrapper

    def _wrap(self, page: Page, *, owned: bool) -> PlaywrightPageContext:
        wrapper = PlaywrightPageContext(page, owned=owned, on_close=self._forget)
        self._pages[page] = wrapper
        return wrapper

    def _forget(self, page: Page) -> None:
        self._pages.pop(page, None)

    def _on_mutation(self, source: Dict[str, Any], *_args: Any) -> None:
        wrapper = self._pages.get(source.get("page"))
        if wrapper is not None:
            wrapper.mutation_observed()


class PlaywrightRelay:
    """POSTs through the browser context, sharing its cookies and bypassing CORS."""

    def __init__(self, context: BrowserContext) -> None:
        self._context = context

    async def post(self, endpoint: str, body: str, *, timeout: Optional[float] = None) -> int:
        response = await self._context.request.post(
            endpoint,
            data=body,
            headers=JSON_HEADERS,
            timeout=timeout * 1000 if timeout else None,
        )
        try:
            return response.status
        finally:
            await response.dispose()


async def apply_session_cookie(context: BrowserContext, target_url: str, session_cookie: Optional[str]) -> bool:
    """Seed the context with a ``name=value`` cookie for the target host."""

    if not session_cookie:
        return False

    domain = urlparse(target_url).hostname
    if not domain:
        return False

    name, _, value = session_cookie.partition("=")
    if not name or not value:
        return False

    await context.add_cookies(
        [
            {
                "name": name.strip(),
                "value": value.strip(),
                "domain": domain,
                "path": "/",
            }
        ]
    )
    return True


async def launch_browser(
    playwright: Playwright, config: CrawlerConfig
) -> Tuple[Browser, BrowserContext, Page]:
    browser = await playwright.chromium.launch(headless=config.headless)
    options: Dict[str, Any] = {}
    if config.viewport:
        options["viewport"] = config.viewport
    context = await browser.new_context(**options)
    page = await context.new_page()
    return browser, context, page

"""Contracts between the crawl engine and the rendering collaborator."""

from __future__ import annotations

from typing import Hashable, Optional, Protocol


class CrawlError(Exception):
    """Base class for recoverable, per-page crawl failures."""


class RenderError(CrawlError):
    """The target page could not be loaded or rendered."""


class CaptureError(CrawlError):
    """The page rendered but its markup or screenshot could not be read."""


class ActivityListener(Protocol):
    """Receives the instrumentation events a page context emits."""

    def request_started(self) -> None: ...

    def request_finished(self) -> None: ...

    def mutation_observed(self) -> None: ...


class PageContext(Protocol):
    """A rendered page the crawler can inspect and snapshot."""

    @property
    def identity(self) -> Hashable: ...

    @property
    def url(self) -> str: ...

    def subscribe(self, listener: ActivityListener) -> None: ...

    async def content(self) -> str: ...

    async def scroll_to_top(self) -> None: ...

    async def screenshot(self) -> bytes: ...

    async def close(self) -> None: ...


class Renderer(Protocol):
    """Produces page contexts for URLs on the crawl's origin."""

    async def start_url(self) -> str:
        """URL of the page the user is on; raises if it is unavailable."""
        ...

    async def open(self, url: str) -> PageContext: ...


class RelayTransport(Protocol):
    """Privileged channel able to POST where a plain HTTP client cannot."""

    async def post(self, endpoint: str, body: str, *, timeout: Optional[float] = None) -> int: ...

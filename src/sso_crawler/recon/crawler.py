"""Session state machine and crawl loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import List, Optional

from ..core.config import CrawlerConfig
from ..core.models import CapturePayload, CrawlStatus, FrontierEntry, SessionState
from ..core.report import CrawlReport
from ..delivery.pipeline import DeliveryPipeline
from ..render.base import CaptureError, CrawlError, PageContext, Renderer
from .link_collector import gather_links
from .quiescence import Clock, QuiescenceDetector
from .state import CrawlSession
from .urls import normalize_url

logger = logging.getLogger(__name__)


class Crawler:
    """Visits same-origin pages one at a time and delivers a snapshot of each.

    Control methods (:meth:`start`, :meth:`pause`, :meth:`resume`,
    :meth:`stop` and the allowlist editors) must be called from the event
    loop running the crawl; they are not thread-safe.
    """

    def __init__(
        self,
        config: CrawlerConfig,
        renderer: Renderer,
        pipeline: DeliveryPipeline,
        *,
        detector: Optional[QuiescenceDetector] = None,
        report: Optional[CrawlReport] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.config = config
        self.renderer = renderer
        self.pipeline = pipeline
        self.detector = detector or QuiescenceDetector(
            idle_threshold=config.idle_threshold,
            poll_interval=config.poll_interval,
            max_attempts=config.max_idle_attempts,
            clock=clock,
        )
        self.report = report or CrawlReport(seed_url=config.start_url)
        self.state = SessionState.IDLE
        self._clock = clock
        self._user_allowlist: List[str] = []
        self._session: Optional[CrawlSession] = None
        self._task: Optional[asyncio.Task] = None
        self._starting = False

    @property
    def session(self) -> Optional[CrawlSession]:
        return self._session

    @property
    def allowlist(self) -> tuple[str, ...]:
        if self._session is not None:
            return self._session.allowlist.entries
        return (*self.config.allowlist, *self._user_allowlist)

    # ------------------------------------------------------------------
    # Control operations
    # ------------------------------------------------------------------
    async def start(self) -> bool:
        if self.state is not SessionState.IDLE or self._starting:
            logger.info("Crawl already in progress")
            return False

        self._starting = True
        try:
            await self._drain()
            start_url = normalize_url(await self.renderer.start_url())
            session = CrawlSession.create(
                self.config, start_url, self._user_allowlist, clock=self._clock
            )
        except Exception:
            logger.exception("Cannot obtain the starting page; crawl not started")
            return False
        finally:
            self._starting = False

        self.state = SessionState.RUNNING
        session.frontier.seed(start_url)
        session.current_url = start_url
        self._session = session
        self.report.seed_url = start_url
        logger.info(
            "Crawl started at %s (max depth %d, max pages %d)",
            start_url,
            self.config.max_depth,
            self.config.max_pages,
        )
        self._launch()
        return True

    def pause(self) -> SessionState:
        """Toggle between running and paused."""

        if self.state is SessionState.RUNNING:
            self.state = SessionState.PAUSED
            logger.info("Crawl paused; the current page will finish first")
        elif self.state is SessionState.PAUSED:
            self.state = SessionState.RUNNING
            logger.info("Crawl resumed")
            self._launch()
        else:
            logger.info("No crawl to pause")
        return self.state

    def resume(self) -> SessionState:
        if self.state is not SessionState.PAUSED:
            logger.info("Crawl is not paused")
            return self.state
        return self.pause()

    def stop(self) -> None:
        if self.state is SessionState.IDLE or self._session is None:
            logger.info("No crawl to stop")
            return

        self.state = SessionState.STOPPING
        dropped = self._session.frontier.clear()
        self._session.cancel.set()
        self.state = SessionState.IDLE
        logger.info("Crawl stopped; discarded %d queued page(s)", dropped)

    def add_allowlist_entry(self, text: str) -> bool:
        value = (text or "").strip()
        if not value:
            return False
        if value not in self._user_allowlist:
            self._user_allowlist.append(value)
        if self._session is not None:
            self._session.allowlist.add(value)
        return True

    def remove_allowlist_entry(self, text: str) -> bool:
        value = (text or "").strip()
        removed = False
        if value in self._user_allowlist:
            self._user_allowlist.remove(value)
            removed = True
        if self._session is not None:
            removed = self._session.allowlist.remove(value) or removed
        return removed

    def status(self) -> CrawlStatus:
        session = self._session
        return CrawlStatus(
            state=self.state,
            visited=session.frontier.visited_count if session else 0,
            max_pages=self.config.max_pages,
            queued=len(session.frontier) if session else 0,
            elapsed=session.elapsed() if session else 0.0,
            current_url=session.current_url if session else None,
            max_depth=self.config.max_depth,
        )

    async def wait(self) -> None:
        """Wait until the crawl loop exits (finished, paused or stopped)."""

        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    # ------------------------------------------------------------------
    # Crawl loop
    # ------------------------------------------------------------------
    def _launch(self) -> None:
        if self._task is not None and not self._task.done():
            return
        if self._session is None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(self._session))

    async def _drain(self) -> None:
        if self._task is not None and not self._task.done():
            with contextlib.suppress(Exception):
                await self._task

    async def _run(self, session: CrawlSession) -> None:
        frontier = session.frontier
        try:
            while (
                self._session is session
                and self.state is SessionState.RUNNING
                and not session.cancelled
            ):
                if frontier.budget_exhausted:
                    logger.info("Reached max pages")
                    break
                entry = frontier.dequeue()
                if entry is None:
                    break

                try:
                    await self._visit(session, entry)
                except Exception:
                    logger.exception("Error visiting %s", entry.url)
                frontier.mark_visited(entry.url)

                if session.cancelled:
                    break
                if len(frontier) and not frontier.budget_exhausted:
                    await self._delay(session)
                await asyncio.sleep(0)
        finally:
            session.current_url = None
            if self._session is session and self.state is SessionState.RUNNING:
                self.state = SessionState.IDLE
            if self.state is SessionState.IDLE:
                logger.info(
                    "Crawl completed or stopped: %d page(s) visited", frontier.visited_count
                )

    async def _visit(self, session: CrawlSession, entry: FrontierEntry) -> None:
        if entry.depth > self.config.max_depth:
            return

        session.current_url = entry.url
        context = await self._acquire(session, entry.url)
        if context is None:
            return

        try:
            tracker = session.trackers.get(context)
            await self.detector.wait_for_idle(tracker, session.cancel)
            if session.cancelled:
                return

            payload = await self._capture(context)
            if session.cancelled:
                logger.info("Discarding capture of %s after stop", entry.url)
                return

            final_url = normalize_url(payload.url)
            if final_url != entry.url and session.frontier.mark_alias(final_url):
                logger.debug("%s resolved to %s", entry.url, final_url)

            sequence = session.frontier.visited_count + 1
            result = await self.pipeline.deliver(payload, sequence)
            self.report.record(entry.url, entry.depth, result.outcome, result.artifacts)

            self._enqueue_links(session, payload, entry.depth)
        finally:
            session.trackers.discard(context)
            await self._close(context)

    def _enqueue_links(self, session: CrawlSession, payload: CapturePayload, depth: int) -> int:
        if depth + 1 > self.config.max_depth:
            return 0
        accepted = 0
        for link in gather_links(payload.html, payload.url):
            if session.frontier.enqueue(link, depth + 1):
                accepted += 1
        logger.debug("Queued %d new link(s) from %s", accepted, payload.url)
        return accepted

    async def _acquire(self, session: CrawlSession, url: str) -> Optional[PageContext]:
        """Render ``url`` unless it times out, fails or the session is stopped."""

        render = asyncio.ensure_future(self.renderer.open(url))
        stopped = asyncio.ensure_future(session.cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {render, stopped},
                timeout=self.config.render_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            stopped.cancel()

        if render in done:
            try:
                return render.result()
            except Exception as exc:
                logger.warning("Failed to render %s: %s", url, exc)
                return None

        render.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await render
        if session.cancelled:
            logger.info("Render of %s cancelled by stop", url)
        else:
            logger.warning("Render timeout for %s", url)
        return None

    async def _capture(self, context: PageContext) -> CapturePayload:
        try:
            html = await context.content()
            await context.scroll_to_top()
            screenshot = await context.screenshot()
        except CrawlError:
            raise
        except Exception as exc:
            raise CaptureError(f"Cannot capture {context.url}: {exc}") from exc
        return CapturePayload.capture(context.url, html, screenshot)

    @staticmethod
    async def _close(context: PageContext) -> None:
        try:
            await context.close()
        except Exception:
            logger.debug("Failed to close page context", exc_info=True)

    async def _delay(self, session: CrawlSession) -> None:
        if self.config.delay <= 0:
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(session.cancel.wait(), timeout=self.config.delay)


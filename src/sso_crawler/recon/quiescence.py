"""Heuristics deciding when a dynamically rendered page has settled.

A page is considered settled once it has had no in-flight requests for
``idle_threshold`` seconds and no DOM mutations for half that time. Pages
that never settle are captured anyway after ``max_attempts`` polls so one
noisy page cannot stall a whole session.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Hashable, Optional

if TYPE_CHECKING:  # pragma: no cover - import-time type checking only
    from ..render.base import PageContext

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]

DEFAULT_IDLE_THRESHOLD = 1.0
DEFAULT_POLL_INTERVAL = 0.25
DEFAULT_MAX_ATTEMPTS = 120


class ActivityTracker:
    """Network and DOM activity bookkeeping for one page context."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        now = clock()
        self.pending_requests = 0
        self.last_network_activity = now
        self.last_mutation = now

    def request_started(self) -> None:
        self._mark_network(1)

    def request_finished(self) -> None:
        self._mark_network(-1)

    def mutation_observed(self) -> None:
        self.last_mutation = self._clock()

    def _mark_network(self, delta: int) -> None:
        self.pending_requests = max(0, self.pending_requests + delta)
        self.last_network_activity = self._clock()

    def is_network_idle(self, threshold: float, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        return self.pending_requests <= 0 and now - self.last_network_activity > threshold

    def is_structure_idle(self, threshold: float, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        return now - self.last_mutation > threshold


class TrackerRegistry:
    """Identity-keyed trackers, one per live page context."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._trackers: Dict[Hashable, ActivityTracker] = {}

    def __len__(self) -> int:
        return len(self._trackers)

    def __contains__(self, context: object) -> bool:
        return getattr(context, "identity", None) in self._trackers

    def get(self, context: "PageContext") -> ActivityTracker:
        tracker = self._trackers.get(context.identity)
        if tracker is None:
            tracker = ActivityTracker(self._clock)
            context.subscribe(tracker)
            self._trackers[context.identity] = tracker
        return tracker

    def discard(self, context: "PageContext") -> None:
        self._trackers.pop(context.identity, None)

    def clear(self) -> None:
        self._trackers.clear()


@dataclass
class QuiescenceDetector:
    """Polls an :class:`ActivityTracker` until both idleness signals hold."""

    idle_threshold: float = DEFAULT_IDLE_THRESHOLD
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    clock: Clock = field(default=time.monotonic)
    sleep: Sleep = field(default=asyncio.sleep)

    def is_settled(self, tracker: ActivityTracker) -> bool:
        now = self.clock()
        return tracker.is_network_idle(self.idle_threshold, now) and tracker.is_structure_idle(
            self.idle_threshold / 2, now
        )

    async def wait_for_idle(
        self,
        tracker: ActivityTracker,
        cancel: Optional[asyncio.Event] = None,
    ) -> bool:
        """Return ``True`` once settled, ``False`` on timeout or cancellation."""

        for attempt in range(1, self.max_attempts + 1):
            if cancel is not None and cancel.is_set():
                return False
            if self.is_settled(tracker):
                logger.debug("Page settled after %d poll(s)", attempt)
                return True
            if attempt < self.max_attempts:
                await self.sleep(self.poll_interval)

        logger.info("Idle wait timeout after %d polls; capturing anyway", self.max_attempts)
        return False

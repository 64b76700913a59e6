from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..core.config import CrawlerConfig
from .allowlist import AllowlistMatcher
from .frontier import Frontier
from .quiescence import Clock, TrackerRegistry
from .urls import hostname_of


@dataclass(slots=True)
class CrawlSession:
    """Everything one run of the crawler owns; rebuilt on every start."""

    start_url: str
    frontier: Frontier
    allowlist: AllowlistMatcher
    trackers: TrackerRegistry
    cancel: asyncio.Event = field(default_factory=asyncio.Event)
    clock: Clock = time.monotonic
    started_at: float = 0.0
    current_url: Optional[str] = None

    @classmethod
    def create(
        cls,
        config: CrawlerConfig,
        start_url: str,
        allowlist_entries: Iterable[str] = (),
        *,
        clock: Clock = time.monotonic,
    ) -> "CrawlSession":
        entries = [*config.allowlist, *allowlist_entries, hostname_of(start_url)]
        allowlist = AllowlistMatcher.for_url(start_url, entries)
        frontier = Frontier(
            max_depth=config.max_depth,
            max_pages=config.max_pages,
            is_allowed=allowlist.is_allowed,
        )
        return cls(
            start_url=start_url,
            frontier=frontier,
            allowlist=allowlist,
            trackers=TrackerRegistry(clock),
            clock=clock,
            started_at=clock(),
        )

    @property
    def cancelled(self) -> bool:
        return self.cancel.is_set()

    def elapsed(self) -> float:
        return max(0.0, self.clock() - self.started_at)

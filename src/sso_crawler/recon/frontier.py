"""Breadth-first visit queue with dedup, depth and page-budget accounting."""

from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Iterator, Optional

from ..core.models import FrontierEntry


class Frontier:
    """FIFO of discovered pages.

    A URL moves queued -> in flight (``dequeue``) -> visited
    (``mark_visited``) and is never accepted again once it has been seen in
    any of those stages. Every stage counts against ``max_pages``.
    """

    def __init__(
        self,
        *,
        max_depth: int,
        max_pages: int,
        is_allowed: Callable[[str], bool],
    ) -> None:
        self.max_depth = max_depth
        self.max_pages = max_pages
        self._is_allowed = is_allowed
        self._queue: Deque[FrontierEntry] = deque()
        self._queued: set[str] = set()
        self._in_flight: set[str] = set()
        self.visited: set[str] = set()
        self._aliases: set[str] = set()

    def __len__(self) -> int:
        return len(self._queue)

    def __contains__(self, url: object) -> bool:
        return url in self._queued

    def __iter__(self) -> Iterator[FrontierEntry]:
        return iter(tuple(self._queue))

    @property
    def visited_count(self) -> int:
        return len(self.visited)

    @property
    def budget_used(self) -> int:
        return len(self._queue) + len(self._in_flight) + len(self.visited)

    @property
    def budget_exhausted(self) -> bool:
        return len(self.visited) >= self.max_pages

    def enqueue(self, url: str, depth: int) -> bool:
        if depth > self.max_depth:
            return False
        if url in self.visited or url in self._queued or url in self._in_flight or url in self._aliases:
            return False
        if self.budget_used >= self.max_pages:
            return False
        if not self._is_allowed(url):
            return False

        self._queue.append(FrontierEntry(url=url, depth=depth))
        self._queued.add(url)
        return True

    def seed(self, url: str) -> FrontierEntry:
        """Queue the starting page at depth 0, bypassing the allowlist."""

        entry = FrontierEntry(url=url, depth=0)
        self._queue.appendleft(entry)
        self._queued.add(url)
        return entry

    def dequeue(self) -> Optional[FrontierEntry]:
        if not self._queue:
            return None
        entry = self._queue.popleft()
        self._queued.discard(entry.url)
        self._in_flight.add(entry.url)
        return entry

    def mark_visited(self, url: str) -> None:
        self._in_flight.discard(url)
        self.visited.add(url)

    def mark_alias(self, url: str) -> bool:
        """Record ``url`` as another address of a page already captured.

        Aliases are never queued and do not count against the budget. A queued
        copy is dropped. Returns ``True`` if ``url`` was new.
        """

        if url in self.visited or url in self._in_flight or url in self._aliases:
            return False
        self._aliases.add(url)
        if url in self._queued:
            self._queued.discard(url)
            self._queue = deque(entry for entry in self._queue if entry.url != url)
        return True

    def clear(self) -> int:
        dropped = len(self._queue)
        self._queue.clear()
        self._queued.clear()
        return dropped

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Pattern

from .urls import Origin, hostname_of, url_origin

logger = logging.getLogger(__name__)


def is_pattern_entry(entry: str) -> bool:
    return len(entry) > 2 and entry.startswith("/") and entry.endswith("/")


@dataclass(slots=True)
class AllowlistMatcher:
    """Narrows crawlable links to hostnames matching literal or ``/regex/`` rules.

    Links outside ``origin`` are rejected whatever the rules say.
    """

    origin: Origin
    _entries: list[str] = field(default_factory=list)
    _compiled: dict[str, Optional[Pattern[str]]] = field(default_factory=dict)

    @classmethod
    def for_url(cls, start_url: str, entries: Iterable[str] = ()) -> "AllowlistMatcher":
        origin = url_origin(start_url)
        if origin is None:
            raise ValueError(f"Cannot derive an origin from {start_url!r}")
        matcher = cls(origin=origin)
        for entry in entries:
            matcher.add(entry)
        return matcher

    @property
    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def add(self, entry: str) -> bool:
        value = (entry or "").strip()
        if not value or value in self._entries:
            return False
        self._entries.append(value)
        if is_pattern_entry(value):
            self._compiled[value] = self._compile(value)
        return True

    def remove(self, entry: str) -> bool:
        value = (entry or "").strip()
        if value not in self._entries:
            return False
        self._entries.remove(value)
        self._compiled.pop(value, None)
        return True

    def is_allowed(self, url: str) -> bool:
        if url_origin(url) != self.origin:
            return False

        hostname = hostname_of(url)
        if not hostname:
            return False
        return any(self._matches(entry, hostname) for entry in self._entries)

    def _matches(self, entry: str, hostname: str) -> bool:
        if is_pattern_entry(entry):
            pattern = self._compiled.get(entry)
            return bool(pattern and pattern.search(hostname))
        return hostname == entry.lower()

    @staticmethod
    def _compile(entry: str) -> Optional[Pattern[str]]:
        try:
            return re.compile(entry[1:-1])
        except re.error as exc:
            logger.warning("Invalid regex in allowlist %s: %s", entry, exc)
            return None

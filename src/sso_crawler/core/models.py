"""Shared data structures used across the crawler."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, TypedDict

PNG_DATA_URI_PREFIX = "data:image/png;base64,"


class SessionState(Enum):
    """Lifecycle of a crawl session."""

    IDLE = "Idle"
    RUNNING = "Running"
    PAUSED = "Paused"
    STOPPING = "Stopping"


class DeliveryOutcome(Enum):
    """Where a captured page ended up."""

    POSTED = "posted"
    RELAYED = "relayed"
    PERSISTED = "persisted"
    FAILED = "failed"


@dataclass(frozen=True)
class FrontierEntry:
    """A discovered page waiting to be visited."""

    url: str
    depth: int


class WirePayload(TypedDict):
    """JSON body sent to the remote endpoint."""

    url: str
    timestamp: str
    html: str
    screenshot: str


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class CapturePayload:
    """Markup and screenshot captured for a single page."""

    url: str
    timestamp: str
    html: str
    screenshot: bytes

    @classmethod
    def capture(cls, url: str, html: str, screenshot: bytes) -> "CapturePayload":
        return cls(url=url, timestamp=utc_timestamp(), html=html, screenshot=screenshot)

    @property
    def screenshot_data_uri(self) -> str:
        return PNG_DATA_URI_PREFIX + base64.b64encode(self.screenshot).decode("ascii")

    def to_wire(self) -> WirePayload:
        return {
            "url": self.url,
            "timestamp": self.timestamp,
            "html": self.html,
            "screenshot": self.screenshot_data_uri,
        }


def truncate(text: str, length: int) -> str:
    return f"{text[: length - 1]}…" if len(text) > length else text


@dataclass(frozen=True)
class CrawlStatus:
    """Read-only projection of the crawler for status displays."""

    state: SessionState
    visited: int
    max_pages: int
    queued: int
    elapsed: float
    current_url: Optional[str]
    max_depth: int

    @property
    def current_label(self) -> str:
        return truncate(self.current_url, 60) if self.current_url else "—"

    def describe(self) -> str:
        return "\n".join(
            (
                f"State: {self.state.value}",
                f"Visited: {self.visited} / {self.max_pages}",
                f"Queue: {self.queued}",
                f"Current: {self.current_label}",
                f"Depth limit: {self.max_depth}",
                f"Elapsed: {self.elapsed:.1f}s",
            )
        )

"""Configuration loading utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_MAX_DEPTH = 2
DEFAULT_MAX_PAGES = 50
DEFAULT_DELAY_MS = 1500
DEFAULT_RENDER_TIMEOUT = 60.0
DEFAULT_POST_TIMEOUT = 30.0


@dataclass(slots=True)
class CrawlerConfig:
    """Holds runtime options for one crawler process.

    ``max_depth`` of 0 captures only the starting page, 1 follows the links
    found there, and so on. ``max_pages`` includes the starting page.
    """

    start_url: str
    max_depth: int = DEFAULT_MAX_DEPTH
    max_pages: int = DEFAULT_MAX_PAGES
    delay: float = DEFAULT_DELAY_MS / 1000
    allowlist: Tuple[str, ...] = ()
    post_endpoint: Optional[str] = None
    screenshot_width: Optional[int] = None
    screenshot_height: Optional[int] = None
    output_dir: Path = Path("captures")
    report_path: Path = Path("crawl_report.json")
    headless: bool = False
    session_cookie: Optional[str] = None
    render_timeout: float = DEFAULT_RENDER_TIMEOUT
    post_timeout: float = DEFAULT_POST_TIMEOUT
    idle_threshold: float = 1.0
    poll_interval: float = 0.25
    max_idle_attempts: int = 120

    @property
    def viewport(self) -> Optional[dict]:
        if not self.screenshot_width or not self.screenshot_height:
            return None
        return {"width": self.screenshot_width, "height": self.screenshot_height}


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _split_allowlist(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def load_configuration(
    start_url: str,
    report_name: str = "crawl_report.json",
    *,
    max_depth: Optional[int] = None,
    max_pages: Optional[int] = None,
    delay_ms: Optional[int] = None,
    allowlist: Optional[Tuple[str, ...]] = None,
    post_endpoint: Optional[str] = None,
    output_dir: Optional[str] = None,
    headless: Optional[bool] = None,
) -> CrawlerConfig:
    """Builds a ``CrawlerConfig`` from CLI input and environment variables."""

    load_dotenv()  # Loads .env values if present

    depth = max_depth if max_depth is not None else _env_int("CRAWL_MAX_DEPTH", DEFAULT_MAX_DEPTH)
    pages = max_pages if max_pages is not None else _env_int("CRAWL_MAX_PAGES", DEFAULT_MAX_PAGES)
    delay_value = delay_ms if delay_ms is not None else _env_int("CRAWL_DELAY_MS", DEFAULT_DELAY_MS)

    entries = allowlist if allowlist is not None else _split_allowlist(os.getenv("CRAWL_ALLOWLIST"))
    endpoint = post_endpoint or os.getenv("CRAWL_POST_ENDPOINT") or None
    output = output_dir or os.getenv("CRAWL_OUTPUT_DIR") or "captures"

    if headless is None:
        headless = os.getenv("HEADLESS", "false").lower() in {"1", "true", "yes"}

    return CrawlerConfig(
        start_url=start_url.strip(),
        max_depth=max(0, depth or 0),
        max_pages=max(1, pages or 1),
        delay=max(0, delay_value or 0) / 1000,
        allowlist=tuple(entries),
        post_endpoint=endpoint,
        screenshot_width=_env_int("CRAWL_SCREENSHOT_WIDTH", None),
        screenshot_height=_env_int("CRAWL_SCREENSHOT_HEIGHT", None),
        output_dir=Path(output).resolve(),
        report_path=Path(report_name).resolve(),
        headless=headless,
        session_cookie=os.getenv("SESSION_COOKIE") or None,
        render_timeout=_env_float("CRAWL_RENDER_TIMEOUT", DEFAULT_RENDER_TIMEOUT),
        post_timeout=_env_float("CRAWL_POST_TIMEOUT", DEFAULT_POST_TIMEOUT),
    )

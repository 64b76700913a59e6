"""Centralized imports for the SSO crawler package used in tests."""

from sso_crawler import cli  # type: ignore[import]
from sso_crawler.core.config import (  # type: ignore[import]
    CrawlerConfig,
    load_configuration,
)
from sso_crawler.core.models import DeliveryOutcome  # type: ignore[import]
from sso_crawler.core.report import CrawlReport, DeliveryRecord  # type: ignore[import]
from sso_crawler.render import playwright_renderer  # type: ignore[import]

__all__ = [
    "cli",
    "load_configuration",
    "CrawlerConfig",
    "CrawlReport",
    "DeliveryRecord",
    "DeliveryOutcome",
    "playwright_renderer",
]

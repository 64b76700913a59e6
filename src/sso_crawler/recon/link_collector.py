from __future__ import annotations

from typing import List, Optional

from bs4 import BeautifulSoup

from .urls import normalize_url

IGNORED_SCHEMES = ("javascript:", "mailto:", "tel:")


def normalize_link(base_url: str, href: Optional[str]) -> Optional[str]:
    """Resolve an anchor ``href`` to an absolute, fragment-free URL."""

    if not href:
        return None
    value = href.strip()
    if not value or value.startswith("#") or value.lower().startswith(IGNORED_SCHEMES):
        return None

    normalized = normalize_url(value, base_url)
    if not normalized.lower().startswith(("http://", "https://")):
        return None
    return normalized


def gather_links(html: str, base_url: str) -> List[str]:
    """Collect anchor targets in document order, without duplicates."""

    if not html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    base_tag = soup.find("base", href=True)
    if base_tag is not None:
        base_url = normalize_url(base_tag["href"], base_url)

    links: List[str] = []
    seen: set[str] = set()
    for anchor in soup.find_all("a", href=True):
        normalized = normalize_link(base_url, anchor.get("href"))
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        links.append(normalized)
    return links

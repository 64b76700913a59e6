"""Crawl report collected over one or more sessions."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .models import DeliveryOutcome


@dataclass(frozen=True)
class DeliveryRecord:
    """Outcome of delivering a single captured page."""

    url: str
    depth: int
    outcome: DeliveryOutcome
    artifacts: tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "depth": self.depth,
            "outcome": self.outcome.value,
            "artifacts": list(self.artifacts),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "DeliveryRecord":
        return cls(
            url=raw["url"],
            depth=int(raw.get("depth", 0)),
            outcome=DeliveryOutcome(raw.get("outcome", DeliveryOutcome.FAILED.value)),
            artifacts=tuple(raw.get("artifacts", ())),
        )


@dataclass
class CrawlReport:
    """Structured record of the pages a crawler visited and delivered."""

    seed_url: str = ""
    visited_urls: List[str] = field(default_factory=list)
    deliveries: List[DeliveryRecord] = field(default_factory=list)

    def record(
        self,
        url: str,
        depth: int,
        outcome: DeliveryOutcome,
        artifacts: Optional[Sequence[str]] = None,
    ) -> DeliveryRecord:
        entry = DeliveryRecord(url=url, depth=depth, outcome=outcome, artifacts=tuple(artifacts or ()))
        if url not in self.visited_urls:
            self.visited_urls.append(url)
        self.deliveries.append(entry)
        return entry

    @property
    def failed(self) -> List[DeliveryRecord]:
        return [entry for entry in self.deliveries if entry.outcome is DeliveryOutcome.FAILED]

    def to_json(self) -> str:
        data = {
            "seed_url": self.seed_url,
            "visited_urls": list(self.visited_urls),
            "deliveries": [entry.to_dict() for entry in self.deliveries],
        }
        return json.dumps(data, indent=4)

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> "CrawlReport":
        raw = json.loads(path.read_text(encoding="utf-8"))
        return cls(
            seed_url=raw.get("seed_url", ""),
            visited_urls=list(raw.get("visited_urls", [])),
            deliveries=[DeliveryRecord.from_dict(item) for item in raw.get("deliveries", [])],
        )

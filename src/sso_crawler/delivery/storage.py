from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from ..core.models import CapturePayload

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "page"


def artifact_names(sequence: int) -> Tuple[str, str]:
    """Markup and screenshot filenames sharing one zero-padded stem."""

    stem = f"{FILENAME_PREFIX}-{sequence:04d}"
    return f"{stem}.html", f"{stem}.png"


@dataclass(slots=True)
class ArtifactStore:
    """Writes captured pages to a local directory."""

    output_dir: Path

    def persist(self, payload: CapturePayload, sequence: int) -> List[str]:
        """Write both artifacts; returns the names that were written.

        A failed write is logged and skipped so the other artifact, and the
        rest of the crawl, still go ahead.
        """

        html_name, png_name = artifact_names(sequence)
        written: List[str] = []

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.exception("Cannot create output directory %s", self.output_dir)
            return written

        if self._write(html_name, payload.html.encode("utf-8")):
            written.append(html_name)
        if self._write(png_name, payload.screenshot):
            written.append(png_name)
        return written

    def _write(self, name: str, data: bytes) -> bool:
        path = self.output_dir / name
        try:
            path.write_bytes(data)
        except OSError:
            logger.exception("Failed to write artifact %s", path)
            return False
        logger.debug("Saved %s (%d bytes)", path, len(data))
        return True

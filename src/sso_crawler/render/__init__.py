"""Rendering collaborator contracts."""

from .base import ActivityListener, CaptureError, CrawlError, PageContext, RelayTransport, RenderError, Renderer

__all__ = [
    "ActivityListener",
    "CaptureError",
    "CrawlError",
    "PageContext",
    "RelayTransport",
    "RenderError",
    "Renderer",
]

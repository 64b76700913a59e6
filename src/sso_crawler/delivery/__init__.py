"""Delivery of captured pages to a remote endpoint or local files."""

from .pipeline import DeliveryPipeline, DeliveryResult
from .storage import ArtifactStore, artifact_names

__all__ = ["ArtifactStore", "DeliveryPipeline", "DeliveryResult", "artifact_names"]

"""Delivers captured pages to a remote endpoint, falling back to local files."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import requests

from ..core.models import CapturePayload, DeliveryOutcome
from ..render.base import RelayTransport
from .storage import ArtifactStore

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


def is_success(status: int) -> bool:
    return 200 <= status < 300


@dataclass(frozen=True)
class DeliveryResult:
    outcome: DeliveryOutcome
    artifacts: Tuple[str, ...] = ()

    @property
    def delivered(self) -> bool:
        return self.outcome is not DeliveryOutcome.FAILED


class DeliveryPipeline:
    """Direct POST, then relay POST, then two files on disk.

    Each remote channel is tried at most once per payload.
    """

    def __init__(
        self,
        store: ArtifactStore,
        endpoint: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
        relay: Optional[RelayTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self.store = store
        self.endpoint = endpoint
        self.relay = relay
        self.timeout = timeout
        self._session = session or requests.Session()

    async def deliver(self, payload: CapturePayload, sequence: int) -> DeliveryResult:
        if self.endpoint:
            body = json.dumps(payload.to_wire())
            if await self._post_direct(body):
                logger.info("Posted payload for %s", payload.url)
                return DeliveryResult(DeliveryOutcome.POSTED)
            if self.relay is not None and await self._post_relay(body):
                logger.info("Posted payload for %s through relay", payload.url)
                return DeliveryResult(DeliveryOutcome.RELAYED)
            logger.warning("POST failed for %s, falling back to local files", payload.url)

        written = await asyncio.to_thread(self.store.persist, payload, sequence)
        if len(written) < 2:
            return DeliveryResult(DeliveryOutcome.FAILED, tuple(written))
        return DeliveryResult(DeliveryOutcome.PERSISTED, tuple(written))

    async def _post_direct(self, body: str) -> bool:
        try:
            response = await asyncio.to_thread(
                self._session.post,
                self.endpoint,
                data=body.encode("utf-8"),
                headers=JSON_HEADERS,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Direct POST to %s failed: %s", self.endpoint, exc)
            return False

        if not is_success(response.status_code):
            logger.warning("Direct POST to %s returned HTTP %s", self.endpoint, response.status_code)
            return False
        return True

    async def _post_relay(self, body: str) -> bool:
        try:
            status = await self.relay.post(self.endpoint, body, timeout=self.timeout)
        except Exception as exc:
            logger.warning("Relay POST to %s failed: %s", self.endpoint, exc)
            return False

        if not is_success(status):
            logger.warning("Relay POST to %s returned HTTP %s", self.endpoint, status)
            return False
        return True

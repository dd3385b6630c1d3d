"""Background sync of receipts captured while offline.

Queued receipts are replayed under the ``sync-receipts`` tag. A record is
removed from the local store only after the submitter acknowledges it, so a
failed replay is simply retried on the next sync.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

import httpx

from .capture import ReceiptImage
from .errors import AppError
from .models import OfflineReceipt

if TYPE_CHECKING:
    from .db import OfflineReceiptStore
    from .pipeline import ReceiptPipeline

logger = logging.getLogger(__name__)

SYNC_TAG = "sync-receipts"

Submitter = Callable[[OfflineReceipt], Awaitable[bool]]


@dataclass
class SyncResult:
    synced: int = 0
    failed: int = 0

    @property
    def remaining(self) -> int:
        return self.failed


class OfflineReceiptQueue:
    """Offline store plus the set of pending sync registrations."""

    def __init__(self, store: OfflineReceiptStore) -> None:
        self._store = store
        self._registered: set[str] = set()

    @property
    def registered_tags(self) -> frozenset[str]:
        return frozenset(self._registered)

    def register(self, tag: str = SYNC_TAG) -> None:
        self._registered.add(tag)

    def pending(self) -> list[OfflineReceipt]:
        return self._store.get_all()

    def enqueue(self, image: ReceiptImage, metadata: dict | None = None) -> OfflineReceipt:
        """Store an image for later upload and request a sync."""
        record = OfflineReceipt(
            image_data=image.to_data_url(),
            metadata=dict(metadata or {}),
            timestamp=image.captured_at,
        )
        self._store.put(record)
        self.register(SYNC_TAG)
        return record

    async def sync(self, tag: str, submit: Submitter) -> SyncResult:
        """Replay every queued receipt through ``submit``.

        Only the ``sync-receipts`` tag is handled; other tags are ignored.
        """
        result = SyncResult()
        if tag != SYNC_TAG:
            logger.debug("Ignoring sync for unknown tag %r", tag)
            return result

        for record in self._store.get_all():
            try:
                acknowledged = await submit(record)
            except (httpx.HTTPError, AppError) as e:
                logger.warning("Sync of receipt %s failed: %s", record.id, e)
                acknowledged = False

            if acknowledged:
                self._store.delete(record.id)
                result.synced += 1
            else:
                result.failed += 1

        if result.failed == 0:
            self._registered.discard(tag)

        logger.info(
            "Receipt sync finished: %d synced, %d kept for retry",
            result.synced,
            result.failed,
        )
        return result


class HttpReceiptSubmitter:
    """POST queued receipts to ``<server_url>/api/receipts``."""

    def __init__(
        self,
        server_url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = server_url.rstrip("/") + "/api/receipts"
        self._timeout = timeout
        self._client = client

    async def __call__(self, record: OfflineReceipt) -> bool:
        payload = {
            "id": record.id,
            "imageData": record.image_data,
            "timestamp": record.timestamp.isoformat(),
            "metadata": record.metadata,
        }
        try:
            if self._client is not None:
                response = await self._client.post(
                    self._endpoint, json=payload, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._endpoint, json=payload)
        except httpx.RequestError as e:
            logger.warning("Could not reach %s: %s", self._endpoint, e)
            return False

        if not response.is_success:
            logger.warning(
                "Server rejected receipt %s: HTTP %d", record.id, response.status_code
            )
        return response.is_success


class PipelineSubmitter:
    """Replay queued receipts through the local capture pipeline."""

    def __init__(self, pipeline: ReceiptPipeline, default_user_id: str = "") -> None:
        self._pipeline = pipeline
        self._default_user_id = default_user_id

    async def __call__(self, record: OfflineReceipt) -> bool:
        user_id = record.metadata.get("user_id") or self._default_user_id
        if not user_id:
            logger.warning("Queued receipt %s has no user; keeping it", record.id)
            return False

        image = replace(
            ReceiptImage.from_data_url(record.image_data), captured_at=record.timestamp
        )
        await self._pipeline.capture(user_id, image, receipt_id=record.id)
        return True

"""Receipt capture pipeline.

A captured image flows through extraction, the duplicate check and the
points calculator before the receipt and its points transaction are
persisted. When the device is offline the image is queued instead and
replayed later by the sync job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import TYPE_CHECKING

from .capture import ReceiptImage
from .duplicates import DuplicateCheck, ReceiptHistory, check_for_duplicates
from .errors import StorageError
from .extraction import ExtractionBackend, ProcessedReceipt, create_backend
from .gamification import UserStats, achievements_for
from .models import PointsSource, PointsTransaction, ReceiptRecord
from .points import calculate_points

if TYPE_CHECKING:
    from .config import CaptureConfig, RewardsConfig
    from .db import ProfileStore, ReceiptRepository
    from .sync import OfflineReceiptQueue

logger = logging.getLogger(__name__)


@dataclass
class CaptureSettings:
    enable_ocr: bool = True
    enable_ai: bool = False
    enable_fraud_detection: bool = True

    @classmethod
    def from_config(cls, config: CaptureConfig) -> CaptureSettings:
        return cls(
            enable_ocr=config.enable_ocr,
            enable_ai=config.enable_ai,
            enable_fraud_detection=config.enable_fraud_detection,
        )


@dataclass
class CaptureResult:
    receipt: ProcessedReceipt
    record: ReceiptRecord
    transaction: PointsTransaction
    duplicate: DuplicateCheck
    streak: int | None = None
    new_achievements: list[str] = field(default_factory=list)

    @property
    def points(self) -> int:
        return self.transaction.points


@dataclass
class SubmitResult:
    queued: bool
    offline_id: str | None = None
    capture: CaptureResult | None = None


class ReceiptPipeline:
    """Turn receipt images into persisted receipts and points."""

    def __init__(
        self,
        backend: ExtractionBackend,
        repository: ReceiptRepository,
        settings: CaptureSettings | None = None,
        history: ReceiptHistory | None = None,
        profiles: ProfileStore | None = None,
        offline_queue: OfflineReceiptQueue | None = None,
        duplicate_threshold: float = 0.7,
    ) -> None:
        self._backend = backend
        self._repository = repository
        self._settings = settings or CaptureSettings()
        self._history = history if history is not None else ReceiptHistory()
        self._profiles = profiles
        self._offline_queue = offline_queue
        self._duplicate_threshold = duplicate_threshold

    @classmethod
    def from_config(
        cls,
        config: RewardsConfig,
        settings: CaptureSettings | None = None,
    ) -> ReceiptPipeline:
        """Wire a pipeline to the configured backend and SQLite database."""
        from .db import OfflineReceiptStore, ProfileStore, ReceiptStore
        from .sync import OfflineReceiptQueue

        settings = settings or CaptureSettings.from_config(config.capture)
        db_path = config.database.path
        return cls(
            backend=create_backend(
                config,
                enable_ocr=settings.enable_ocr,
                enable_ai=settings.enable_ai,
            ),
            repository=ReceiptStore(db_path),
            settings=settings,
            history=ReceiptHistory(config.duplicates.history_size),
            profiles=ProfileStore(db_path),
            offline_queue=OfflineReceiptQueue(OfflineReceiptStore(db_path)),
            duplicate_threshold=config.duplicates.threshold,
        )

    @property
    def settings(self) -> CaptureSettings:
        return self._settings

    @property
    def history(self) -> ReceiptHistory:
        return self._history

    async def capture(
        self,
        user_id: str,
        image: ReceiptImage,
        image_url: str | None = None,
        receipt_id: str | None = None,
    ) -> CaptureResult:
        """Process one receipt image end to end.

        ``receipt_id`` pins the stored receipt's id. Capturing again with an
        id that is already stored awards nothing further, which makes
        replaying a queued receipt safe.

        Raises:
            ExtractionError: No total or store could be read. Nothing is saved
                and the capture can be retried right away.
            StorageError: The receipt could not be saved. No points are
                awarded in that case. Profile, streak and achievement
                updates after the award only log a warning on failure.
        """
        receipt = await self._backend.extract(image)
        logger.info("Extracted receipt: %s %s", receipt.store, receipt.total)

        if self._settings.enable_fraud_detection:
            duplicate = check_for_duplicates(
                receipt, self._history, threshold=self._duplicate_threshold
            )
        else:
            duplicate = DuplicateCheck(is_duplicate=False, score=0.0)

        processed = ProcessedReceipt.from_receipt(
            receipt,
            is_duplicate=duplicate.is_duplicate,
            duplicate_score=duplicate.score,
        )

        # Scan time and purchase time are treated as the same moment
        points = calculate_points(receipt.total, 0)

        record = ReceiptRecord(
            user_id=user_id,
            store=receipt.store,
            total=receipt.total,
            points_earned=points,
            image_url=image_url,
            fraud_score=duplicate.score,
            items=receipt.items,
            purchased_at=receipt.timestamp if receipt.timestamp_confident else None,
        )
        if receipt_id:
            record = replace(record, id=receipt_id)
        transaction = PointsTransaction(
            user_id=user_id,
            points=points,
            source=PointsSource.RECEIPT_SCAN,
            receipt_id=record.id,
        )
        stored = self._repository.save_capture(record, transaction)

        result = CaptureResult(
            receipt=processed,
            record=record,
            transaction=transaction,
            duplicate=duplicate,
        )
        if not stored:
            return result

        self._history.append(receipt)
        if self._profiles is not None:
            self._update_profile(self._profiles, user_id, points, result)

        logger.info(
            "Awarded %d points to %s for %s%s",
            points,
            user_id,
            receipt.store,
            " (possible duplicate)" if duplicate.is_duplicate else "",
        )
        return result

    def _update_profile(
        self, profiles: ProfileStore, user_id: str, points: int, result: CaptureResult
    ) -> None:
        # The receipt and its points are already committed at this point
        try:
            profile = profiles.add_points(user_id, points)
            result.streak = profiles.record_activity(user_id, date.today())
            stats = UserStats(
                points=profile.total_points,
                level=profile.level,
                streak_days=result.streak,
            )
            for achievement in achievements_for(stats):
                if profiles.award_achievement(user_id, achievement):
                    logger.info("User %s earned achievement %s", user_id, achievement)
                    result.new_achievements.append(achievement)
        except StorageError as e:
            logger.warning("Could not update profile for %s: %s", user_id, e)

    async def submit(
        self,
        user_id: str,
        image: ReceiptImage,
        online: bool = True,
        image_url: str | None = None,
    ) -> SubmitResult:
        """Capture now when online, otherwise queue for background sync."""
        if online:
            return SubmitResult(
                queued=False,
                capture=await self.capture(user_id, image, image_url=image_url),
            )

        if self._offline_queue is None:
            raise RuntimeError("No offline queue is configured for this pipeline")

        record = self._offline_queue.enqueue(image, {"user_id": user_id})
        logger.info("Offline: queued receipt %s for later sync", record.id)
        return SubmitResult(queued=True, offline_id=record.id)

"""Tests for the receipt capture pipeline."""

import json
import logging
from dataclasses import replace
from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pytest

from conftest import FakeBackend, make_receipt
from evuka.db import OfflineReceiptStore, ProfileStore, ReceiptStore
from evuka.duplicates import ReceiptHistory
from evuka.errors import ExtractionError, StorageError
from evuka.models import PointsSource
from evuka.pipeline import CaptureSettings, ReceiptPipeline
from evuka.sync import SYNC_TAG, HttpReceiptSubmitter, OfflineReceiptQueue, PipelineSubmitter


@pytest.fixture
def repository(db_path):
    store = ReceiptStore(db_path)
    yield store
    store.close()


@pytest.fixture
def queue(db_path):
    store = OfflineReceiptStore(db_path)
    yield OfflineReceiptQueue(store)
    store.close()


class TestCapture:
    @pytest.mark.asyncio
    async def test_fifty_dollar_receipt(self, repository, receipt_image):
        pipeline = ReceiptPipeline(FakeBackend(make_receipt(total="50.00")), repository)
        result = await pipeline.capture("u1", receipt_image)

        assert result.points == 60
        assert result.record.points_earned == 60
        assert result.transaction.receipt_id == result.record.id
        assert result.transaction.source is PointsSource.RECEIPT_SCAN
        assert result.duplicate.is_duplicate is False
        assert result.receipt.is_duplicate is False
        assert len(pipeline.history) == 1

        [saved] = repository.get_receipts("u1")
        assert saved.total == Decimal("50.00")
        assert repository.total_points("u1") == 60

    @pytest.mark.asyncio
    async def test_rescan_flagged_but_still_saved(self, repository, receipt_image):
        pipeline = ReceiptPipeline(FakeBackend(make_receipt()), repository)
        await pipeline.capture("u1", receipt_image)
        second = await pipeline.capture("u1", receipt_image)

        assert second.duplicate.is_duplicate is True
        assert second.receipt.duplicate_score == 0.9
        assert second.record.fraud_score == 0.9
        assert len(repository.get_receipts("u1")) == 2

    @pytest.mark.asyncio
    async def test_fraud_detection_disabled(self, repository, receipt_image):
        pipeline = ReceiptPipeline(
            FakeBackend(make_receipt()),
            repository,
            settings=CaptureSettings(enable_fraud_detection=False),
        )
        await pipeline.capture("u1", receipt_image)
        second = await pipeline.capture("u1", receipt_image)

        assert second.duplicate.is_duplicate is False
        assert second.duplicate.score == 0.0

    @pytest.mark.asyncio
    async def test_purchase_time_kept_only_when_read(self, repository, receipt_image):
        read = replace(make_receipt(), timestamp_confident=True)
        pipeline = ReceiptPipeline(FakeBackend(read, make_receipt(store="Target")), repository)

        first = await pipeline.capture("u1", receipt_image)
        second = await pipeline.capture("u1", receipt_image)
        assert first.record.purchased_at == read.timestamp
        assert second.record.purchased_at is None

    @pytest.mark.asyncio
    async def test_extraction_failure_saves_nothing(self, repository, receipt_image):
        backend = FakeBackend(
            ExtractionError("Could not find the receipt total."),
            make_receipt(total="12.00"),
        )
        pipeline = ReceiptPipeline(backend, repository)

        with pytest.raises(ExtractionError):
            await pipeline.capture("u1", receipt_image)
        assert repository.get_receipts("u1") == []
        assert len(pipeline.history) == 0

        # an immediate retry goes through
        result = await pipeline.capture("u1", receipt_image)
        assert result.points == 12
        assert backend.calls == 2

    @pytest.mark.asyncio
    async def test_storage_failure_awards_nothing(self, receipt_image):
        repo = MagicMock()
        repo.save_capture.side_effect = StorageError("Failed to save receipt: disk full")
        pipeline = ReceiptPipeline(FakeBackend(make_receipt()), repo)

        with pytest.raises(StorageError):
            await pipeline.capture("u1", receipt_image)
        repo.save_receipt.assert_not_called()
        repo.save_points_transaction.assert_not_called()
        assert len(pipeline.history) == 0

    @pytest.mark.asyncio
    async def test_same_receipt_id_awards_once(self, repository, db_path, receipt_image):
        profiles = ProfileStore(db_path)
        pipeline = ReceiptPipeline(
            FakeBackend(make_receipt(total="50.00")), repository, profiles=profiles
        )
        await pipeline.capture("u1", receipt_image, receipt_id="offline-1")
        again = await pipeline.capture("u1", receipt_image, receipt_id="offline-1")

        assert again.record.id == "offline-1"
        assert len(repository.get_receipts("u1")) == 1
        assert repository.total_points("u1") == 60
        assert profiles.get_profile("u1").total_points == 60
        assert len(pipeline.history) == 1
        profiles.close()

    @pytest.mark.asyncio
    async def test_profile_failure_keeps_award(self, repository, db_path, receipt_image, caplog):
        class BrokenProfiles(ProfileStore):
            def record_activity(self, user_id, today=None):
                raise StorageError("Failed to update user profile: database is locked")

        profiles = BrokenProfiles(db_path)
        pipeline = ReceiptPipeline(
            FakeBackend(make_receipt(total="50.00")), repository, profiles=profiles
        )
        with caplog.at_level(logging.WARNING, logger="evuka.pipeline"):
            result = await pipeline.capture("u1", receipt_image)

        assert result.points == 60
        assert result.streak is None
        assert repository.total_points("u1") == 60
        assert "Could not update profile for u1" in caplog.text
        profiles.close()

    @pytest.mark.asyncio
    async def test_profile_updates(self, repository, db_path, receipt_image):
        profiles = ProfileStore(db_path)
        pipeline = ReceiptPipeline(
            FakeBackend(make_receipt(total="10000.00")),
            repository,
            profiles=profiles,
        )
        result = await pipeline.capture("u1", receipt_image)

        assert result.points == 10025
        assert result.streak == 1
        assert result.new_achievements == ["level-5", "level-10", "points-10k"]

        profile = profiles.get_profile("u1")
        assert profile.total_points == 10025
        assert profile.level == 10

        again = await pipeline.capture("u1", receipt_image)
        assert again.new_achievements == []
        profiles.close()

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, repository, receipt_image):
        pipeline = ReceiptPipeline(
            FakeBackend(make_receipt()), repository, history=ReceiptHistory(maxlen=1)
        )
        await pipeline.capture("u1", receipt_image)
        await pipeline.capture("u1", receipt_image)
        assert len(pipeline.history) == 1


class TestSubmit:
    @pytest.mark.asyncio
    async def test_online_captures(self, repository, receipt_image):
        pipeline = ReceiptPipeline(FakeBackend(make_receipt()), repository)
        result = await pipeline.submit("u1", receipt_image)
        assert result.queued is False
        assert result.capture.points == 25

    @pytest.mark.asyncio
    async def test_offline_queues(self, repository, queue, receipt_image):
        backend = FakeBackend(make_receipt())
        pipeline = ReceiptPipeline(backend, repository, offline_queue=queue)

        result = await pipeline.submit("u1", receipt_image, online=False)

        assert result.queued is True
        assert backend.calls == 0
        [pending] = queue.pending()
        assert pending.id == result.offline_id
        assert pending.metadata == {"user_id": "u1"}
        assert SYNC_TAG in queue.registered_tags
        assert repository.get_receipts("u1") == []

    @pytest.mark.asyncio
    async def test_offline_without_queue(self, repository, receipt_image):
        pipeline = ReceiptPipeline(FakeBackend(make_receipt()), repository)
        with pytest.raises(RuntimeError, match="offline queue"):
            await pipeline.submit("u1", receipt_image, online=False)


class TestOfflineScenario:
    @pytest.mark.asyncio
    async def test_queue_then_sync_to_server(self, repository, queue, receipt_image):
        """A $50 receipt captured offline survives a failed sync and uploads on retry."""
        pipeline = ReceiptPipeline(
            FakeBackend(make_receipt(total="50.00")), repository, offline_queue=queue
        )
        submitted = await pipeline.submit("u1", receipt_image, online=False)

        statuses = [500, 201]
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(statuses.pop(0))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            submitter = HttpReceiptSubmitter("https://rewards.example.com/", client=client)

            first = await queue.sync(SYNC_TAG, submitter)
            assert (first.synced, first.failed) == (0, 1)
            assert len(queue.pending()) == 1
            assert SYNC_TAG in queue.registered_tags

            second = await queue.sync(SYNC_TAG, submitter)
            assert (second.synced, second.failed) == (1, 0)

        assert queue.pending() == []
        assert SYNC_TAG not in queue.registered_tags
        assert bodies[0]["id"] == submitted.offline_id
        assert bodies[0]["imageData"] == receipt_image.to_data_url()
        assert bodies[0]["metadata"] == {"user_id": "u1"}

    @pytest.mark.asyncio
    async def test_queue_then_replay_locally(self, repository, queue, receipt_image):
        pipeline = ReceiptPipeline(
            FakeBackend(make_receipt(total="50.00")), repository, offline_queue=queue
        )
        await pipeline.submit("u1", receipt_image, online=False)

        result = await queue.sync(SYNC_TAG, PipelineSubmitter(pipeline))

        assert result.synced == 1
        assert queue.pending() == []
        assert repository.total_points("u1") == 60

    @pytest.mark.asyncio
    async def test_replay_survives_profile_failure(self, repository, queue, db_path, receipt_image):
        class BrokenProfiles(ProfileStore):
            def record_activity(self, user_id, today=None):
                raise StorageError("Failed to update user profile: database is locked")

        profiles = BrokenProfiles(db_path)
        pipeline = ReceiptPipeline(
            FakeBackend(make_receipt(total="50.00")),
            repository,
            profiles=profiles,
            offline_queue=queue,
        )
        submitted = await pipeline.submit("u1", receipt_image, online=False)

        first = await queue.sync(SYNC_TAG, PipelineSubmitter(pipeline))
        second = await queue.sync(SYNC_TAG, PipelineSubmitter(pipeline))

        assert (first.synced, first.failed) == (1, 0)
        assert second.synced == 0
        [saved] = repository.get_receipts("u1")
        assert saved.id == submitted.offline_id
        assert repository.total_points("u1") == 60
        profiles.close()

    @pytest.mark.asyncio
    async def test_replay_after_lost_ack_awards_once(self, repository, queue, receipt_image):
        pipeline = ReceiptPipeline(
            FakeBackend(make_receipt(total="50.00")), repository, offline_queue=queue
        )
        await pipeline.submit("u1", receipt_image, online=False)
        local = PipelineSubmitter(pipeline)
        calls = []

        async def flaky(record):
            acknowledged = await local(record)
            calls.append(record.id)
            if len(calls) == 1:
                raise StorageError("Failed to delete queued receipt: database is locked")
            return acknowledged

        first = await queue.sync(SYNC_TAG, flaky)
        second = await queue.sync(SYNC_TAG, flaky)

        assert (first.synced, first.failed) == (0, 1)
        assert (second.synced, second.failed) == (1, 0)
        assert len(repository.get_receipts("u1")) == 1
        assert repository.total_points("u1") == 60

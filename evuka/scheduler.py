"""Scheduled jobs: daily challenges, monthly points reset and offline sync."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class RewardsScheduler:
    """Runs the periodic rewards jobs.

    Uses APScheduler for cron-based scheduling.
    """

    def __init__(self, config) -> None:
        """Initialize scheduler with a RewardsConfig.

        Args:
            config: RewardsConfig instance.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger
        except ImportError:
            raise ImportError(
                "apscheduler is required: pip install 'apscheduler<4'"
            ) from None

        self._config = config
        self._scheduler = AsyncIOScheduler()
        self._CronTrigger = CronTrigger
        self._running = False

    def setup_jobs(self) -> None:
        """Register scheduled jobs based on config."""
        sched = self._config.scheduler

        self._scheduler.add_job(
            self._job_daily_challenges,
            trigger=self._parse_cron(sched.challenges_schedule),
            id="daily_challenges",
            name="Generate daily challenges",
            replace_existing=True,
        )
        logger.info("Registered daily challenges job: %s", sched.challenges_schedule)

        self._scheduler.add_job(
            self._job_monthly_reset,
            trigger=self._parse_cron(sched.monthly_reset_schedule),
            id="monthly_points_reset",
            name="Reset monthly points",
            replace_existing=True,
        )
        logger.info("Registered monthly reset job: %s", sched.monthly_reset_schedule)

        # Replay of offline captures needs somewhere to send them
        if self._config.sync.server_url:
            self._scheduler.add_job(
                self._job_sync_receipts,
                trigger=self._parse_cron(sched.sync_schedule),
                id="sync_receipts",
                name="Sync offline receipts",
                replace_existing=True,
            )
            logger.info("Registered receipt sync job: %s", sched.sync_schedule)

    def start(self) -> None:
        """Start the scheduler."""
        self.setup_jobs()
        self._scheduler.start()
        self._running = True
        logger.info("Scheduler started")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    def get_jobs(self) -> list[dict]:
        """Return info about scheduled jobs."""
        jobs = []
        for job in self._scheduler.get_jobs():
            # Jobs added before start() have no next run time yet
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": str(next_run) if next_run else None,
            })
        return jobs

    def _parse_cron(self, expr: str):
        """Parse a cron expression into a CronTrigger."""
        parts = expr.split()
        if len(parts) == 5:
            return self._CronTrigger(
                minute=parts[0],
                hour=parts[1],
                day=parts[2],
                month=parts[3],
                day_of_week=parts[4],
            )
        raise ValueError(f"Invalid cron expression: {expr}")

    async def _job_daily_challenges(self) -> None:
        logger.info("Running daily challenges job...")

        try:
            from .functions import FunctionContext, generate_daily_challenges

            ctx = FunctionContext.from_config(self._config)
            try:
                response = generate_daily_challenges(None, ctx)
            finally:
                ctx.close()

            if response.ok:
                logger.info(response.body["message"])
            else:
                logger.error("Daily challenges job failed: %s", response.body["error"])
        except Exception:
            logger.exception("Daily challenges job raised an error")

    async def _job_monthly_reset(self) -> None:
        logger.info("Running monthly points reset job...")

        try:
            from .functions import FunctionContext, monthly_points_reset

            ctx = FunctionContext.from_config(self._config)
            try:
                response = monthly_points_reset(None, ctx)
            finally:
                ctx.close()

            if not response.ok:
                logger.error("Monthly reset job failed: %s", response.body["error"])
        except Exception:
            logger.exception("Monthly reset job raised an error")

    async def _job_sync_receipts(self) -> None:
        """Upload receipts captured while offline."""
        try:
            from .db import OfflineReceiptStore
            from .sync import SYNC_TAG, HttpReceiptSubmitter, OfflineReceiptQueue

            store = OfflineReceiptStore(self._config.database.path)
            try:
                if store.count() == 0:
                    return
                queue = OfflineReceiptQueue(store)
                submitter = HttpReceiptSubmitter(
                    self._config.sync.server_url,
                    timeout=self._config.sync.timeout,
                )
                await queue.sync(SYNC_TAG, submitter)
            finally:
                store.close()
        except Exception:
            logger.exception("Receipt sync job raised an error")

"""
Scheduler Service
Keeps the exchange rate table in sync with the ECB feeds.

One cycle:
    IDLE -> FETCHING_RECENT -> DETECTING_GAPS -> [BACKFILLING_HISTORICAL] -> PERSISTING -> IDLE

Runs once when started (catch-up), then daily at the configured time
(03:00 UTC by default, well after the ECB's ~16:00 CET publication).
"""
import asyncio
import enum
import logging
import time
from datetime import datetime, timedelta, timezone, date
from typing import Awaitable, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finance.config import Settings, settings as default_settings
from finance.errors import FetchError, StorageError
from finance.models.exchange_rate import ExchangeRate
from finance.repositories.exchange_rate_repository import ExchangeRateRepository, UpsertOutcome
from finance.services.feed_client import EcbFeedClient
from finance.services.gap_detector import find_missing_business_dates

logger = logging.getLogger(__name__)

JOB_ID = "exchange_rate_sync"


class SyncState(enum.Enum):
    IDLE = "idle"
    FETCHING_RECENT = "fetching_recent"
    DETECTING_GAPS = "detecting_gaps"
    BACKFILLING_HISTORICAL = "backfilling_historical"
    PERSISTING = "persisting"


class RateSyncScheduler:
    """
    Owns the background exchange rate sync.

    Created and started by the application lifespan, stopped on shutdown.
    Only one cycle runs at a time: APScheduler is configured with
    max_instances=1 and run_cycle() is guarded by a lock so a manual
    trigger cannot overlap a scheduled run.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed_client: Optional[EcbFeedClient] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or default_settings
        self.feed_client = feed_client or EcbFeedClient(
            recent_url=self.settings.ecb_recent_feed_url,
            historical_url=self.settings.ecb_historical_feed_url,
            timeout=self.settings.feed_timeout_seconds,
        )
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.scheduler: Optional[AsyncIOScheduler] = None
        self.state = SyncState.IDLE
        self.last_sync_result: Optional[Dict] = None
        self.consecutive_failures = 0
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run_cycle(self) -> Dict:
        """
        Run one full sync cycle. Never raises except on cancellation.

        Returns:
            Summary of the cycle (also stored in last_sync_result)
        """
        if self._lock.locked():
            logger.warning("Exchange rate sync already running, skipping this trigger")
            return {
                "status": "skipped",
                "message": "A sync cycle is already running",
                "timestamp": self._clock().isoformat()
            }

        async with self._lock:
            started = time.monotonic()
            logger.info("Starting exchange rate sync...")
            try:
                result = await self._run_cycle()
            except asyncio.CancelledError:
                logger.info("Exchange rate sync cancelled")
                raise
            except Exception as e:
                logger.error(f"Unexpected error during exchange rate sync: {str(e)}", exc_info=True)
                result = {
                    "status": "error",
                    "message": f"Unexpected error during exchange rate sync: {str(e)}",
                }
            finally:
                self.state = SyncState.IDLE

            result["duration_seconds"] = round(time.monotonic() - started, 3)
            result["timestamp"] = self._clock().isoformat()
            self._record_outcome(result)
            return result

    async def _run_cycle(self) -> Dict:
        # FETCHING_RECENT
        self.state = SyncState.FETCHING_RECENT
        recent_rates = await self._fetch_with_retry(self.feed_client.fetch_recent, "90-day feed")
        if recent_rates is None:
            return {
                "status": "skipped",
                "message": "90-day feed unavailable, cycle skipped",
                "recent_fetched": 0,
                "backfill_fetched": 0,
            }
        if not recent_rates:
            logger.warning("No rates retrieved from 90-day feed")
            return {
                "status": "skipped",
                "message": "90-day feed returned no rates, cycle skipped",
                "recent_fetched": 0,
                "backfill_fetched": 0,
            }

        # DETECTING_GAPS
        self.state = SyncState.DETECTING_GAPS
        missing_dates = await self._detect_gaps()

        # BACKFILLING_HISTORICAL
        backfill_rates: List[ExchangeRate] = []
        if missing_dates:
            self.state = SyncState.BACKFILLING_HISTORICAL
            backfill_rates = await self._backfill(missing_dates)
        else:
            logger.debug("No gaps detected in exchange rate data")

        # PERSISTING: backfill first so the recent feed wins on overlapping cells
        self.state = SyncState.PERSISTING
        counts = await self._persist(backfill_rates + recent_rates)

        logger.info(
            f"Exchange rate sync completed: fetched {len(recent_rates)} recent + "
            f"{len(backfill_rates)} backfill, inserted {counts['inserted']}, "
            f"updated {counts['updated']}, failed {counts['failed']}"
        )
        return {
            "status": "success" if not counts["failed"] else "partial_success",
            "message": "Exchange rates synced from ECB",
            "recent_fetched": len(recent_rates),
            "backfill_fetched": len(backfill_rates),
            "missing_dates": len(missing_dates),
            **counts,
        }

    async def _fetch_with_retry(
        self,
        fetch: Callable[[], Awaitable[List[ExchangeRate]]],
        feed_name: str
    ) -> Optional[List[ExchangeRate]]:
        """
        Call fetch with exponential backoff on FetchError.

        Returns:
            The fetched rates, or None when every attempt failed
        """
        max_attempts = self.settings.sync_max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                logger.debug(f"Fetching rates from {feed_name} (attempt {attempt}/{max_attempts})")
                return await fetch()
            except FetchError as e:
                if attempt == max_attempts:
                    logger.error(
                        f"Failed to fetch rates from {feed_name} after {max_attempts} attempts: {str(e)}"
                    )
                    return None
                delay = self.settings.sync_retry_base_seconds * (2 ** (attempt - 1))
                logger.warning(
                    f"Failed to fetch rates from {feed_name} (attempt {attempt}/{max_attempts}): "
                    f"{str(e)}. Retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
        return None

    async def _detect_gaps(self) -> List[date]:
        today = self._clock().date()
        start_date = today - timedelta(days=self.settings.gap_lookback_days)

        try:
            async with self.session_factory() as db:
                existing_dates = await ExchangeRateRepository(db).dates_in_range(start_date, today)
        except StorageError as e:
            logger.error(f"Could not read stored dates, skipping backfill: {str(e)}")
            return []

        missing_dates = find_missing_business_dates(existing_dates, start_date, today)
        if missing_dates:
            logger.warning(
                f"Detected {len(missing_dates)} missing dates between {start_date} and {today}. "
                f"Backfilling from historical feed..."
            )
        return missing_dates

    async def _backfill(self, missing_dates: List[date]) -> List[ExchangeRate]:
        """Best effort: an unavailable historical feed only means no backfill"""
        historical_rates = await self._fetch_with_retry(self.feed_client.fetch_historical, "historical feed")
        if not historical_rates:
            logger.warning("Historical feed unavailable, continuing without backfill")
            return []

        wanted = set(missing_dates)
        backfill_rates = [rate for rate in historical_rates if rate.date in wanted]
        logger.info(
            f"Historical feed covers {len({rate.date for rate in backfill_rates})} "
            f"of {len(missing_dates)} missing dates"
        )
        return backfill_rates

    async def _persist(self, rates: List[ExchangeRate]) -> Dict[str, int]:
        """
        Upsert and commit each record on its own: a failing record is rolled
        back and skipped, and cancellation keeps what was already committed.
        """
        counts = {"inserted": 0, "updated": 0, "unchanged": 0, "failed": 0}

        async with self.session_factory() as db:
            repo = ExchangeRateRepository(db)
            for rate in rates:
                try:
                    outcome = await repo.upsert(rate)
                    await db.commit()
                except (StorageError, SQLAlchemyError) as e:
                    await db.rollback()
                    counts["failed"] += 1
                    logger.error(
                        f"Failed to save rate for {rate.target_currency} on {rate.date}: {str(e)}"
                    )
                    continue

                if outcome is UpsertOutcome.INSERTED:
                    counts["inserted"] += 1
                elif outcome is UpsertOutcome.UPDATED:
                    counts["updated"] += 1
                    logger.debug(f"Updated rate for {rate.target_currency} on {rate.date}: {rate.rate}")
                else:
                    counts["unchanged"] += 1

        return counts

    def _record_outcome(self, result: Dict) -> None:
        self.last_sync_result = result
        if result["status"] in ("success", "partial_success"):
            self.consecutive_failures = 0
            return

        self.consecutive_failures += 1
        if self.consecutive_failures >= self.settings.sync_failure_alert_threshold:
            logger.error(
                f"Exchange rate sync has failed {self.consecutive_failures} consecutive cycles. "
                f"Last error: {result.get('message')}"
            )
        else:
            logger.warning(f"Exchange rate sync did not complete: {result.get('message')}")

    def start(self):
        """
        Start the daily sync. The first cycle runs immediately when
        sync_on_startup is set.
        """
        if self.scheduler is not None:
            logger.warning("Scheduler is already running")
            return

        logger.info("Starting exchange rate scheduler...")

        self.scheduler = AsyncIOScheduler(timezone=self.settings.sync_timezone)

        job_kwargs = {}
        if self.settings.sync_on_startup:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)

        self.scheduler.add_job(
            self.run_cycle,
            trigger=CronTrigger(
                hour=self.settings.sync_hour,
                minute=self.settings.sync_minute,
                timezone=self.settings.sync_timezone
            ),
            id=JOB_ID,
            name=f"ECB Exchange Rate Sync ({self.settings.sync_hour:02d}:{self.settings.sync_minute:02d} "
                 f"{self.settings.sync_timezone})",
            max_instances=1,
            coalesce=True,
            # Late runs (including the startup catch-up) are never dropped
            misfire_grace_time=None,
            replace_existing=True,
            **job_kwargs
        )

        self.scheduler.start()

        logger.info("Scheduler started successfully")
        for job in self.scheduler.get_jobs():
            logger.info(f"  {job.name}: next run {job.next_run_time}")

    def shutdown(self):
        """
        Stop the scheduler. A cycle in flight is cancelled; rates it already
        committed stay in place.
        """
        if self.scheduler is None:
            logger.warning("Scheduler is not running")
            return

        logger.info("Shutting down exchange rate scheduler...")
        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        logger.info("Scheduler shut down successfully")

    def next_run_time(self) -> Optional[datetime]:
        if self.scheduler is None:
            return None
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    async def trigger_now(self) -> Dict:
        """Run a sync cycle immediately (manual trigger)"""
        logger.info("Manually triggering exchange rate sync...")
        return await self.run_cycle()

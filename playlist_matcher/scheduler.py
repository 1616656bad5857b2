from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from playlist_matcher.config import MATCH_LIMITS
from playlist_matcher.errors import PlaylistMatcherError
from playlist_matcher.log import get_logger
from playlist_matcher.providers.base import MetadataProvider
from playlist_matcher.storage import JSONStorage
from playlist_matcher.sync import SyncService

logger = get_logger(__name__)

JOB_PREFIX = "schedule::"


@dataclass
class ScheduledJob:
    user_id: str
    next_run_at: int
    interval_days: int
    schedule_hours: int
    schedule_minutes: int = 0
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "nextRunAt": self.next_run_at,
            "intervalDays": self.interval_days,
            "scheduleHours": self.schedule_hours,
            "scheduleMinutes": self.schedule_minutes,
            "enabled": self.enabled,
        }


def _to_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def next_occurrence(now: datetime, hours: int, minutes: int = 0) -> datetime:
    """Next local time at ``hours:minutes``, today if still ahead, otherwise tomorrow."""
    candidate = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class SchedulerStore:
    def __init__(self, storage: JSONStorage, clock: Callable[[], datetime] = datetime.now) -> None:
        self.storage = storage
        self._clock = clock

    @staticmethod
    def _key(user_id: str) -> str:
        return f"{JOB_PREFIX}{user_id}"

    async def get_job(self, user_id: str) -> Optional[ScheduledJob]:
        payload = await self.storage.get(self._key(user_id))
        return ScheduledJob(**payload) if payload else None

    async def _save(self, job: ScheduledJob) -> ScheduledJob:
        await self.storage.set(self._key(job.user_id), asdict(job))
        return job

    async def schedule_job(
        self, user_id: str, interval_days: int, schedule_hours: int, schedule_minutes: int = 0
    ) -> ScheduledJob:
        next_run = next_occurrence(self._clock(), schedule_hours, schedule_minutes)
        job = ScheduledJob(
            user_id=user_id,
            next_run_at=_to_ms(next_run),
            interval_days=interval_days,
            schedule_hours=schedule_hours,
            schedule_minutes=schedule_minutes,
            enabled=True,
        )
        return await self._save(job)

    async def update_next_run(self, user_id: str) -> Optional[ScheduledJob]:
        job = await self.get_job(user_id)
        if job is None:
            return None
        next_run = datetime.fromtimestamp(job.next_run_at / 1000) + timedelta(days=job.interval_days)
        now = self._clock()
        # Skip occurrences missed while the service was down.
        while next_run <= now:
            next_run += timedelta(days=job.interval_days)
        job.next_run_at = _to_ms(next_run)
        return await self._save(job)

    async def set_enabled(self, user_id: str, enabled: bool) -> Optional[ScheduledJob]:
        job = await self.get_job(user_id)
        if job is None:
            return None
        job.enabled = enabled
        return await self._save(job)

    async def disable_job(self, user_id: str) -> Optional[ScheduledJob]:
        return await self.set_enabled(user_id, False)

    async def enable_job(self, user_id: str) -> Optional[ScheduledJob]:
        return await self.set_enabled(user_id, True)

    async def delete_job(self, user_id: str) -> None:
        await self.storage.delete(self._key(user_id))

    async def all_jobs(self) -> List[ScheduledJob]:
        jobs: List[ScheduledJob] = []
        for key in await self.storage.keys(JOB_PREFIX):
            payload = await self.storage.get(key)
            if payload:
                jobs.append(ScheduledJob(**payload))
        return jobs

    async def jobs_due(self, now: Optional[datetime] = None) -> List[ScheduledJob]:
        now_ms = _to_ms(now or self._clock())
        return [job for job in await self.all_jobs() if job.enabled and job.next_run_at <= now_ms]


class MatchScheduler:
    """Polls for due jobs and runs a history-aware sync for each."""

    def __init__(
        self,
        store: SchedulerStore,
        sync_service: SyncService,
        provider: MetadataProvider,
    ) -> None:
        self.store = store
        self.sync_service = sync_service
        self.provider = provider
        self._stop_event = asyncio.Event()

    async def stop(self) -> None:
        self._stop_event.set()

    async def run(self, interval_seconds: int) -> None:
        logger.info("Scheduler started, polling every {}s", interval_seconds)
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except PlaylistMatcherError:
                logger.exception("Checking for due jobs failed")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                continue
        logger.info("Scheduler stopped")

    async def run_once(self) -> int:
        jobs = await self.store.jobs_due()
        if jobs:
            logger.info("Found {} due job(s)", len(jobs))
        for job in jobs:
            await self.run_job(job)
        return len(jobs)

    async def run_job(self, job: ScheduledJob) -> None:
        if not await self.provider.token_ready():
            logger.warning("User {} is not authenticated, disabling scheduled job", job.user_id)
            await self.store.disable_job(job.user_id)
            return
        try:
            await self.sync_service.sync(
                job.user_id,
                playlist_limit=MATCH_LIMITS.scheduled_playlist_limit,
                threshold=MATCH_LIMITS.scheduled_threshold,
            )
        except PlaylistMatcherError:
            logger.exception("Scheduled sync failed for user {}", job.user_id)
        # next_run_at advances whether or not the sync succeeded.
        await self.store.update_next_run(job.user_id)

from datetime import datetime

import pytest

from playlist_matcher.config import MATCH_LIMITS
from playlist_matcher.errors import ProviderError
from playlist_matcher.scheduler import MatchScheduler, SchedulerStore, next_occurrence


class FixedClock:
    def __init__(self, moment: datetime) -> None:
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment


class RecordingSync:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls = []
        self.error = error

    async def sync(self, user_id, playlist_limit=50, threshold=0.15):
        self.calls.append((user_id, playlist_limit, threshold))
        if self.error:
            raise self.error


def _ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def test_next_occurrence_rolls_over_to_tomorrow():
    morning = datetime(2026, 3, 10, 8, 15)
    assert next_occurrence(morning, 9, 30) == datetime(2026, 3, 10, 9, 30)
    assert next_occurrence(morning, 8, 0) == datetime(2026, 3, 11, 8, 0)
    assert next_occurrence(datetime(2026, 3, 10, 9, 0), 9, 0) == datetime(2026, 3, 11, 9, 0)


@pytest.mark.asyncio
async def test_schedule_and_due_jobs(storage):
    clock = FixedClock(datetime(2026, 3, 10, 8, 0))
    store = SchedulerStore(storage, clock=clock)

    job = await store.schedule_job("u1", interval_days=7, schedule_hours=9)
    assert job.next_run_at == _ms(datetime(2026, 3, 10, 9, 0))
    assert job.enabled is True
    assert (await store.get_job("u1")).to_dict()["nextRunAt"] == job.next_run_at

    assert await store.jobs_due() == []
    due = await store.jobs_due(datetime(2026, 3, 10, 9, 0))
    assert [j.user_id for j in due] == ["u1"]

    await store.disable_job("u1")
    assert await store.jobs_due(datetime(2026, 3, 10, 9, 0)) == []
    await store.enable_job("u1")
    assert len(await store.jobs_due(datetime(2026, 3, 10, 9, 0))) == 1

    await store.delete_job("u1")
    assert await store.get_job("u1") is None
    assert await store.all_jobs() == []


@pytest.mark.asyncio
async def test_update_next_run_skips_missed_occurrences(storage):
    clock = FixedClock(datetime(2026, 3, 10, 8, 0))
    store = SchedulerStore(storage, clock=clock)
    await store.schedule_job("u1", interval_days=7, schedule_hours=9)

    clock.moment = datetime(2026, 3, 10, 9, 1)
    job = await store.update_next_run("u1")
    assert job.next_run_at == _ms(datetime(2026, 3, 17, 9, 0))

    clock.moment = datetime(2026, 4, 1, 12, 0)
    job = await store.update_next_run("u1")
    assert job.next_run_at == _ms(datetime(2026, 4, 7, 9, 0))

    assert await store.update_next_run("nobody") is None


@pytest.mark.asyncio
async def test_run_job_syncs_and_advances(storage, provider):
    clock = FixedClock(datetime(2026, 3, 10, 8, 0))
    store = SchedulerStore(storage, clock=clock)
    job = await store.schedule_job("u1", interval_days=1, schedule_hours=9)
    clock.moment = datetime(2026, 3, 10, 9, 0)
    sync = RecordingSync()
    scheduler = MatchScheduler(store=store, sync_service=sync, provider=provider)

    assert await scheduler.run_once() == 1

    assert sync.calls == [("u1", MATCH_LIMITS.scheduled_playlist_limit, MATCH_LIMITS.scheduled_threshold)]
    updated = await store.get_job("u1")
    assert updated.next_run_at > job.next_run_at
    assert await scheduler.run_once() == 0


@pytest.mark.asyncio
async def test_run_job_advances_even_when_sync_fails(storage, provider):
    clock = FixedClock(datetime(2026, 3, 10, 9, 30))
    store = SchedulerStore(storage, clock=clock)
    job = await store.schedule_job("u1", interval_days=1, schedule_hours=9)
    sync = RecordingSync(error=ProviderError("Spotify API error: 503 unavailable", 503))
    scheduler = MatchScheduler(store=store, sync_service=sync, provider=provider)

    await scheduler.run_job(job)

    assert len(sync.calls) == 1
    assert (await store.get_job("u1")).next_run_at == job.next_run_at + 24 * 60 * 60 * 1000


@pytest.mark.asyncio
async def test_run_job_disables_unauthenticated_user(storage, provider):
    store = SchedulerStore(storage, clock=FixedClock(datetime(2026, 3, 10, 8, 0)))
    job = await store.schedule_job("u1", interval_days=1, schedule_hours=9)
    await provider.logout()
    sync = RecordingSync()
    scheduler = MatchScheduler(store=store, sync_service=sync, provider=provider)

    await scheduler.run_job(job)

    assert sync.calls == []
    assert (await store.get_job("u1")).enabled is False


@pytest.mark.asyncio
async def test_run_stops_on_request(storage, provider):
    store = SchedulerStore(storage)
    scheduler = MatchScheduler(store=store, sync_service=RecordingSync(), provider=provider)
    await scheduler.stop()

    await scheduler.run(interval_seconds=60)

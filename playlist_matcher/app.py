from __future__ import annotations

import asyncio
from dataclasses import dataclass

from fastapi import FastAPI

from playlist_matcher.config import AppConfig, OAuthConfig
from playlist_matcher.history import MatchHistoryStore
from playlist_matcher.log import get_logger, setup_logging
from playlist_matcher.matching import GenreMatcher, ProfileCache
from playlist_matcher.providers import SpotifyProvider
from playlist_matcher.scheduler import MatchScheduler, SchedulerStore
from playlist_matcher.settings import SettingsStore
from playlist_matcher.storage import JSONStorage
from playlist_matcher.sync import SyncService
from playlist_matcher.web import build_app

logger = get_logger(__name__)


@dataclass
class Services:
    """Everything wired from one configuration, shared by the web app and the CLI."""

    config: AppConfig
    storage: JSONStorage
    provider: SpotifyProvider
    matcher: GenreMatcher
    history: MatchHistoryStore
    settings: SettingsStore
    scheduler_store: SchedulerStore
    sync_service: SyncService
    scheduler: MatchScheduler


def build_services(config: AppConfig | None = None) -> Services:
    config = config or AppConfig()
    config.ensure_dirs()
    oauth = OAuthConfig.from_env()
    storage = JSONStorage(config.data_dir / "state.json")

    provider = SpotifyProvider(
        storage=storage,
        client_id=oauth.spotify_client_id,
        client_secret=oauth.spotify_client_secret,
        redirect_uri=oauth.spotify_redirect_uri,
    )
    cache = ProfileCache(ttl_seconds=config.profile_ttl_seconds)
    matcher = GenreMatcher(provider, cache=cache, sample_size=config.sample_size)
    history = MatchHistoryStore(storage)
    settings = SettingsStore(storage)
    scheduler_store = SchedulerStore(storage)
    sync_service = SyncService(matcher=matcher, history=history, settings=settings)
    scheduler = MatchScheduler(store=scheduler_store, sync_service=sync_service, provider=provider)

    if not provider.is_configured():
        logger.warning("SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET are not set; authentication is disabled")

    return Services(
        config=config,
        storage=storage,
        provider=provider,
        matcher=matcher,
        history=history,
        settings=settings,
        scheduler_store=scheduler_store,
        sync_service=sync_service,
        scheduler=scheduler,
    )


def create_app(config: AppConfig | None = None) -> FastAPI:
    config = config or AppConfig()
    setup_logging(config.log_level)
    services = build_services(config)
    scheduler = services.scheduler

    app = build_app(
        config=config,
        provider=services.provider,
        matcher=services.matcher,
        sync_service=services.sync_service,
        history=services.history,
        settings=services.settings,
        scheduler_store=services.scheduler_store,
    )
    app.state.services = services

    @app.on_event("startup")
    async def _startup() -> None:
        app.state.scheduler_task = asyncio.create_task(scheduler.run(config.poll_interval_seconds))

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await scheduler.stop()
        task: asyncio.Task | None = getattr(app.state, "scheduler_task", None)
        if task:
            await task

    return app

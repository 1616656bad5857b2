from __future__ import annotations

from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from playlist_matcher.config import MATCH_LIMITS, AppConfig
from playlist_matcher.errors import OAuthError, ProviderError
from playlist_matcher.history import MatchHistoryStore
from playlist_matcher.matching.matcher import GenreMatcher
from playlist_matcher.matching.profiles import enrich_tracks_with_genres
from playlist_matcher.providers.base import MetadataProvider
from playlist_matcher.scheduler import SchedulerStore
from playlist_matcher.settings import SettingsStore, settings_patch_from_json
from playlist_matcher.sync import SyncService, track_uri


def _number(payload: Dict[str, Any], key: str, default: float, cast: type = int) -> Any:
    value = payload.get(key, default)
    if isinstance(value, bool):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{key} must be a number")
    try:
        return cast(value)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{key} must be a number") from exc


def build_app(
    *,
    config: AppConfig,
    provider: MetadataProvider,
    matcher: GenreMatcher,
    sync_service: SyncService,
    history: MatchHistoryStore,
    settings: SettingsStore,
    scheduler_store: SchedulerStore,
) -> FastAPI:
    app = FastAPI(title="Playlist Matcher")
    app.state.config = config
    limits = MATCH_LIMITS

    @app.exception_handler(OAuthError)
    async def _oauth_error(request: Request, exc: OAuthError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=status.HTTP_401_UNAUTHORIZED)

    @app.exception_handler(ProviderError)
    async def _provider_error(request: Request, exc: ProviderError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=status.HTTP_502_BAD_GATEWAY)

    async def current_user_id() -> str:
        return (await provider.current_user()).id

    # ============ AUTH ============

    @app.get("/auth/spotify/start")
    async def auth_start() -> RedirectResponse:
        if not provider.is_configured():
            raise HTTPException(status_code=400, detail="Spotify credentials not configured.")
        url = await provider.oauth_start()
        return RedirectResponse(url=url)

    @app.get("/auth/spotify/callback")
    async def auth_callback(request: Request):
        params = dict(request.query_params)
        if "error" in params:
            raise HTTPException(status_code=400, detail=f"Authorization denied: {params['error']}")
        try:
            await provider.oauth_complete(params)
        except OAuthError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return RedirectResponse(url="/api/auth/status")

    @app.get("/api/auth/url")
    async def auth_url():
        if not provider.is_configured():
            raise HTTPException(status_code=400, detail="Spotify credentials not configured.")
        return JSONResponse({"url": await provider.oauth_start()})

    @app.get("/api/auth/status")
    async def auth_status():
        authenticated = await provider.token_ready()
        user = None
        if authenticated:
            try:
                user = (await provider.current_user()).to_dict()
            except (OAuthError, ProviderError):
                authenticated = False
        return JSONResponse(
            {"configured": provider.is_configured(), "authenticated": authenticated, "user": user}
        )

    @app.post("/api/auth/logout")
    async def auth_logout():
        await provider.logout()
        return JSONResponse({"success": True})

    # ============ LIBRARY ============

    @app.get("/api/songs/liked")
    async def liked_songs(limit: int = 20):
        tracks = await provider.liked_tracks(limits.liked(limit))
        return JSONResponse([track.to_dict() for track in tracks])

    @app.get("/api/songs/liked/with-genres")
    async def liked_songs_with_genres(limit: int = 20):
        tracks = await provider.liked_tracks(limits.liked(limit))
        enriched = await enrich_tracks_with_genres(provider, tracks)
        return JSONResponse([track.to_dict() for track in enriched])

    # ============ PLAYLISTS ============

    @app.get("/api/playlists")
    async def playlists(limit: int = 20):
        items = await provider.user_playlists(limits.playlists(limit))
        return JSONResponse([playlist.to_dict() for playlist in items])

    @app.get("/api/playlists/{playlist_id}/tracks")
    async def playlist_tracks(playlist_id: str, limit: int = 50):
        tracks = await provider.playlist_tracks(playlist_id, limits.playlist_tracks(limit))
        return JSONResponse([track.to_dict() for track in tracks])

    @app.post("/api/playlists/move-track")
    async def move_track(payload: Dict[str, object]):
        track_id = payload.get("trackId")
        if not track_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="trackId required")
        from_playlist = payload.get("fromPlaylistId") or None
        to_playlist = payload.get("toPlaylistId") or None
        if not from_playlist and not to_playlist:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="fromPlaylistId or toPlaylistId required",
            )
        user_id = await current_user_id()
        await sync_service.move_track(
            user_id,
            str(track_id),
            str(from_playlist) if from_playlist else None,
            str(to_playlist) if to_playlist else None,
        )
        return JSONResponse({"success": True})

    @app.post("/api/playlists/{playlist_id}/tracks")
    async def add_playlist_tracks(playlist_id: str, payload: Dict[str, object]):
        track_ids = payload.get("trackIds")
        if not isinstance(track_ids, list):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="trackIds array required")
        uris: List[str] = [track_uri(str(track_id)) for track_id in track_ids]
        await provider.add_tracks_to_playlist(playlist_id, uris)
        matcher.cache.invalidate(playlist_id)
        return JSONResponse({"success": True, "added": len(uris)})

    # ============ MATCHING ============

    @app.get("/api/match")
    async def match(
        liked_songs_limit: int = Query(20, alias="likedSongsLimit"),
        playlist_limit: int = Query(10, alias="playlistLimit"),
        threshold: float = Query(limits.match_threshold),
    ):
        outcome = await matcher.match(
            limits.liked(liked_songs_limit),
            limits.playlists(playlist_limit),
            limits.threshold(threshold),
        )
        return JSONResponse(outcome.to_dict())

    @app.post("/api/organize")
    async def organize(payload: Dict[str, object]):
        dry_run = payload.get("dryRun", True)
        if not isinstance(dry_run, bool):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="dryRun must be a boolean")
        outcome = await matcher.auto_organize(
            limits.liked(_number(payload, "likedSongsLimit", 20)),
            limits.playlists(_number(payload, "playlistLimit", 10)),
            limits.threshold(_number(payload, "threshold", limits.organize_threshold, float)),
            dry_run,
        )
        return JSONResponse(outcome.to_dict())

    # ============ SETTINGS, HISTORY, SCHEDULE ============

    @app.get("/api/settings")
    async def get_settings():
        user_settings = await settings.get_settings(await current_user_id())
        return JSONResponse(user_settings.to_dict())

    @app.put("/api/settings")
    async def put_settings(payload: Dict[str, object]):
        try:
            patch = settings_patch_from_json(payload)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        user_id = await current_user_id()
        saved = await settings.save_settings(user_id, patch)
        await scheduler_store.schedule_job(
            user_id, saved.interval_days, saved.schedule_hours, saved.schedule_minutes
        )
        return JSONResponse(saved.to_dict())

    @app.get("/api/match-history")
    async def match_history():
        user_history = await history.get_history(await current_user_id())
        return JSONResponse(user_history.to_dict())

    @app.get("/api/schedule")
    async def schedule():
        job = await scheduler_store.get_job(await current_user_id())
        if job is None:
            return JSONResponse({"enabled": False})
        return JSONResponse(job.to_dict())

    @app.post("/api/sync-now")
    async def sync_now():
        result = await sync_service.sync(
            await current_user_id(),
            playlist_limit=limits.scheduled_playlist_limit,
            threshold=limits.scheduled_threshold,
        )
        return JSONResponse(result.to_dict())

    return app

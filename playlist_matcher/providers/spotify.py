from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import requests
import spotipy
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from playlist_matcher.errors import OAuthError, ProviderError
from playlist_matcher.models import Artist, Playlist, Track, User
from playlist_matcher.providers.base import MetadataProvider
from playlist_matcher.storage import JSONStorage

SPOTIFY_SCOPE = (
    "user-library-read playlist-read-private playlist-read-collaborative "
    "playlist-modify-private playlist-modify-public"
)
TOKEN_KEY = "spotify_token"
ARTIST_CHUNK_SIZE = 50
PLAYLIST_CHUNK_SIZE = 100
PLAYLIST_ITEMS_PAGE_SIZE = 100
SAVED_TRACKS_PAGE_SIZE = 50


def _chunks(items: Sequence[str], size: int) -> List[List[str]]:
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


def _parse_track(payload: Mapping[str, Any]) -> Optional[Track]:
    if not payload or not payload.get("id"):
        return None
    artists = [artist for artist in payload.get("artists") or [] if artist.get("id")]
    album = payload.get("album") or {}
    images = album.get("images") or []
    return Track(
        id=payload["id"],
        name=payload.get("name", ""),
        uri=payload.get("uri") or f"spotify:track:{payload['id']}",
        artist_ids=[artist["id"] for artist in artists],
        artist_names=[artist.get("name", "") for artist in artists],
        album=album.get("name"),
        image_url=images[0].get("url") if images else None,
        duration_ms=payload.get("duration_ms"),
        popularity=payload.get("popularity") or 0,
    )


def _parse_playlist(payload: Mapping[str, Any]) -> Playlist:
    images = payload.get("images") or []
    return Playlist(
        id=payload["id"],
        name=payload.get("name", "Untitled"),
        owner_id=(payload.get("owner") or {}).get("id", ""),
        track_count=(payload.get("tracks") or {}).get("total", 0),
        public=bool(payload.get("public")),
        image_url=images[0].get("url") if images else None,
    )


class SpotifyProvider(MetadataProvider):
    def __init__(
        self,
        storage: JSONStorage,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str | None,
    ) -> None:
        self.storage = storage
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri or "http://127.0.0.1:8080/auth/spotify/callback"

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _oauth(self) -> SpotifyOAuth:
        if not self.is_configured():
            raise OAuthError("Spotify credentials are not configured.")
        return SpotifyOAuth(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
            scope=SPOTIFY_SCOPE,
        )

    async def oauth_start(self) -> str:
        oauth = self._oauth()
        return await asyncio.to_thread(oauth.get_authorize_url)

    async def oauth_complete(self, query_params: Dict[str, str]) -> None:
        if "code" not in query_params:
            raise OAuthError("Spotify callback missing code parameter.")
        oauth = self._oauth()

        def _complete() -> Dict[str, Any]:
            return oauth.get_access_token(code=query_params["code"], check_cache=False)

        token = await asyncio.to_thread(_complete)
        await self.storage.set(TOKEN_KEY, token)

    async def token_ready(self) -> bool:
        token = await self.storage.get(TOKEN_KEY)
        return bool(token and token.get("access_token"))

    async def logout(self) -> None:
        await self.storage.delete(TOKEN_KEY)

    async def _ensure_token(self) -> Dict[str, Any]:
        token: Dict[str, Any] | None = await self.storage.get(TOKEN_KEY)
        if not token:
            raise OAuthError("Spotify is not authenticated.")
        if token.get("expires_at", 0) - 30 < int(time.time()):
            if not token.get("refresh_token"):
                raise OAuthError("Spotify token expired and cannot be refreshed.")
            oauth = self._oauth()

            def _refresh() -> Dict[str, Any]:
                return oauth.refresh_access_token(token["refresh_token"])

            try:
                token = await asyncio.to_thread(_refresh)
            except SpotifyOauthError as exc:
                raise OAuthError(f"Spotify token refresh failed: {exc}") from exc
            await self.storage.set(TOKEN_KEY, token)
        return token

    async def _client(self) -> spotipy.Spotify:
        token = await self._ensure_token()
        return spotipy.Spotify(auth=token["access_token"])

    @staticmethod
    async def _call(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except spotipy.SpotifyException as exc:
            if exc.http_status == 401:
                raise OAuthError(f"Spotify rejected the access token: {exc.msg}") from exc
            raise ProviderError(f"Spotify API error: {exc.http_status} {exc.msg}", exc.http_status) from exc
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"Spotify request failed: {exc}") from exc

    async def current_user(self) -> User:
        client = await self._client()
        payload = await self._call(client.current_user)
        return User(id=payload["id"], display_name=payload.get("display_name"))

    async def _collect_tracks(self, client: spotipy.Spotify, results: Any, limit: int) -> List[Track]:
        """Parse paged track items, following ``next`` until ``limit`` tracks are collected."""
        tracks: List[Track] = []
        while results:
            for item in results.get("items", []):
                track = _parse_track(item.get("track") or {})
                if track:
                    tracks.append(track)
            if len(tracks) >= limit or not results.get("next"):
                break
            results = await self._call(client.next, results)
        return tracks[:limit]

    async def liked_tracks(self, limit: int = 20) -> List[Track]:
        client = await self._client()
        results = await self._call(
            client.current_user_saved_tracks, limit=min(limit, SAVED_TRACKS_PAGE_SIZE)
        )
        return await self._collect_tracks(client, results, limit)

    async def user_playlists(self, limit: int = 20) -> List[Playlist]:
        client = await self._client()
        results = await self._call(client.current_user_playlists, limit=limit)
        return [_parse_playlist(item) for item in results.get("items", []) if item]

    async def playlist(self, playlist_id: str) -> Playlist:
        client = await self._client()
        payload = await self._call(
            client.playlist,
            playlist_id,
            fields="id,name,owner(id),tracks(total),public,images",
        )
        return _parse_playlist(payload)

    async def playlist_tracks(self, playlist_id: str, limit: int = 50) -> List[Track]:
        client = await self._client()
        results = await self._call(
            client.playlist_items,
            playlist_id,
            limit=min(limit, PLAYLIST_ITEMS_PAGE_SIZE),
            additional_types=("track",),
        )
        return await self._collect_tracks(client, results, limit)

    async def artists_by_ids(self, artist_ids: Sequence[str]) -> List[Artist]:
        if not artist_ids:
            return []
        client = await self._client()
        artists: List[Artist] = []
        for chunk in _chunks(list(artist_ids), ARTIST_CHUNK_SIZE):
            results = await self._call(client.artists, chunk)
            for item in results.get("artists", []):
                if not item:
                    continue
                artists.append(
                    Artist(
                        id=item["id"],
                        name=item.get("name", ""),
                        genres=list(item.get("genres") or []),
                        popularity=item.get("popularity") or 0,
                    )
                )
        return artists

    async def add_tracks_to_playlist(self, playlist_id: str, track_uris: Sequence[str]) -> None:
        if not track_uris:
            return
        client = await self._client()
        # Chunks go out one at a time so the playlist keeps the submitted order.
        for chunk in _chunks(list(track_uris), PLAYLIST_CHUNK_SIZE):
            await self._call(client.playlist_add_items, playlist_id, chunk)

    async def remove_tracks_from_playlist(self, playlist_id: str, track_uris: Sequence[str]) -> None:
        if not track_uris:
            return
        client = await self._client()
        for chunk in _chunks(list(track_uris), PLAYLIST_CHUNK_SIZE):
            await self._call(client.playlist_remove_all_occurrences_of_items, playlist_id, chunk)

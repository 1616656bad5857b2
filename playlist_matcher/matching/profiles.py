from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from playlist_matcher.errors import EmptyPlaylistError
from playlist_matcher.log import get_logger
from playlist_matcher.models import Artist, PlaylistProfile, Track, TrackWithGenres
from playlist_matcher.providers.base import MetadataProvider

logger = get_logger(__name__)

DEFAULT_PROFILE_TTL_SECONDS = 60 * 60
DEFAULT_SAMPLE_SIZE = 50


@dataclass(frozen=True)
class _CachedProfile:
    profile: PlaylistProfile
    cached_at: float


class ProfileCache:
    """Time-bounded memo of playlist profiles keyed by playlist id.

    Expired entries are evicted lazily when looked up. There is no size bound.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_PROFILE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _CachedProfile] = {}

    def get(self, playlist_id: str) -> Optional[PlaylistProfile]:
        cached = self._entries.get(playlist_id)
        if cached is None:
            return None
        if self._clock() - cached.cached_at > self.ttl_seconds:
            self._entries.pop(playlist_id, None)
            return None
        return cached.profile

    def set(self, playlist_id: str, profile: PlaylistProfile) -> None:
        self._entries[playlist_id] = _CachedProfile(profile=profile, cached_at=self._clock())

    def invalidate(self, playlist_id: str) -> None:
        self._entries.pop(playlist_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, playlist_id: object) -> bool:
        return playlist_id in self._entries


async def enrich_tracks_with_genres(
    provider: MetadataProvider, tracks: Sequence[Track]
) -> List[TrackWithGenres]:
    """Attach the union of artist genres to each track using one deduplicated artist lookup."""
    artist_ids = list(dict.fromkeys(artist_id for track in tracks for artist_id in track.artist_ids))
    artists: Dict[str, Artist] = {}
    if artist_ids:
        artists = {artist.id: artist for artist in await provider.artists_by_ids(artist_ids)}

    enriched: List[TrackWithGenres] = []
    for track in tracks:
        genres: Dict[str, None] = {}
        for artist_id in track.artist_ids:
            artist = artists.get(artist_id)
            if artist is None:
                continue
            for genre in artist.genres:
                genres.setdefault(genre, None)
        enriched.append(
            TrackWithGenres(
                id=track.id,
                uri=track.uri,
                name=track.name,
                artist_ids=tuple(track.artist_ids),
                artist_names=tuple(track.artist_names),
                genres=tuple(genres),
                popularity=track.popularity or 0,
                image_url=track.image_url,
            )
        )
    return enriched


def aggregate_profile(
    playlist_id: str,
    playlist_name: str,
    track_count: int,
    tracks: Sequence[TrackWithGenres],
) -> PlaylistProfile:
    if not tracks:
        raise EmptyPlaylistError(playlist_id, playlist_name)
    artist_ids: set[str] = set()
    artist_names: set[str] = set()
    genre_counts: Counter[str] = Counter()
    total_popularity = 0
    for track in tracks:
        artist_ids.update(track.artist_ids)
        artist_names.update(track.artist_names)
        # genres are de-duplicated per track, so each track counts once per genre
        genre_counts.update(set(track.genres))
        total_popularity += track.popularity
    return PlaylistProfile(
        playlist_id=playlist_id,
        playlist_name=playlist_name,
        track_count=track_count,
        sampled_count=len(tracks),
        artist_ids=frozenset(artist_ids),
        artist_names=frozenset(artist_names),
        genres=dict(genre_counts),
        avg_popularity=total_popularity / len(tracks),
    )


class ProfileBuilder:
    def __init__(self, provider: MetadataProvider, cache: ProfileCache) -> None:
        self.provider = provider
        self.cache = cache

    async def build(self, playlist_id: str, sample_size: int = DEFAULT_SAMPLE_SIZE) -> PlaylistProfile:
        playlist = await self.provider.playlist(playlist_id)
        tracks = await self.provider.playlist_tracks(playlist_id, sample_size)
        if not tracks:
            raise EmptyPlaylistError(playlist_id, playlist.name)
        enriched = await enrich_tracks_with_genres(self.provider, tracks)
        profile = aggregate_profile(playlist_id, playlist.name, playlist.track_count, enriched)
        self.cache.set(playlist_id, profile)
        logger.debug(
            "Built profile for {} ({} of {} tracks, {} genres)",
            playlist.name,
            profile.sampled_count,
            profile.track_count,
            len(profile.genres),
        )
        return profile

    async def get_or_build(self, playlist_id: str, sample_size: int = DEFAULT_SAMPLE_SIZE) -> PlaylistProfile:
        cached = self.cache.get(playlist_id)
        if cached is not None:
            return cached
        return await self.build(playlist_id, sample_size)

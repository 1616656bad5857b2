from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from playlist_matcher.errors import OAuthError, PlaylistMatcherError
from playlist_matcher.log import get_logger
from playlist_matcher.matching.profiles import (
    DEFAULT_SAMPLE_SIZE,
    ProfileBuilder,
    ProfileCache,
    enrich_tracks_with_genres,
)
from playlist_matcher.matching.similarity import calculate_match_score
from playlist_matcher.models import (
    MatchBreakdown,
    MatchResult,
    PlaylistProfile,
    TrackWithGenres,
    UnmatchedTrack,
)
from playlist_matcher.providers.base import MetadataProvider

logger = get_logger(__name__)

NO_PLAYLISTS_REASON = "No playlists available for matching"
NO_GENRES_REASON = "No genre data available for this track's artists"
ADD_FAILED_REASON = "Failed to add to playlist"

STATUS_PREVIEW = "preview"
STATUS_ADDED = "added"
STATUS_FAILED = "failed"

# Receives a destination playlist id and the matches just added to it.
AddedCallback = Callable[[str, List[MatchResult]], Awaitable[None]]


@dataclass
class MatchOutcome:
    matches: List[MatchResult] = field(default_factory=list)
    unmatched: List[UnmatchedTrack] = field(default_factory=list)
    playlists_considered: int = 0

    @property
    def no_playlists(self) -> bool:
        return self.playlists_considered == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matches": [match.to_dict() for match in self.matches],
            "unmatched": [item.to_dict() for item in self.unmatched],
            "playlistsConsidered": self.playlists_considered,
            "noPlaylists": self.no_playlists,
        }


@dataclass
class PlaylistAddition:
    """Outcome for one destination playlist: previewed, added, or failed with a reason."""

    playlist_id: str
    playlist_name: str
    tracks: List[str]
    status: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "playlistId": self.playlist_id,
            "playlistName": self.playlist_name,
            "tracks": list(self.tracks),
            "status": self.status,
            "error": self.error,
        }


@dataclass
class OrganizeOutcome:
    matches: List[MatchResult]
    added: List[PlaylistAddition]
    unmatched: List[UnmatchedTrack]
    dry_run: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matches": [match.to_dict() for match in self.matches],
            "added": [addition.to_dict() for addition in self.added if addition.status != STATUS_FAILED],
            "failed": [addition.to_dict() for addition in self.added if addition.status == STATUS_FAILED],
            "unmatched": [item.to_dict() for item in self.unmatched],
            "dryRun": self.dry_run,
        }


def group_by_playlist(matches: Sequence[MatchResult]) -> Dict[str, List[MatchResult]]:
    grouped: Dict[str, List[MatchResult]] = {}
    for match in matches:
        grouped.setdefault(match.playlist_id, []).append(match)
    return grouped


def _track_label(match: MatchResult) -> str:
    return f"{match.track_name} - {match.artist_names}"


def _unmatched(track: TrackWithGenres, reason: str) -> UnmatchedTrack:
    return UnmatchedTrack(
        track_id=track.id,
        track_name=track.name,
        artist_names=track.joined_artist_names,
        reason=reason,
    )


def select_best_match(
    track: TrackWithGenres, profiles: Sequence[PlaylistProfile], threshold: float
) -> Tuple[Optional[PlaylistProfile], float, Optional[MatchBreakdown], float]:
    """Return the winning profile, its score and breakdown, plus the best score seen.

    Only scores strictly above ``threshold`` can win. Among equal scores the
    first profile scanned is kept.
    """
    best_profile: Optional[PlaylistProfile] = None
    best_score = 0.0
    best_breakdown: Optional[MatchBreakdown] = None
    highest_seen = 0.0
    for profile in profiles:
        score, breakdown = calculate_match_score(track, profile)
        highest_seen = max(highest_seen, score)
        if score > threshold and (best_profile is None or score > best_score):
            best_profile, best_score, best_breakdown = profile, score, breakdown
    return best_profile, best_score, best_breakdown, highest_seen


class GenreMatcher:
    """Recommends an owned playlist for each liked track and optionally applies the result."""

    def __init__(
        self,
        provider: MetadataProvider,
        cache: ProfileCache | None = None,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
    ) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else ProfileCache()
        self.sample_size = sample_size
        self.profiles = ProfileBuilder(provider, self.cache)

    async def enrich_liked_tracks(self, limit: int) -> List[TrackWithGenres]:
        liked = await self.provider.liked_tracks(limit)
        return await enrich_tracks_with_genres(self.provider, liked)

    async def owned_profiles(self, playlist_limit: int) -> List[PlaylistProfile]:
        user = await self.provider.current_user()
        playlists = await self.provider.user_playlists(playlist_limit)
        owned = [playlist for playlist in playlists if playlist.owner_id == user.id]

        profiles: List[PlaylistProfile] = []
        for playlist in owned:
            if playlist.track_count == 0:
                continue
            try:
                profiles.append(await self.profiles.get_or_build(playlist.id, self.sample_size))
            except OAuthError:
                raise
            except PlaylistMatcherError as exc:
                logger.warning("Skipping playlist {!r}: {}", playlist.name, exc)
        return profiles

    async def match(
        self,
        liked_tracks_limit: int = 20,
        playlist_limit: int = 10,
        threshold: float = 0.15,
    ) -> MatchOutcome:
        liked = await self.enrich_liked_tracks(liked_tracks_limit)
        profiles = await self.owned_profiles(playlist_limit)

        if not profiles:
            logger.info("No owned, non-empty playlists to match {} liked tracks against", len(liked))
            return MatchOutcome(unmatched=[_unmatched(track, NO_PLAYLISTS_REASON) for track in liked])

        outcome = MatchOutcome(playlists_considered=len(profiles))
        for track in liked:
            profile, score, breakdown, highest_seen = select_best_match(track, profiles, threshold)
            if profile is not None and breakdown is not None:
                outcome.matches.append(
                    MatchResult(
                        track_id=track.id,
                        track_uri=track.uri,
                        track_name=track.name,
                        artist_names=track.joined_artist_names,
                        track_image_url=track.image_url,
                        track_genres=list(track.genres),
                        playlist_id=profile.playlist_id,
                        playlist_name=profile.playlist_name,
                        score=score,
                        breakdown=breakdown,
                    )
                )
            elif not track.genres:
                outcome.unmatched.append(_unmatched(track, NO_GENRES_REASON))
            else:
                outcome.unmatched.append(
                    _unmatched(track, f"Best score ({highest_seen:.2f}) below threshold ({threshold})")
                )

        outcome.matches.sort(key=lambda match: match.score, reverse=True)
        logger.info(
            "Matched {} of {} liked tracks across {} playlists",
            len(outcome.matches),
            len(liked),
            len(profiles),
        )
        return outcome

    async def apply_matches(
        self,
        matches: Sequence[MatchResult],
        on_added: Optional[AddedCallback] = None,
    ) -> Tuple[List[PlaylistAddition], List[UnmatchedTrack]]:
        """Add matched tracks with one bulk call per destination playlist.

        A failing destination turns its matches into unmatched entries; other
        destinations are still processed. ``on_added`` is awaited for each
        destination right after its add succeeds, before any later
        ``OAuthError`` aborts the batch.
        """
        additions: List[PlaylistAddition] = []
        failures: List[UnmatchedTrack] = []
        for playlist_id, playlist_matches in group_by_playlist(matches).items():
            playlist_name = playlist_matches[0].playlist_name
            labels = [_track_label(match) for match in playlist_matches]
            try:
                await self.provider.add_tracks_to_playlist(
                    playlist_id, [match.track_uri for match in playlist_matches]
                )
            except OAuthError:
                raise
            except PlaylistMatcherError as exc:
                reason = str(exc) or ADD_FAILED_REASON
                logger.warning("Adding {} tracks to {!r} failed: {}", len(playlist_matches), playlist_name, reason)
                additions.append(
                    PlaylistAddition(playlist_id, playlist_name, labels, STATUS_FAILED, error=reason)
                )
                failures.extend(
                    UnmatchedTrack(
                        track_id=match.track_id,
                        track_name=match.track_name,
                        artist_names=match.artist_names,
                        reason=reason,
                    )
                    for match in playlist_matches
                )
                continue
            additions.append(PlaylistAddition(playlist_id, playlist_name, labels, STATUS_ADDED))
            if on_added is not None:
                await on_added(playlist_id, playlist_matches)
        return additions, failures

    async def auto_organize(
        self,
        liked_tracks_limit: int = 20,
        playlist_limit: int = 10,
        threshold: float = 0.2,
        dry_run: bool = True,
    ) -> OrganizeOutcome:
        outcome = await self.match(liked_tracks_limit, playlist_limit, threshold)
        unmatched = list(outcome.unmatched)

        if dry_run:
            added = [
                PlaylistAddition(
                    playlist_id,
                    playlist_matches[0].playlist_name,
                    [_track_label(match) for match in playlist_matches],
                    STATUS_PREVIEW,
                )
                for playlist_id, playlist_matches in group_by_playlist(outcome.matches).items()
            ]
        else:
            added, failures = await self.apply_matches(outcome.matches)
            unmatched.extend(failures)

        return OrganizeOutcome(matches=outcome.matches, added=added, unmatched=unmatched, dry_run=dry_run)

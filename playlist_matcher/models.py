from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple


@dataclass
class User:
    id: str
    display_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "displayName": self.display_name}


@dataclass
class Artist:
    id: str
    name: str
    genres: List[str] = field(default_factory=list)
    popularity: int = 0


@dataclass
class Track:
    id: str
    name: str
    uri: str
    artist_ids: List[str] = field(default_factory=list)
    artist_names: List[str] = field(default_factory=list)
    album: Optional[str] = None
    image_url: Optional[str] = None
    duration_ms: Optional[int] = None
    popularity: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "uri": self.uri,
            "artistIds": list(self.artist_ids),
            "artistNames": list(self.artist_names),
            "album": self.album,
            "imageUrl": self.image_url,
            "durationMs": self.duration_ms,
            "popularity": self.popularity,
        }


@dataclass
class Playlist:
    id: str
    name: str
    owner_id: str
    track_count: int = 0
    public: bool = False
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "ownerId": self.owner_id,
            "trackCount": self.track_count,
            "public": self.public,
            "imageUrl": self.image_url,
        }


@dataclass(frozen=True)
class TrackWithGenres:
    """A liked track enriched with the genres of all of its artists."""

    id: str
    uri: str
    name: str
    artist_ids: Tuple[str, ...]
    artist_names: Tuple[str, ...]
    genres: Tuple[str, ...]
    popularity: int = 0
    image_url: Optional[str] = None

    def __post_init__(self) -> None:
        if len(self.artist_ids) != len(self.artist_names):
            raise ValueError(
                f"Track {self.id!r} has {len(self.artist_ids)} artist ids "
                f"but {len(self.artist_names)} artist names"
            )

    @property
    def joined_artist_names(self) -> str:
        return ", ".join(self.artist_names)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "uri": self.uri,
            "name": self.name,
            "artistIds": list(self.artist_ids),
            "artistNames": list(self.artist_names),
            "genres": list(self.genres),
            "popularity": self.popularity,
            "imageUrl": self.image_url,
        }


@dataclass(frozen=True)
class PlaylistProfile:
    """Statistical summary of a playlist's sampled tracks, used as the scoring target."""

    playlist_id: str
    playlist_name: str
    track_count: int
    sampled_count: int
    artist_ids: FrozenSet[str]
    artist_names: FrozenSet[str]
    genres: Mapping[str, int]
    avg_popularity: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "playlistId": self.playlist_id,
            "playlistName": self.playlist_name,
            "trackCount": self.track_count,
            "sampledCount": self.sampled_count,
            "artistIds": sorted(self.artist_ids),
            "artistNames": sorted(self.artist_names),
            "genres": dict(self.genres),
            "avgPopularity": self.avg_popularity,
        }


@dataclass(frozen=True)
class MatchBreakdown:
    artist_overlap: float
    genre_overlap: float
    weighted_genre_score: float
    popularity_similarity: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "artistOverlap": self.artist_overlap,
            "genreOverlap": self.genre_overlap,
            "weightedGenreScore": self.weighted_genre_score,
            "popularitySimilarity": self.popularity_similarity,
        }


@dataclass
class MatchResult:
    track_id: str
    track_uri: str
    track_name: str
    artist_names: str
    track_genres: List[str]
    playlist_id: str
    playlist_name: str
    score: float
    breakdown: MatchBreakdown
    track_image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trackId": self.track_id,
            "trackUri": self.track_uri,
            "trackName": self.track_name,
            "artistNames": self.artist_names,
            "trackImageUrl": self.track_image_url,
            "trackGenres": list(self.track_genres),
            "playlistId": self.playlist_id,
            "playlistName": self.playlist_name,
            "score": self.score,
            "breakdown": self.breakdown.to_dict(),
        }


@dataclass
class UnmatchedTrack:
    track_id: str
    track_name: str
    artist_names: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "trackId": self.track_id,
            "trackName": self.track_name,
            "artistNames": self.artist_names,
            "reason": self.reason,
        }


@dataclass
class MatchRecord:
    track_id: str
    track_name: str
    artist_names: str
    playlist_id: str
    playlist_name: str
    matched_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trackId": self.track_id,
            "trackName": self.track_name,
            "artistNames": self.artist_names,
            "playlistId": self.playlist_id,
            "playlistName": self.playlist_name,
            "matchedAt": self.matched_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MatchRecord":
        return cls(
            track_id=payload["trackId"],
            track_name=payload.get("trackName", ""),
            artist_names=payload.get("artistNames", ""),
            playlist_id=payload["playlistId"],
            playlist_name=payload.get("playlistName", ""),
            matched_at=int(payload.get("matchedAt", 0)),
        )

from .matcher import GenreMatcher, MatchOutcome, OrganizeOutcome, PlaylistAddition
from .profiles import ProfileBuilder, ProfileCache, enrich_tracks_with_genres
from .similarity import (
    artist_overlap_score,
    calculate_match_score,
    genre_overlap_score,
    jaccard_similarity,
    popularity_similarity,
    weighted_genre_score,
)

__all__ = [
    "GenreMatcher",
    "MatchOutcome",
    "OrganizeOutcome",
    "PlaylistAddition",
    "ProfileBuilder",
    "ProfileCache",
    "enrich_tracks_with_genres",
    "artist_overlap_score",
    "calculate_match_score",
    "genre_overlap_score",
    "jaccard_similarity",
    "popularity_similarity",
    "weighted_genre_score",
]

"""Similarity primitives and the composite match score.

score = artist_overlap * 0.35
      + genre_overlap * 0.25
      + weighted_genre_score * 0.25
      + popularity_similarity * 0.15

Every sub-score lies in [0, 1]. The composite and each breakdown component are
rounded to two decimals independently, so the displayed breakdown does not
always re-sum to the displayed score.
"""

from __future__ import annotations

import math
from typing import AbstractSet, Iterable, Mapping, Sequence, Tuple

from playlist_matcher.models import MatchBreakdown, PlaylistProfile, TrackWithGenres

ARTIST_WEIGHT = 0.35
GENRE_OVERLAP_WEIGHT = 0.25
WEIGHTED_GENRE_WEIGHT = 0.25
POPULARITY_WEIGHT = 0.15

# A single shared artist is worth half the artist score on its own.
ARTIST_MATCH_BONUS = 0.5
# Popularity difference at which similarity reaches zero.
POPULARITY_SPAN = 40.0


def jaccard_similarity(set_a: AbstractSet[str], set_b: AbstractSet[str]) -> float:
    """|A ∩ B| / |A ∪ B|, with two empty sets counting as no evidence (0)."""
    if not set_a and not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def artist_overlap_score(track_artist_ids: Sequence[str], playlist_artist_ids: AbstractSet[str]) -> float:
    if not track_artist_ids or not playlist_artist_ids:
        return 0.0
    match_count = sum(1 for artist_id in track_artist_ids if artist_id in playlist_artist_ids)
    if match_count == 0:
        return 0.0
    return min(1.0, match_count / len(track_artist_ids) + ARTIST_MATCH_BONUS)


def genre_overlap_score(track_genres: Iterable[str], playlist_genres: AbstractSet[str]) -> float:
    genres = set(track_genres)
    if not genres or not playlist_genres:
        return 0.0
    return jaccard_similarity(genres, playlist_genres)


def weighted_genre_score(track_genres: Sequence[str], genre_frequencies: Mapping[str, int]) -> float:
    """Reward genres that dominate the playlist, with a bonus for several matches.

    The average is taken over all of the track's genres, so unmatched genres
    dilute the score.
    """
    if not track_genres or not genre_frequencies:
        return 0.0
    max_freq = max(genre_frequencies.values())
    if max_freq <= 0:
        return 0.0

    total = 0.0
    match_count = 0
    for genre in track_genres:
        freq = genre_frequencies.get(genre)
        if freq is not None:
            total += freq / max_freq
            match_count += 1
    if match_count == 0:
        return 0.0

    score = (total / len(track_genres)) * (1 + math.log10(match_count + 1) / 2)
    return min(1.0, score)


def popularity_similarity(track_popularity: float, playlist_avg_popularity: float) -> float:
    diff = abs(track_popularity - playlist_avg_popularity)
    return max(0.0, 1.0 - diff / POPULARITY_SPAN)


def _round(value: float) -> float:
    return round(value, 2)


def calculate_match_score(track: TrackWithGenres, profile: PlaylistProfile) -> Tuple[float, MatchBreakdown]:
    artist_score = artist_overlap_score(track.artist_ids, profile.artist_ids)
    genre_score = genre_overlap_score(track.genres, frozenset(profile.genres))
    weighted_genre = weighted_genre_score(track.genres, profile.genres)
    pop_similarity = popularity_similarity(track.popularity, profile.avg_popularity)

    score = (
        artist_score * ARTIST_WEIGHT
        + genre_score * GENRE_OVERLAP_WEIGHT
        + weighted_genre * WEIGHTED_GENRE_WEIGHT
        + pop_similarity * POPULARITY_WEIGHT
    )
    score = max(0.0, min(1.0, score))

    breakdown = MatchBreakdown(
        artist_overlap=_round(artist_score),
        genre_overlap=_round(genre_score),
        weighted_genre_score=_round(weighted_genre),
        popularity_similarity=_round(pop_similarity),
    )
    return _round(score), breakdown

import pytest

from playlist_matcher.errors import OAuthError, ProviderError
from playlist_matcher.matching.matcher import (
    NO_GENRES_REASON,
    NO_PLAYLISTS_REASON,
    STATUS_ADDED,
    STATUS_FAILED,
    STATUS_PREVIEW,
    GenreMatcher,
)


@pytest.mark.asyncio
async def test_match_assigns_each_track_to_its_best_playlist(library):
    matcher = GenreMatcher(library)

    outcome = await matcher.match(liked_tracks_limit=20, playlist_limit=10, threshold=0.2)

    assert {m.track_id: m.playlist_id for m in outcome.matches} == {
        "liked-rock": "rock-pl",
        "liked-jazz": "jazz-pl",
    }
    assert outcome.playlists_considered == 2
    assert [m.score for m in outcome.matches] == sorted((m.score for m in outcome.matches), reverse=True)

    assert [u.track_id for u in outcome.unmatched] == ["liked-country"]
    reason = outcome.unmatched[0].reason
    assert reason.startswith("Best score (")
    assert reason.endswith("below threshold (0.2)")


@pytest.mark.asyncio
async def test_perfect_match_has_full_breakdown(provider):
    provider.add_artist("a1", ["rock"])
    provider.add_playlist("p1", "Rock", [provider.make_track("r1", ["a1"], 50)])
    provider.add_liked("t1", ["a1"], 50)

    outcome = await GenreMatcher(provider).match(threshold=0.2)

    (result,) = outcome.matches
    assert result.score == 1.0
    assert result.breakdown.to_dict() == {
        "artistOverlap": 1.0,
        "genreOverlap": 1.0,
        "weightedGenreScore": 1.0,
        "popularitySimilarity": 1.0,
    }
    assert result.track_uri == "spotify:track:t1"
    assert result.artist_names == "A1"
    assert result.track_genres == ["rock"]


@pytest.mark.asyncio
async def test_unrelated_track_is_reported_below_threshold(provider):
    provider.add_artist("a1", ["electronic"])
    provider.add_artist("unknown", ["country"])
    provider.add_playlist("p1", "Dance", [provider.make_track("d1", ["a1"], 90)])
    provider.add_liked("t1", ["unknown"], 10)

    outcome = await GenreMatcher(provider).match(threshold=0.2)

    assert outcome.matches == []
    (item,) = outcome.unmatched
    assert item.reason == "Best score (0.00) below threshold (0.2)"


@pytest.mark.asyncio
async def test_score_equal_to_threshold_does_not_match(provider):
    provider.add_artist("a1", ["rock"])
    provider.add_playlist("p1", "Rock", [provider.make_track("r1", ["a1"], 50)])
    provider.add_liked("t1", ["a1"], 50)

    outcome = await GenreMatcher(provider).match(threshold=1.0)

    assert outcome.matches == []
    assert outcome.unmatched[0].reason == "Best score (1.00) below threshold (1.0)"


@pytest.mark.asyncio
async def test_no_owned_playlists_marks_everything_unmatched(provider):
    provider.add_artist("a1", ["rock"])
    provider.add_playlist("followed", "Not Mine", [provider.make_track("r1", ["a1"])], owner_id="someone")
    provider.add_playlist("empty", "Empty")
    provider.add_liked("t1", ["a1"])
    provider.add_liked("t2", ["a1"])

    outcome = await GenreMatcher(provider).match()

    assert outcome.matches == []
    assert outcome.no_playlists is True
    assert [u.reason for u in outcome.unmatched] == [NO_PLAYLISTS_REASON, NO_PLAYLISTS_REASON]
    assert provider.playlist_track_calls == []


@pytest.mark.asyncio
async def test_track_without_genres_gets_no_genre_reason(library):
    library.add_liked("mystery", ["no-such-artist"], 5)

    outcome = await GenreMatcher(library).match(threshold=0.2)

    reasons = {u.track_id: u.reason for u in outcome.unmatched}
    assert reasons["mystery"] == NO_GENRES_REASON


@pytest.mark.asyncio
async def test_failing_playlist_is_skipped(library):
    library.track_failures["jazz-pl"] = ProviderError("Spotify API error: 500 boom", 500)

    outcome = await GenreMatcher(library).match(threshold=0.2)

    assert outcome.playlists_considered == 1
    assert {m.playlist_id for m in outcome.matches} == {"rock-pl"}


@pytest.mark.asyncio
async def test_auth_failure_is_fatal(library):
    library.track_failures["jazz-pl"] = OAuthError("expired")

    with pytest.raises(OAuthError):
        await GenreMatcher(library).match()


@pytest.mark.asyncio
async def test_match_is_repeatable_with_warm_cache(library):
    matcher = GenreMatcher(library)

    first = await matcher.match(threshold=0.2)
    calls_after_first = list(library.playlist_track_calls)
    second = await matcher.match(threshold=0.2)

    assert first.to_dict() == second.to_dict()
    assert library.playlist_track_calls == calls_after_first
    assert len(matcher.cache) == 2


@pytest.mark.asyncio
async def test_auto_organize_dry_run_never_writes(library):
    outcome = await GenreMatcher(library).auto_organize(threshold=0.2, dry_run=True)

    assert library.added == {}
    assert outcome.dry_run is True
    assert {a.playlist_id for a in outcome.added} == {"rock-pl", "jazz-pl"}
    assert all(a.status == STATUS_PREVIEW for a in outcome.added)
    rock = next(a for a in outcome.added if a.playlist_id == "rock-pl")
    assert rock.tracks == ["Song liked-rock - A1"]


@pytest.mark.asyncio
async def test_auto_organize_apply_makes_one_call_per_playlist(library):
    library.add_liked("liked-rock-2", ["a2"], 60)

    outcome = await GenreMatcher(library).auto_organize(threshold=0.2, dry_run=False)

    # matches are ordered by score, so the closer rock track goes first
    assert library.added == {
        "rock-pl": [["spotify:track:liked-rock", "spotify:track:liked-rock-2"]],
        "jazz-pl": [["spotify:track:liked-jazz"]],
    }
    assert all(a.status == STATUS_ADDED for a in outcome.added)
    assert outcome.to_dict()["failed"] == []


@pytest.mark.asyncio
async def test_auto_organize_apply_isolates_failing_playlist(library):
    library.add_failures["rock-pl"] = ProviderError("Spotify API error: 403 Forbidden", 403)

    outcome = await GenreMatcher(library).auto_organize(threshold=0.2, dry_run=False)

    assert library.added == {"jazz-pl": [["spotify:track:liked-jazz"]]}
    statuses = {a.playlist_id: a.status for a in outcome.added}
    assert statuses == {"rock-pl": STATUS_FAILED, "jazz-pl": STATUS_ADDED}

    reasons = {u.track_id: u.reason for u in outcome.unmatched}
    assert reasons["liked-rock"] == "Spotify API error: 403 Forbidden"
    assert "liked-country" in reasons

    payload = outcome.to_dict()
    assert [a["playlistId"] for a in payload["failed"]] == ["rock-pl"]
    assert [a["playlistId"] for a in payload["added"]] == ["jazz-pl"]


@pytest.mark.asyncio
async def test_auto_organize_apply_propagates_auth_failure(library):
    library.add_failures["rock-pl"] = OAuthError("token revoked")

    with pytest.raises(OAuthError):
        await GenreMatcher(library).auto_organize(threshold=0.2, dry_run=False)


@pytest.mark.asyncio
async def test_apply_reports_each_added_destination(library):
    library.add_failures["rock-pl"] = OAuthError("token revoked")
    matcher = GenreMatcher(library)
    outcome = await matcher.match(threshold=0.2)
    seen = []

    async def on_added(playlist_id, matches):
        seen.append((playlist_id, [m.track_id for m in matches]))

    with pytest.raises(OAuthError):
        await matcher.apply_matches(outcome.matches, on_added=on_added)

    assert seen == [("jazz-pl", ["liked-jazz"])]

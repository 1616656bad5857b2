from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from playlist_matcher.errors import OAuthError
from playlist_matcher.models import Artist, Playlist, Track, User
from playlist_matcher.providers.base import MetadataProvider
from playlist_matcher.storage import JSONStorage


class FakeProvider(MetadataProvider):
    """In-memory provider that records every call the matcher makes."""

    def __init__(self, user_id: str = "me", *, configured: bool = True, token: bool = True) -> None:
        self.user = User(id=user_id, display_name="Test User")
        self._configured = configured
        self._token_ready = token
        self.artists: Dict[str, Artist] = {}
        self.liked: List[Track] = []
        self.playlists: Dict[str, Playlist] = {}
        self.tracks: Dict[str, List[Track]] = {}
        self.track_failures: Dict[str, Exception] = {}
        self.add_failures: Dict[str, Exception] = {}
        self.added: Dict[str, List[List[str]]] = {}
        self.removed: Dict[str, List[str]] = {}
        self.artist_calls: List[List[str]] = []
        self.playlist_track_calls: List[str] = []

    # builders

    def add_artist(self, artist_id: str, genres: Sequence[str], name: Optional[str] = None) -> Artist:
        artist = Artist(id=artist_id, name=name or artist_id.upper(), genres=list(genres))
        self.artists[artist_id] = artist
        return artist

    @staticmethod
    def make_track(track_id: str, artist_ids: Sequence[str], popularity: int = 50) -> Track:
        return Track(
            id=track_id,
            name=f"Song {track_id}",
            uri=f"spotify:track:{track_id}",
            artist_ids=list(artist_ids),
            artist_names=[artist_id.upper() for artist_id in artist_ids],
            popularity=popularity,
        )

    def add_liked(self, track_id: str, artist_ids: Sequence[str], popularity: int = 50) -> Track:
        track = self.make_track(track_id, artist_ids, popularity)
        self.liked.append(track)
        return track

    def add_playlist(
        self,
        playlist_id: str,
        name: str,
        tracks: Sequence[Track] = (),
        owner_id: Optional[str] = None,
    ) -> Playlist:
        playlist = Playlist(
            id=playlist_id,
            name=name,
            owner_id=owner_id or self.user.id,
            track_count=len(tracks),
        )
        self.playlists[playlist_id] = playlist
        self.tracks[playlist_id] = list(tracks)
        return playlist

    # MetadataProvider

    def is_configured(self) -> bool:
        return self._configured

    async def oauth_start(self) -> str:
        return "http://auth.example"

    async def oauth_complete(self, query_params):
        if "code" not in query_params:
            raise OAuthError("missing code")
        self._token_ready = True

    async def token_ready(self) -> bool:
        return self._token_ready

    async def logout(self) -> None:
        self._token_ready = False

    async def current_user(self) -> User:
        if not self._token_ready:
            raise OAuthError("Spotify is not authenticated.")
        return self.user

    async def liked_tracks(self, limit: int = 20) -> List[Track]:
        return self.liked[:limit]

    async def user_playlists(self, limit: int = 20) -> List[Playlist]:
        return list(self.playlists.values())[:limit]

    async def playlist(self, playlist_id: str) -> Playlist:
        return self.playlists[playlist_id]

    async def playlist_tracks(self, playlist_id: str, limit: int = 50) -> List[Track]:
        self.playlist_track_calls.append(playlist_id)
        if playlist_id in self.track_failures:
            raise self.track_failures[playlist_id]
        return self.tracks.get(playlist_id, [])[:limit]

    async def artists_by_ids(self, artist_ids: Sequence[str]) -> List[Artist]:
        self.artist_calls.append(list(artist_ids))
        return [self.artists[artist_id] for artist_id in artist_ids if artist_id in self.artists]

    async def add_tracks_to_playlist(self, playlist_id: str, track_uris: Sequence[str]) -> None:
        if playlist_id in self.add_failures:
            raise self.add_failures[playlist_id]
        self.added.setdefault(playlist_id, []).append(list(track_uris))

    async def remove_tracks_from_playlist(self, playlist_id: str, track_uris: Sequence[str]) -> None:
        self.removed.setdefault(playlist_id, []).extend(track_uris)


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "data"
    directory.mkdir(parents=True, exist_ok=True)
    return directory


@pytest.fixture()
def storage(data_dir: Path) -> JSONStorage:
    return JSONStorage(data_dir / "state.json")


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def library(provider: FakeProvider) -> FakeProvider:
    """A user with a rock playlist, a jazz playlist and three liked songs."""
    provider.add_artist("a1", ["rock", "hard rock"])
    provider.add_artist("a2", ["rock"])
    provider.add_artist("a3", ["jazz", "bebop"])
    provider.add_artist("a4", ["country"])
    provider.add_playlist(
        "rock-pl",
        "Rock",
        [provider.make_track("r1", ["a1"], 60), provider.make_track("r2", ["a2"], 60)],
    )
    provider.add_playlist(
        "jazz-pl",
        "Jazz",
        [provider.make_track("j1", ["a3"], 30)],
    )
    provider.add_liked("liked-rock", ["a1"], 60)
    provider.add_liked("liked-jazz", ["a3"], 30)
    provider.add_liked("liked-country", ["a4"], 90)
    return provider

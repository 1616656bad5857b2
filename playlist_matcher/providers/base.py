from __future__ import annotations

import abc
from typing import Dict, List, Sequence

from playlist_matcher.models import Artist, Playlist, Track, User


class MetadataProvider(abc.ABC):
    """Contract for the music service the matcher reads from and writes to."""

    @abc.abstractmethod
    def is_configured(self) -> bool:
        """Return whether the provider has the required application credentials."""

    @abc.abstractmethod
    async def oauth_start(self) -> str:
        """Return a URL the user should visit to begin authentication."""

    @abc.abstractmethod
    async def oauth_complete(self, query_params: Dict[str, str]) -> None:
        """Handle the OAuth callback and persist tokens."""

    @abc.abstractmethod
    async def token_ready(self) -> bool:
        """Return whether the provider already holds tokens."""

    @abc.abstractmethod
    async def logout(self) -> None:
        """Forget stored tokens."""

    @abc.abstractmethod
    async def current_user(self) -> User:
        """Return the authenticated user."""

    @abc.abstractmethod
    async def liked_tracks(self, limit: int = 20) -> List[Track]:
        """Return the most recently saved tracks of the user."""

    @abc.abstractmethod
    async def user_playlists(self, limit: int = 20) -> List[Playlist]:
        """Return playlists in the user's library, owned or followed."""

    @abc.abstractmethod
    async def playlist(self, playlist_id: str) -> Playlist:
        """Return metadata for a single playlist."""

    @abc.abstractmethod
    async def playlist_tracks(self, playlist_id: str, limit: int = 50) -> List[Track]:
        """Return up to ``limit`` tracks of a playlist."""

    @abc.abstractmethod
    async def artists_by_ids(self, artist_ids: Sequence[str]) -> List[Artist]:
        """Return artist records, including genres, for the given ids."""

    @abc.abstractmethod
    async def add_tracks_to_playlist(self, playlist_id: str, track_uris: Sequence[str]) -> None:
        """Append tracks to a playlist."""

    @abc.abstractmethod
    async def remove_tracks_from_playlist(self, playlist_id: str, track_uris: Sequence[str]) -> None:
        """Remove every occurrence of the given tracks from a playlist."""

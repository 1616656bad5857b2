from __future__ import annotations


class PlaylistMatcherError(Exception):
    """Base class for errors raised by the matcher."""


class OAuthError(PlaylistMatcherError):
    """Raised when OAuth authentication cannot be completed."""


class ProviderError(PlaylistMatcherError):
    """Raised when the metadata provider rejects or fails a request."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class EmptyPlaylistError(PlaylistMatcherError):
    """Raised when a playlist yields no tracks to build a profile from."""

    def __init__(self, playlist_id: str, playlist_name: str) -> None:
        super().__init__(f'Playlist "{playlist_name}" has no tracks')
        self.playlist_id = playlist_id
        self.playlist_name = playlist_name

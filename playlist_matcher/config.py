from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

DEFAULT_DATA_DIR = Path(
    os.getenv("PLAYLIST_MATCHER_DATA", Path.home() / ".local" / "share" / "playlist-matcher")
).expanduser()


@dataclass
class AppConfig:
    """Static configuration for the service."""

    host: str = field(default_factory=lambda: os.getenv("PLAYLIST_MATCHER_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PLAYLIST_MATCHER_PORT", "8080")))
    poll_interval_seconds: int = field(
        default_factory=lambda: int(os.getenv("PLAYLIST_MATCHER_POLL_INTERVAL", "60"))
    )
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    log_level: str = field(default_factory=lambda: os.getenv("PLAYLIST_MATCHER_LOG_LEVEL", "INFO"))
    profile_ttl_seconds: int = 60 * 60
    sample_size: int = 50

    def ensure_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


@dataclass
class OAuthConfig:
    """Spotify application credentials provided by the user."""

    spotify_client_id: str | None = None
    spotify_client_secret: str | None = None
    spotify_redirect_uri: str | None = None

    @classmethod
    def from_env(cls) -> "OAuthConfig":
        return cls(
            spotify_client_id=os.getenv("SPOTIFY_CLIENT_ID"),
            spotify_client_secret=os.getenv("SPOTIFY_CLIENT_SECRET"),
            spotify_redirect_uri=os.getenv("SPOTIFY_REDIRECT_URI"),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "spotify_client_id": self.spotify_client_id,
            "spotify_client_secret": self.spotify_client_secret,
            "spotify_redirect_uri": self.spotify_redirect_uri,
        }


@dataclass(frozen=True)
class MatchLimits:
    """Bounds applied to caller-supplied matching parameters."""

    max_liked_tracks: int = 50
    max_playlists: int = 50
    max_playlist_tracks: int = 100
    match_threshold: float = 0.15
    organize_threshold: float = 0.2
    scheduled_threshold: float = 0.15
    scheduled_playlist_limit: int = 50

    def liked(self, value: int) -> int:
        return max(1, min(self.max_liked_tracks, value))

    def playlists(self, value: int) -> int:
        return max(1, min(self.max_playlists, value))

    def playlist_tracks(self, value: int) -> int:
        return max(1, min(self.max_playlist_tracks, value))

    @staticmethod
    def threshold(value: float) -> float:
        return max(0.0, min(1.0, value))


MATCH_LIMITS = MatchLimits()

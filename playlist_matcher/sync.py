from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from playlist_matcher.history import MatchHistoryStore
from playlist_matcher.log import get_logger
from playlist_matcher.matching.matcher import GenreMatcher
from playlist_matcher.models import MatchRecord, MatchResult
from playlist_matcher.settings import SettingsStore

logger = get_logger(__name__)


def track_uri(track_id: str) -> str:
    return f"spotify:track:{track_id}"


@dataclass
class SyncResult:
    matches_added: int = 0
    already_matched: int = 0
    unmatched: int = 0
    playlists: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "matchesAdded": self.matches_added,
            "alreadyMatched": self.already_matched,
            "unmatched": self.unmatched,
            "playlists": list(self.playlists),
        }


class SyncService:
    """Applies new matches for a user exactly once, using the match history as the ledger."""

    def __init__(
        self,
        matcher: GenreMatcher,
        history: MatchHistoryStore,
        settings: SettingsStore,
    ) -> None:
        self.matcher = matcher
        self.history = history
        self.settings = settings
        self._lock = asyncio.Lock()

    async def sync(self, user_id: str, playlist_limit: int = 50, threshold: float = 0.15) -> SyncResult:
        async with self._lock:
            user_settings = await self.settings.get_settings(user_id)
            outcome = await self.matcher.match(user_settings.songs_to_match, playlist_limit, threshold)

            already = await self.history.matched_track_ids(user_id)
            new_matches = [match for match in outcome.matches if match.track_id not in already]

            applied: List[MatchResult] = []
            matched_at = int(time.time() * 1000)

            # Each destination is recorded as soon as its add succeeds.
            async def _record(playlist_id: str, playlist_matches: List[MatchResult]) -> None:
                applied.extend(playlist_matches)
                await self.history.record_matches(
                    user_id,
                    [
                        MatchRecord(
                            track_id=match.track_id,
                            track_name=match.track_name,
                            artist_names=match.artist_names,
                            playlist_id=match.playlist_id,
                            playlist_name=match.playlist_name,
                            matched_at=matched_at,
                        )
                        for match in playlist_matches
                    ],
                )

            _, failures = await self.matcher.apply_matches(new_matches, on_added=_record)

            result = SyncResult(
                matches_added=len(applied),
                already_matched=len(outcome.matches) - len(new_matches),
                unmatched=len(outcome.unmatched) + len(failures),
                playlists=list(dict.fromkeys(match.playlist_name for match in applied)),
            )
            logger.info(
                "Sync for user {}: {} added, {} already matched, {} unmatched",
                user_id,
                result.matches_added,
                result.already_matched,
                result.unmatched,
            )
            return result

    async def move_track(
        self,
        user_id: str,
        track_id: str,
        from_playlist_id: Optional[str] = None,
        to_playlist_id: Optional[str] = None,
    ) -> None:
        """Move or remove a track and free it to be matched again."""
        provider = self.matcher.provider
        uri = track_uri(track_id)
        if from_playlist_id:
            await provider.remove_tracks_from_playlist(from_playlist_id, [uri])
            self.matcher.cache.invalidate(from_playlist_id)
        if to_playlist_id:
            await provider.add_tracks_to_playlist(to_playlist_id, [uri])
            self.matcher.cache.invalidate(to_playlist_id)
        await self.history.remove_match(user_id, track_id)

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from playlist_matcher.models import MatchRecord
from playlist_matcher.storage import JSONStorage


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class UserMatchHistory:
    matches: List[MatchRecord] = field(default_factory=list)
    last_match_run: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matches": [record.to_dict() for record in self.matches],
            "lastMatchRun": self.last_match_run,
        }

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> "UserMatchHistory":
        if not payload:
            return cls()
        return cls(
            matches=[MatchRecord.from_dict(item) for item in payload.get("matches", [])],
            last_match_run=int(payload.get("lastMatchRun", 0)),
        )


class MatchHistoryStore:
    """Per-user record of matches that were applied, at most one per track id."""

    def __init__(self, storage: JSONStorage) -> None:
        self.storage = storage

    @staticmethod
    def _key(user_id: str) -> str:
        return f"match_history::{user_id}"

    async def get_history(self, user_id: str) -> UserMatchHistory:
        return UserMatchHistory.from_dict(await self.storage.get(self._key(user_id)))

    async def matched_track_ids(self, user_id: str) -> Set[str]:
        history = await self.get_history(user_id)
        return {record.track_id for record in history.matches}

    async def record_matches(self, user_id: str, records: Iterable[MatchRecord]) -> int:
        """Append records for tracks not yet in the history; return how many were added."""
        new_records = list(records)
        added = 0

        def _merge(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            nonlocal added
            history = UserMatchHistory.from_dict(payload)
            seen = {record.track_id for record in history.matches}
            for record in new_records:
                if record.track_id in seen:
                    continue
                history.matches.append(record)
                seen.add(record.track_id)
                added += 1
            history.last_match_run = _now_ms()
            return history.to_dict()

        await self.storage.update(self._key(user_id), _merge)
        return added

    async def remove_match(self, user_id: str, track_id: str) -> bool:
        removed = False

        def _remove(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            nonlocal removed
            history = UserMatchHistory.from_dict(payload)
            remaining = [record for record in history.matches if record.track_id != track_id]
            removed = len(remaining) != len(history.matches)
            history.matches = remaining
            return history.to_dict()

        await self.storage.update(self._key(user_id), _remove)
        return removed

    async def clear_history(self, user_id: str) -> None:
        await self.storage.delete(self._key(user_id))

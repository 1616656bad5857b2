from __future__ import annotations

import time
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping

from playlist_matcher.storage import JSONStorage


@dataclass
class UserSettings:
    songs_to_match: int = 20
    interval_days: int = 7
    schedule_hours: int = 9
    schedule_minutes: int = 0
    last_updated: int = 0

    def clamp(self) -> "UserSettings":
        self.songs_to_match = max(1, min(100, int(self.songs_to_match)))
        self.interval_days = max(1, min(100, int(self.interval_days)))
        self.schedule_hours = max(0, min(23, int(self.schedule_hours)))
        # Schedules run on the hour or the half hour.
        if self.schedule_minutes not in (0, 30):
            self.schedule_minutes = 0 if self.schedule_minutes < 15 else 30
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "songsToMatch": self.songs_to_match,
            "intervalDays": self.interval_days,
            "scheduleHours": self.schedule_hours,
            "scheduleMinutes": self.schedule_minutes,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "UserSettings":
        defaults = asdict(cls())
        known = {f.name for f in fields(cls)}
        values = {**defaults, **{k: v for k, v in payload.items() if k in known}}
        return cls(**values)


_CAMEL_TO_FIELD = {
    "songsToMatch": "songs_to_match",
    "intervalDays": "interval_days",
    "scheduleHours": "schedule_hours",
    "scheduleMinutes": "schedule_minutes",
}


def settings_patch_from_json(payload: Mapping[str, Any]) -> Dict[str, int]:
    """Translate a camelCase request body into a settings patch, ignoring unknown keys."""
    patch: Dict[str, int] = {}
    for key, value in payload.items():
        name = _CAMEL_TO_FIELD.get(key)
        if name is None:
            continue
        try:
            patch[name] = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{key} must be an integer") from exc
    return patch


class SettingsStore:
    def __init__(self, storage: JSONStorage) -> None:
        self.storage = storage

    @staticmethod
    def _key(user_id: str) -> str:
        return f"settings::{user_id}"

    async def get_settings(self, user_id: str) -> UserSettings:
        return UserSettings.from_dict(await self.storage.get(self._key(user_id)) or {})

    async def save_settings(self, user_id: str, patch: Mapping[str, Any]) -> UserSettings:
        current = await self.get_settings(user_id)
        merged = UserSettings.from_dict({**asdict(current), **patch})
        merged.last_updated = int(time.time() * 1000)
        merged.clamp()
        await self.storage.set(self._key(user_id), asdict(merged))
        return merged

    async def delete_settings(self, user_id: str) -> None:
        await self.storage.delete(self._key(user_id))

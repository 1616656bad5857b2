from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional


class JSONStorage:
    """JSON-file key-value store shared by tokens, history, settings and schedules."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = asyncio.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text("{}", encoding="utf-8")

    async def _read(self) -> Dict[str, Any]:
        def _load() -> Dict[str, Any]:
            try:
                return json.loads(self.path.read_text(encoding="utf-8"))
            except (FileNotFoundError, json.JSONDecodeError):
                return {}

        return await asyncio.to_thread(_load)

    async def _write(self, payload: Dict[str, Any]) -> None:
        def _dump() -> None:
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self.path)

        await asyncio.to_thread(_dump)

    async def get(self, key: str, default: Optional[Any] = None) -> Any:
        async with self._lock:
            data = await self._read()
            return data.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = await self._read()
            data[key] = value
            await self._write(data)

    async def update(self, key: str, func: Callable[[Any], Any], default: Optional[Any] = None) -> Any:
        """Apply ``func`` to the stored value under the lock and persist its result."""
        async with self._lock:
            data = await self._read()
            value = func(data.get(key, default))
            data[key] = value
            await self._write(data)
            return value

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = await self._read()
            if key in data:
                data.pop(key)
                await self._write(data)

    async def keys(self, prefix: str = "") -> List[str]:
        async with self._lock:
            data = await self._read()
            return [key for key in data if key.startswith(prefix)]

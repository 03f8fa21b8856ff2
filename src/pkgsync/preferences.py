"""Persisted user preferences: a small key/value table next to the offline cache.

Like the cache, preferences never raise infrastructure errors. An unreadable
or corrupt value reads as missing and the caller falls back to defaults.
"""

from __future__ import annotations

from typing import TypeVar

import aiosqlite
import structlog
from pydantic import BaseModel, ValidationError

from pkgsync.models import PackageFilter, WindowState

log = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)

_CREATE_PREFERENCES_TABLE = """
CREATE TABLE IF NOT EXISTS preferences (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""

LAST_USED_FILTER_KEY = "last_used_filter"
WINDOW_STATE_KEY = "window_state"


class Preferences:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        await self._db.execute(_CREATE_PREFERENCES_TABLE)
        await self._db.commit()

    async def get(self, key: str) -> str | None:
        try:
            cursor = await self._db.execute("SELECT value FROM preferences WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("preferences_read_error", key=key, exc_info=True)
            return None
        return None if row is None else row[0]

    async def set(self, key: str, value: str) -> None:
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO preferences (key, value) VALUES (?, ?)",
                (key, value),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("preferences_write_error", key=key, exc_info=True)

    async def load_last_used_filter(self) -> PackageFilter | None:
        return await self._load_model(LAST_USED_FILTER_KEY, PackageFilter)

    async def save_last_used_filter(self, package_filter: PackageFilter) -> None:
        await self.set(LAST_USED_FILTER_KEY, package_filter.model_dump_json())

    async def load_window_state(self) -> WindowState | None:
        return await self._load_model(WINDOW_STATE_KEY, WindowState)

    async def save_window_state(self, state: WindowState) -> None:
        await self.set(WINDOW_STATE_KEY, state.model_dump_json())

    async def _load_model(self, key: str, model: type[M]) -> M | None:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError:
            log.warning("preferences_corrupt_value", key=key)
            return None

"""SQLite offline package cache.

Holds the last package list received from the server so a freshly opened
browser can show something before the network answers.

All cache operations catch ``aiosqlite.Error`` internally and degrade
gracefully: read failures return an empty snapshot, write failures are logged
and ignored. Infrastructure errors never cross the OfflineCache boundary.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
import structlog
from pydantic import ValidationError

from pkgsync.models import PackageResult

if TYPE_CHECKING:
    from collections.abc import Iterable

log = structlog.get_logger()

_CREATE_PACKAGE_TABLE = """
CREATE TABLE IF NOT EXISTS offline_packages (
    name      TEXT PRIMARY KEY,
    position  INTEGER NOT NULL,
    payload   TEXT NOT NULL
)
"""

_CREATE_METADATA_TABLE = """
CREATE TABLE IF NOT EXISTS cache_metadata (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


class OfflineCache:
    """Snapshot store for the last server package list."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables. Called once at startup."""
        await self._db.execute(_CREATE_PACKAGE_TABLE)
        await self._db.execute(_CREATE_METADATA_TABLE)
        await self._db.commit()

    async def load(self) -> list[PackageResult]:
        """Read the saved snapshot. Returns ``[]`` on cache miss or read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT name, payload FROM offline_packages ORDER BY position"
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error:
            log.warning("cache_read_error", key="offline_packages", exc_info=True)
            return []

        packages: list[PackageResult] = []
        for name, payload in rows:
            try:
                packages.append(PackageResult.model_validate_json(payload))
            except ValidationError:
                # One bad row should not cost the whole snapshot
                log.warning("cache_corrupt_entry", name=name)
        return packages

    async def save(self, packages: Iterable[PackageResult]) -> None:
        """Replace the snapshot. Non-fatal on failure."""
        rows = [(p.name, position, p.model_dump_json()) for position, p in enumerate(packages)]
        try:
            await self._db.execute("DELETE FROM offline_packages")
            await self._db.executemany(
                "INSERT OR REPLACE INTO offline_packages (name, position, payload) "
                "VALUES (?, ?, ?)",
                rows,
            )
            await self._db.execute(
                "INSERT OR REPLACE INTO cache_metadata (key, value) VALUES ('saved_at', ?)",
                (datetime.now(UTC).isoformat(),),
            )
            await self._db.commit()
            log.info("cache_saved", count=len(rows))
        except aiosqlite.Error:
            log.warning("cache_write_error", key="offline_packages", exc_info=True)

    async def saved_at(self) -> datetime | None:
        """When the snapshot was last written, or ``None`` if never / unreadable."""
        try:
            cursor = await self._db.execute(
                "SELECT value FROM cache_metadata WHERE key = 'saved_at'"
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("cache_read_error", key="saved_at", exc_info=True)
            return None
        if row is None:
            return None
        return datetime.fromisoformat(row[0])

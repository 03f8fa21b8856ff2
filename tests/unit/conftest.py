"""Unit-specific fixtures (no I/O beyond in-memory SQLite)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import pytest

from pkgsync.cache import OfflineCache
from pkgsync.collection import PackageCollection
from pkgsync.preferences import Preferences

if TYPE_CHECKING:
    from tests.conftest import FakeTransport


@pytest.fixture()
async def db():
    async with aiosqlite.connect(":memory:") as connection:
        yield connection


@pytest.fixture()
async def offline_cache(db: aiosqlite.Connection) -> OfflineCache:
    """In-memory SQLite offline cache for unit tests."""
    cache = OfflineCache(db)
    await cache.init_db()
    return cache


@pytest.fixture()
async def preferences(db: aiosqlite.Connection) -> Preferences:
    prefs = Preferences(db)
    await prefs.init_db()
    return prefs


@pytest.fixture()
async def collection(transport: FakeTransport, offline_cache: OfflineCache):
    c = PackageCollection(transport, offline_cache)
    yield c
    await c.aclose()

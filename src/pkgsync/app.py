"""Process-level wiring: one SQLite file, one http client, many browsers.

``open_app`` is the single place where infrastructure is created and torn
down. Browsers are cheap and created per window with ``AppState.new_browser``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from pkgsync.browser import FetchPolicy, PackageBrowser
from pkgsync.cache import OfflineCache
from pkgsync.collection import PackageCollection
from pkgsync.logging_config import configure_logging
from pkgsync.preferences import Preferences
from pkgsync.selection import SelectionManager
from pkgsync.transport import RegistryClient, build_http_client

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

    from pkgsync.config import Settings
    from pkgsync.transport import PackageTransport

log = structlog.get_logger()


@dataclass
class AppState:
    settings: Settings
    transport: PackageTransport
    offline_cache: OfflineCache
    preferences: Preferences
    policy: FetchPolicy = field(default_factory=FetchPolicy)
    http_client: httpx.AsyncClient | None = None
    browsers: list[PackageBrowser] = field(default_factory=list)

    def new_browser(self) -> PackageBrowser:
        collection = PackageCollection(
            self.transport,
            self.offline_cache,
            search_query=self.settings.collection.search_query,
        )
        browser = PackageBrowser(
            collection,
            SelectionManager(collection),
            self.preferences,
            policy=self.policy,
            fetch_on_open=self.settings.collection.fetch_on_open,
        )
        self.browsers.append(browser)
        return browser

    async def aclose(self) -> None:
        for browser in self.browsers:
            await browser.close()
            browser.selection.dispose()
            await browser.collection.aclose()
        self.browsers.clear()


@asynccontextmanager
async def open_app(settings: Settings, configure_logs: bool = True) -> AsyncIterator[AppState]:
    if configure_logs:
        configure_logging(settings.logging)

    db_path = Path(settings.cache.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(db_path) as db:
        offline_cache = OfflineCache(db)
        await offline_cache.init_db()
        preferences = Preferences(db)
        await preferences.init_db()

        async with build_http_client(settings.registry) as client:
            state = AppState(
                settings=settings,
                transport=RegistryClient(client, settings.registry),
                offline_cache=offline_cache,
                preferences=preferences,
                http_client=client,
            )
            log.info("app_started", db_path=str(db_path), registry=settings.registry.url)
            try:
                yield state
            finally:
                await state.aclose()
                log.info("app_stopped")

"""Per-window browser session.

Wires one collection and its selection manager to the preferences store and
exposes the hooks the toolbar, detail view and status bar call into. It
holds the little bits of UI-facing state that are not rendering:
``toolbar_enabled`` and ``status_message``.
"""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING

import structlog

from pkgsync.models import FetchKind, PackageFilter, PackageGroup, WindowState
from pkgsync.signals import Signal, SignalGroup

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from pkgsync.collection import PackageCollection
    from pkgsync.models import Package
    from pkgsync.preferences import Preferences
    from pkgsync.selection import SelectionManager

log = structlog.get_logger()

LOADING_MESSAGE = "Loading packages..."


class FetchPolicy:
    """Fetch suppression shared by every browser of one editor process.

    Browsers register themselves while open. ``skip_fetch`` only gates the
    broadcast refresh; opening or showing a browser clears it.
    """

    def __init__(self, skip_fetch: bool = False) -> None:
        self.skip_fetch = skip_fetch
        self._browsers: weakref.WeakSet[PackageBrowser] = weakref.WeakSet()

    @property
    def browsers(self) -> list[PackageBrowser]:
        return list(self._browsers)

    def register(self, browser: PackageBrowser) -> None:
        self._browsers.add(browser)

    def unregister(self, browser: PackageBrowser) -> None:
        self._browsers.discard(browser)

    def refresh_offline_caches(self) -> int:
        """Re-read the offline cache in every open browser. Returns how many were refreshed."""
        if self.skip_fetch:
            log.debug("offline_refresh_skipped")
            return 0
        browsers = self.browsers
        for browser in browsers:
            browser.collection.fetch_list_offline_cache(force=True)
        return len(browsers)


class PackageBrowser:
    def __init__(
        self,
        collection: PackageCollection,
        selection: SelectionManager,
        preferences: Preferences,
        policy: FetchPolicy | None = None,
        fetch_on_open: bool = True,
    ) -> None:
        self.collection = collection
        self.selection = selection
        self._preferences = preferences
        self._policy = policy or FetchPolicy()
        self._fetch_on_open = fetch_on_open
        self._subscriptions = SignalGroup()
        self._opened_before = False

        self.is_open = False
        self.toolbar_enabled = False
        self.status_message = ""
        self.status_changed = Signal("status_changed")

    async def open(self) -> None:
        if self.is_open:
            return
        state = await self._preferences.load_window_state()
        last_filter = await self._preferences.load_last_used_filter()

        collection = self.collection
        self._subscriptions.connect(collection.packages_changed, self._on_packages_changed)
        self._subscriptions.connect(collection.update_time_changed, self._on_update_time_changed)
        self._subscriptions.connect(
            collection.operation_state_changed, self._on_operation_state_changed
        )

        package_filter = last_filter or (state.filter if state else None)
        if package_filter is not None:
            collection.set_filter(package_filter)
        if self._opened_before:
            collection.update_package_collection(refetch_details=True)

        # Filters stay disabled until the first list results arrive
        self.toolbar_enabled = bool(collection.latest_list_packages)

        if state is not None and state.selected is not None:
            self.selection.set_selection(state.selected)

        if self._fetch_on_open:
            collection.fetch_list_offline_cache(force=not collection.is_ongoing(FetchKind.LIST_OFFLINE))
            collection.fetch_list_cache(force=not collection.is_ongoing(FetchKind.LIST))
            collection.fetch_search_cache(force=not collection.is_ongoing(FetchKind.SEARCH))
        collection.trigger_packages_changed()

        self._policy.skip_fetch = False
        self._policy.register(self)
        self.is_open = True
        self._opened_before = True
        log.info("browser_opened", filter=collection.filter.group.value)

    async def close(self) -> None:
        if not self.is_open:
            return
        await self._preferences.save_last_used_filter(self.collection.filter)
        await self._preferences.save_window_state(self.window_state())
        self._subscriptions.dispose()
        self._policy.unregister(self)
        self.is_open = False
        log.info("browser_closed")

    def window_state(self) -> WindowState:
        return WindowState(
            filter=self.collection.filter,
            selected=self.selection.selected or self.selection.pending,
        )

    def show(self, select: str | None = None) -> None:
        """Bring the browser up, optionally selecting a package by name.

        Before the first list load the selection waits for the package to
        appear. Afterwards only a displayed package is selected.
        """
        self._policy.skip_fetch = False
        if select is not None:
            loaded = bool(self.collection.latest_list_packages)
            self.selection.set_selection(select, defer=not loaded)

    # ------------------------------------------------------------------
    # Toolbar / detail view / status bar hooks
    # ------------------------------------------------------------------

    def check_internet_reachability(self) -> None:
        self.collection.fetch_search_cache(force=True)
        self.collection.fetch_list_cache(force=True)

    def close_error(self, package_id: str) -> None:
        self.collection.remove_package_errors(package_id)
        self.collection.update_package_collection()

    def report_operation_error(self, package_id: str, message: str) -> None:
        self.collection.add_package_error(package_id, message)
        self.collection.update_package_collection()

    def set_group(self, group: PackageGroup) -> None:
        self._update_filter(group=group)

    def set_search_text(self, search_text: str) -> None:
        self._update_filter(search_text=search_text)

    def set_include_preview(self, include_preview: bool) -> None:
        self._update_filter(include_preview=include_preview)

    def _update_filter(self, **changes: object) -> None:
        current = self.collection.filter
        self.collection.set_filter(PackageFilter(**{**current.model_dump(), **changes}))

    # ------------------------------------------------------------------
    # Signal handlers
    # ------------------------------------------------------------------

    def _on_packages_changed(self, package_filter: PackageFilter, packages: Sequence[Package]) -> None:
        if not self.toolbar_enabled and self.collection.latest_list_packages:
            self.toolbar_enabled = True

    def _on_update_time_changed(self, update_time: datetime) -> None:
        self._refresh_status()

    def _on_operation_state_changed(self, kind: FetchKind, ongoing: bool) -> None:
        if kind is FetchKind.LIST and not ongoing:
            # Even a failed list load must leave the retry affordances usable
            self.toolbar_enabled = True
        self._refresh_status()

    def _refresh_status(self) -> None:
        collection = self.collection
        if collection.is_ongoing(FetchKind.LIST) or collection.is_ongoing(FetchKind.SEARCH):
            message = LOADING_MESSAGE
        elif error := (
            collection.operation_error(FetchKind.LIST)
            or collection.operation_error(FetchKind.SEARCH)
        ):
            message = f"Cannot load packages: {error.message}"
        elif collection.last_update_time is not None:
            message = f"Last update {collection.last_update_time:%b %d, %H:%M}"
        else:
            message = ""
        if message != self.status_message:
            self.status_message = message
            self.status_changed.emit(message)

"""Package collection: owns the store, the fetch trackers and the active filter.

Everything runs on one asyncio event loop. Fetch completions are merged as
they arrive, in whatever order; observers hear about it through the signals
below, each of which fires at most once per state transition:

``packages_changed(filter, packages)``
    The filtered view (or a package in it) changed.
``filter_changed(filter)``
    ``set_filter`` replaced the filter. Followed by ``packages_changed``.
``update_time_changed(datetime)``
    A server fetch (list or search) merged successfully.
``operation_state_changed(kind, ongoing)``
    A tracker started or finished. On failure the error is available
    from ``operation_error(kind)``.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Callable

import structlog

from pkgsync.filtering import apply_filter
from pkgsync.models import ErrorSeverity, FetchKind, PackageError, PackageFilter
from pkgsync.operation import OperationTracker, sequence_counter
from pkgsync.signals import Signal
from pkgsync.store import PackageStore

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from pkgsync.cache import OfflineCache
    from pkgsync.errors import PkgSyncError
    from pkgsync.models import Package, PackageResult
    from pkgsync.operation import OperationOutcome
    from pkgsync.transport import PackageTransport

log = structlog.get_logger()


class PackageCollection:
    def __init__(
        self,
        transport: PackageTransport,
        offline_cache: OfflineCache,
        package_filter: PackageFilter | None = None,
        search_query: str = "",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._transport = transport
        self._offline_cache = offline_cache
        self._search_query = search_query
        self._clock = clock or (lambda: datetime.now(UTC))
        self._store = PackageStore()
        self._filter = package_filter or PackageFilter()
        self._view: tuple[Package, ...] = ()
        self._background: set[asyncio.Task[None]] = set()
        self.last_update_time: datetime | None = None

        self.packages_changed = Signal("packages_changed")
        self.filter_changed = Signal("filter_changed")
        self.update_time_changed = Signal("update_time_changed")
        self.operation_state_changed = Signal("operation_state_changed")

        next_sequence = sequence_counter()
        self._trackers = {
            FetchKind.LIST: OperationTracker(FetchKind.LIST, transport.fetch_list, next_sequence),
            FetchKind.LIST_OFFLINE: OperationTracker(
                FetchKind.LIST_OFFLINE, offline_cache.load, next_sequence
            ),
            FetchKind.SEARCH: OperationTracker(FetchKind.SEARCH, self._fetch_search, next_sequence),
        }
        for tracker in self._trackers.values():
            tracker.finished.connect(self._on_operation_finished)
            tracker.state_changed.connect(self.operation_state_changed.emit)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def filter(self) -> PackageFilter:
        return self._filter

    @property
    def packages(self) -> tuple[Package, ...]:
        """The current filtered view."""
        return self._view

    @property
    def all_packages(self) -> tuple[Package, ...]:
        return self._store.packages()

    @property
    def latest_list_packages(self) -> tuple[Package, ...]:
        """Packages reported by a list fetch, online or offline."""
        return self._store.latest(FetchKind.LIST, FetchKind.LIST_OFFLINE)

    @property
    def is_loading(self) -> bool:
        return any(tracker.is_ongoing() for tracker in self._trackers.values())

    def get_package(self, package_id: str) -> Package | None:
        return self._store.get(package_id)

    def is_ongoing(self, kind: FetchKind) -> bool:
        return self._trackers[kind].is_ongoing()

    def operation_error(self, kind: FetchKind) -> PkgSyncError | None:
        return self._trackers[kind].last_error

    def tracker(self, kind: FetchKind) -> OperationTracker:
        return self._trackers[kind]

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def fetch_list_cache(self, force: bool = False) -> asyncio.Task[Any]:
        return self._trackers[FetchKind.LIST].start(force)

    def fetch_list_offline_cache(self, force: bool = False) -> asyncio.Task[Any]:
        return self._trackers[FetchKind.LIST_OFFLINE].start(force)

    def fetch_search_cache(self, force: bool = False) -> asyncio.Task[Any]:
        return self._trackers[FetchKind.SEARCH].start(force)

    async def wait_idle(self) -> None:
        """Wait until no fetch is ongoing."""
        while self.is_loading:
            await asyncio.gather(*(tracker.wait() for tracker in self._trackers.values()))

    async def aclose(self) -> None:
        for tracker in self._trackers.values():
            await tracker.aclose()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _fetch_search(self) -> list[PackageResult]:
        return await self._transport.fetch_search(self._search_query)

    def _on_operation_finished(self, outcome: OperationOutcome) -> None:
        if outcome.result is None:
            # Store untouched; the tracker keeps the error for the status bar.
            return

        changed = self._store.merge(outcome.result)
        log.debug("packages_merged", kind=outcome.kind.value, changed=len(changed))

        if outcome.kind is FetchKind.LIST:
            self._spawn(self._offline_cache.save(outcome.result.packages))
        if outcome.kind.is_server:
            self.last_update_time = self._clock()
            self.update_time_changed.emit(self.last_update_time)
        if changed:
            self._refresh_view(emit=False)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # Local mutations
    # ------------------------------------------------------------------

    def set_filter(self, package_filter: PackageFilter) -> bool:
        if package_filter == self._filter:
            return False
        self._filter = package_filter
        log.debug("filter_changed", **package_filter.model_dump(mode="json"))
        self.filter_changed.emit(package_filter)
        self._refresh_view(emit=True)
        return True

    def add_package_error(
        self,
        package_id: str,
        error: PackageError | str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ) -> None:
        """Attach an error to a loaded package. Raises ``PkgSyncError`` if unknown."""
        if isinstance(error, str):
            error = PackageError(package_id=package_id, message=error, severity=severity)
        self._store.add_error(package_id, error)
        log.info("package_error_added", package=package_id, message=error.message)
        self._refresh_view(emit=True)

    def remove_package_errors(self, package_id: str) -> bool:
        if not self._store.remove_errors(package_id):
            return False
        log.info("package_errors_cleared", package=package_id)
        self._refresh_view(emit=True)
        return True

    def remove_package(self, package_id: str) -> bool:
        """Forget the installed-state contribution of ``package_id`` after an uninstall.

        The package stays visible if the registry search still reports it.
        """
        removed = self._store.remove_source(package_id, FetchKind.LIST)
        removed = self._store.remove_source(package_id, FetchKind.LIST_OFFLINE) or removed
        if removed:
            self._refresh_view(emit=True)
        return removed

    def update_package_collection(self, refetch_details: bool = False) -> None:
        """Recompute the view without any fetch.

        Emits only when the view changed, unless ``refetch_details`` asks every
        observer to re-read the packages anyway.
        """
        self._refresh_view(emit=refetch_details)

    def trigger_packages_changed(self) -> None:
        self._refresh_view(emit=True)

    def _refresh_view(self, emit: bool) -> None:
        view = apply_filter(self._store.packages(), self._filter)
        if view == self._view and not emit:
            return
        self._view = view
        self.packages_changed.emit(self._filter, view)

"""Selection manager.

Tracks the selected package identity independently of the list contents.
A selection request for a package that is not displayed yet is parked as
*pending* and resolved by the first ``packages_changed`` that shows it. If
every fetch finishes without the package ever appearing, the pending request
is dropped without notice.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from pkgsync.signals import Signal, SignalGroup

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pkgsync.collection import PackageCollection
    from pkgsync.models import FetchKind, Package, PackageFilter

log = structlog.get_logger()


class SelectionManager:
    def __init__(self, collection: PackageCollection | None = None) -> None:
        self._collection: PackageCollection | None = None
        self._selected: str | None = None
        self._pending: str | None = None
        self._subscriptions = SignalGroup()

        self.selection_changed = Signal("selection_changed")

        if collection is not None:
            self.set_collection(collection)

    @property
    def selected(self) -> str | None:
        return self._selected

    @property
    def pending(self) -> str | None:
        return self._pending

    def set_collection(self, collection: PackageCollection) -> None:
        self._subscriptions.dispose()
        self._collection = collection
        self._subscriptions.connect(collection.packages_changed, self._on_packages_changed)
        self._subscriptions.connect(
            collection.operation_state_changed, self._on_operation_state_changed
        )

    def set_selection(self, package_id: str | None, defer: bool = True) -> None:
        """Select ``package_id``, or park it until a load displays it.

        With ``defer=False`` a package that is not displayed is ignored.
        """
        if package_id is None:
            self._pending = None
            self._select(None)
        elif self._is_displayed(package_id):
            self._pending = None
            self._select(package_id)
        elif not defer:
            log.debug("selection_unavailable", package=package_id)
            self._pending = None
        else:
            log.debug("selection_deferred", package=package_id)
            self._pending = package_id

    def trigger_new_selection(self) -> None:
        """Re-validate the selection against the latest view."""
        if self._selected is not None and not self._is_displayed(self._selected):
            self._select(None)

    def dispose(self) -> None:
        self._subscriptions.dispose()
        self._collection = None

    def _is_displayed(self, package_id: str) -> bool:
        if self._collection is None:
            return False
        return any(package.name == package_id for package in self._collection.packages)

    def _select(self, package_id: str | None) -> None:
        if package_id == self._selected:
            return
        self._selected = package_id
        self.selection_changed.emit(package_id)

    def _on_packages_changed(
        self, package_filter: PackageFilter, packages: Sequence[Package]
    ) -> None:
        if self._pending is not None and any(p.name == self._pending for p in packages):
            pending, self._pending = self._pending, None
            log.debug("selection_resolved", package=pending)
            self._select(pending)
        self.trigger_new_selection()

    def _on_operation_state_changed(self, kind: FetchKind, ongoing: bool) -> None:
        if ongoing or self._pending is None or self._collection is None:
            return
        if self._collection.is_loading:
            return
        if not self._is_displayed(self._pending):
            log.debug("selection_dropped", package=self._pending)
            self._pending = None

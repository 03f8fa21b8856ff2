"""Unit tests for pkgsync.selection."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from pkgsync.models import PackageFilter, PackageResult
from pkgsync.selection import SelectionManager

if TYPE_CHECKING:
    from pkgsync.collection import PackageCollection
    from tests.conftest import FakeTransport


@pytest.fixture()
async def selection(collection: PackageCollection):
    manager = SelectionManager(collection)
    yield manager
    manager.dispose()


@pytest.fixture()
async def changes(selection: SelectionManager) -> list[str | None]:
    recorded: list[str | None] = []
    selection.selection_changed.connect(recorded.append)
    return recorded


async def _settle() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


class TestImmediateSelection:
    async def test_select_displayed_package(
        self,
        collection: PackageCollection,
        transport: FakeTransport,
        selection: SelectionManager,
        changes: list[str | None],
    ) -> None:
        transport.list.immediate = [PackageResult(name="pkg.x")]
        await collection.fetch_list_cache()

        selection.set_selection("pkg.x")
        selection.set_selection("pkg.x")

        assert selection.selected == "pkg.x"
        assert selection.pending is None
        assert changes == ["pkg.x"]

    async def test_clear_selection(
        self,
        collection: PackageCollection,
        transport: FakeTransport,
        selection: SelectionManager,
        changes: list[str | None],
    ) -> None:
        transport.list.immediate = [PackageResult(name="pkg.x")]
        await collection.fetch_list_cache()
        selection.set_selection("pkg.x")

        selection.set_selection(None)

        assert selection.selected is None
        assert changes == ["pkg.x", None]

    async def test_selection_dropped_when_package_leaves_view(
        self,
        collection: PackageCollection,
        transport: FakeTransport,
        selection: SelectionManager,
        changes: list[str | None],
    ) -> None:
        transport.list.immediate = [PackageResult(name="pkg.x"), PackageResult(name="pkg.y")]
        await collection.fetch_list_cache()
        selection.set_selection("pkg.x")

        collection.set_filter(PackageFilter(search_text="pkg.y"))

        assert selection.selected is None
        assert changes == ["pkg.x", None]


class TestPendingSelection:
    async def test_pending_resolved_by_later_load(
        self,
        collection: PackageCollection,
        transport: FakeTransport,
        selection: SelectionManager,
        changes: list[str | None],
    ) -> None:
        selection.set_selection("pkg.x")
        assert selection.pending == "pkg.x"
        assert changes == []

        collection.fetch_list_cache()
        await _settle()
        transport.list.resolve([PackageResult(name="pkg.x")])
        await collection.wait_idle()

        assert selection.selected == "pkg.x"
        assert selection.pending is None
        assert changes == ["pkg.x"]

    async def test_pending_survives_unrelated_load_while_still_loading(
        self,
        collection: PackageCollection,
        transport: FakeTransport,
        selection: SelectionManager,
        changes: list[str | None],
    ) -> None:
        selection.set_selection("pkg.x")
        collection.fetch_list_cache()
        collection.fetch_search_cache()
        await _settle()

        transport.list.resolve([PackageResult(name="pkg.a")])
        await _settle()
        assert selection.pending == "pkg.x"

        transport.search.resolve([PackageResult(name="pkg.x")])
        await collection.wait_idle()

        assert selection.selected == "pkg.x"
        assert changes == ["pkg.x"]

    async def test_pending_dropped_silently_when_never_loaded(
        self,
        collection: PackageCollection,
        transport: FakeTransport,
        selection: SelectionManager,
        changes: list[str | None],
    ) -> None:
        selection.set_selection("pkg.x")
        transport.list.immediate = [PackageResult(name="pkg.a")]

        await collection.fetch_list_cache()

        assert selection.pending is None
        assert selection.selected is None
        assert changes == []

        # A later load of the package no longer selects it
        transport.list.immediate = [PackageResult(name="pkg.x")]
        await collection.fetch_list_cache()
        assert selection.selected is None

    async def test_no_defer_ignores_hidden_package(
        self, selection: SelectionManager, changes: list[str | None]
    ) -> None:
        selection.set_selection("pkg.x", defer=False)
        assert selection.pending is None
        assert selection.selected is None
        assert changes == []

    async def test_clearing_selection_clears_pending(
        self, selection: SelectionManager, changes: list[str | None]
    ) -> None:
        selection.set_selection("pkg.x")
        selection.set_selection(None)
        assert selection.pending is None
        assert changes == []


class TestSubscriptions:
    async def test_set_collection_moves_subscriptions(
        self,
        collection: PackageCollection,
        selection: SelectionManager,
    ) -> None:
        before = collection.packages_changed.handler_count
        selection.dispose()
        assert collection.packages_changed.handler_count == before - 1

        selection.set_collection(collection)
        assert collection.packages_changed.handler_count == before

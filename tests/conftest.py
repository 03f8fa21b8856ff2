"""Shared fixtures: sample package results and a controllable fake transport."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from pkgsync.errors import PkgSyncError
from pkgsync.models import InstallState, PackageResult


class FakeEndpoint:
    """One transport call site.

    With ``immediate`` set, calls return (or raise) it straight away. Otherwise
    each call parks on a future that the test resolves with ``resolve``/``fail``.
    """

    def __init__(self) -> None:
        self.call_count = 0
        self.arguments: list[Any] = []
        self.pending: list[asyncio.Future[list[PackageResult]]] = []
        self.immediate: list[PackageResult] | PkgSyncError | None = None

    async def __call__(self, *args: Any) -> list[PackageResult]:
        self.call_count += 1
        self.arguments.append(args)
        if isinstance(self.immediate, PkgSyncError):
            raise self.immediate
        if self.immediate is not None:
            return list(self.immediate)
        future: asyncio.Future[list[PackageResult]] = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future

    def resolve(self, packages: list[PackageResult], call: int = -1) -> None:
        self.pending[call].set_result(packages)

    def fail(self, error: BaseException, call: int = -1) -> None:
        self.pending[call].set_exception(error)


class FakeTransport:
    def __init__(self) -> None:
        self.list = FakeEndpoint()
        self.search = FakeEndpoint()

    async def fetch_list(self) -> list[PackageResult]:
        return await self.list()

    async def fetch_search(self, query: str) -> list[PackageResult]:
        return await self.search(query)


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def sample_results() -> list[PackageResult]:
    return [
        PackageResult(
            name="com.example.textmesh",
            display_name="TextMesh",
            description="Advanced text rendering",
            category="UI",
            versions=("2.0.0", "2.1.0"),
            installed_version="2.1.0",
            install_state=InstallState.INSTALLED,
        ),
        PackageResult(
            name="com.example.analytics",
            display_name="Analytics Library",
            versions=("3.2.1",),
            install_state=InstallState.INSTALLED_AS_DEPENDENCY,
            installed_version="3.2.1",
        ),
        PackageResult(
            name="com.example.physics",
            display_name="Physics",
            is_module=True,
            install_state=InstallState.INSTALLED,
        ),
        PackageResult(
            name="com.example.vectors",
            display_name="Vector Graphics",
            versions=("0.1.0-preview.2",),
            is_preview=True,
        ),
    ]

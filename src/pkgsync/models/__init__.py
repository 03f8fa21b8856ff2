from __future__ import annotations

from pkgsync.models.filter import PackageFilter, PackageGroup, WindowState
from pkgsync.models.package import (
    ErrorSeverity,
    FetchKind,
    FetchResult,
    InstallState,
    Package,
    PackageError,
    PackageResult,
)

__all__ = [
    # package
    "ErrorSeverity",
    "FetchKind",
    "FetchResult",
    "InstallState",
    "Package",
    "PackageError",
    "PackageResult",
    # filter
    "PackageFilter",
    "PackageGroup",
    "WindowState",
]

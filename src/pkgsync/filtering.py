"""View filtering: a pure function of the store contents and the active filter."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pkgsync.models import InstallState, PackageGroup

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pkgsync.models import Package, PackageFilter


def matches_group(package: Package, group: PackageGroup) -> bool:
    if group is PackageGroup.MODULES:
        return package.is_module
    if package.is_module:
        return False
    if group is PackageGroup.IN_PROJECT:
        return package.install_state is not InstallState.NOT_INSTALLED
    return True


def matches_search(package: Package, search_text: str) -> bool:
    needle = search_text.strip().casefold()
    if not needle:
        return True
    return needle in package.name.casefold() or needle in package.display_name.casefold()


def apply_filter(packages: Iterable[Package], package_filter: PackageFilter) -> tuple[Package, ...]:
    """Return the packages visible under ``package_filter``.

    Predicates run in order: group, preview inclusion, search text. The result
    is sorted by display name (case-insensitive), ties broken by identity.
    """
    visible = [
        package
        for package in packages
        if matches_group(package, package_filter.group)
        and (package_filter.include_preview or not package.is_preview)
        and matches_search(package, package_filter.search_text)
    ]
    visible.sort(key=lambda p: (p.display_name.casefold(), p.name))
    return tuple(visible)

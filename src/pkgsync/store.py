"""Authoritative package store.

Each package identity keeps one slot per source (list, offline list, search).
A slot is only replaced by a fetch started at or after the one that filled it,
so merging completions in any order converges on the same contents and
merging the same result twice is a no-op. The visible record is derived from
the slots with a fixed source precedence.

Errors live beside the slots, keyed by identity. Merging never touches them;
only ``remove_errors`` (or removing the whole record) clears them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pkgsync.errors import ErrorCode, PkgSyncError
from pkgsync.models import FetchKind, FetchResult, Package, PackageError, PackageResult

# Highest precedence first
_PRECEDENCE = (FetchKind.LIST, FetchKind.LIST_OFFLINE, FetchKind.SEARCH)

_VERSION_SEPARATORS = re.compile(r"[.\-+]")


def _version_key(version: str) -> tuple[tuple[int, int, str], ...]:
    parts = _VERSION_SEPARATORS.split(version)
    return tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in parts)


def sort_versions(versions: set[str]) -> tuple[str, ...]:
    """Order versions numerically per dotted component, e.g. 1.9.0 < 1.10.0."""
    return tuple(sorted(versions, key=lambda v: (_version_key(v), v)))


@dataclass(frozen=True)
class _Slot:
    sequence: int
    record: PackageResult


def _combine(slots: dict[FetchKind, _Slot]) -> PackageResult:
    records = [slots[kind].record for kind in _PRECEDENCE if kind in slots]
    primary = records[0]
    versions: set[str] = set()
    for record in records:
        versions.update(record.versions)
    return primary.model_copy(
        update={
            "description": next((r.description for r in records if r.description), ""),
            "category": next((r.category for r in records if r.category), ""),
            "versions": sort_versions(versions),
        }
    )


class PackageStore:
    """Identity-keyed package records merged from every fetch source."""

    def __init__(self) -> None:
        self._slots: dict[str, dict[FetchKind, _Slot]] = {}
        self._records: dict[str, PackageResult] = {}
        self._errors: dict[str, list[PackageError]] = {}

    def __contains__(self, package_id: object) -> bool:
        return package_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def merge(self, result: FetchResult) -> frozenset[str]:
        """Upsert every record of ``result``.

        Returns the identities whose visible fields changed.
        """
        changed: set[str] = set()
        for record in result.packages:
            slots = self._slots.setdefault(record.name, {})
            current = slots.get(result.kind)
            if current is not None and current.sequence > result.sequence:
                continue
            slots[result.kind] = _Slot(sequence=result.sequence, record=record)
            combined = _combine(slots)
            if self._records.get(record.name) != combined:
                self._records[record.name] = combined
                changed.add(record.name)
        return frozenset(changed)

    def remove_source(self, package_id: str, kind: FetchKind) -> bool:
        """Drop one source's contribution; the record goes once no source is left."""
        slots = self._slots.get(package_id)
        if not slots or kind not in slots:
            return False
        del slots[kind]
        if not slots:
            del self._slots[package_id]
            del self._records[package_id]
            self._errors.pop(package_id, None)
            return True
        combined = _combine(slots)
        if self._records[package_id] == combined:
            return False
        self._records[package_id] = combined
        return True

    def add_error(self, package_id: str, error: PackageError) -> None:
        if package_id not in self._records:
            raise PkgSyncError(
                ErrorCode.UNKNOWN_PACKAGE,
                f"Cannot attach an error to unknown package {package_id!r}",
            )
        self._errors.setdefault(package_id, []).append(error)

    def remove_errors(self, package_id: str) -> bool:
        """Clear every error of ``package_id``. Returns whether any was removed."""
        return bool(self._errors.pop(package_id, None))

    def errors(self, package_id: str) -> tuple[PackageError, ...]:
        return tuple(self._errors.get(package_id, ()))

    def get(self, package_id: str) -> Package | None:
        record = self._records.get(package_id)
        if record is None:
            return None
        return self._package(record)

    def packages(self) -> tuple[Package, ...]:
        return tuple(self._package(record) for record in self._records.values())

    def latest(self, *kinds: FetchKind) -> tuple[Package, ...]:
        """Packages that any of the given sources has contributed to."""
        return tuple(
            self._package(self._records[package_id])
            for package_id, slots in self._slots.items()
            if any(kind in slots for kind in kinds)
        )

    def _package(self, record: PackageResult) -> Package:
        return Package(**record.model_dump(), errors=self.errors(record.name))

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class PackageGroup(StrEnum):
    ALL = "all"
    IN_PROJECT = "in_project"
    MODULES = "modules"


class PackageFilter(BaseModel):
    """Active view criteria. Replaced wholesale, never mutated."""

    model_config = ConfigDict(frozen=True)

    group: PackageGroup = PackageGroup.ALL
    search_text: str = ""
    include_preview: bool = False


class WindowState(BaseModel):
    """Per-window state persisted across editor reloads."""

    filter: PackageFilter = PackageFilter()
    selected: str | None = None

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class InstallState(StrEnum):
    NOT_INSTALLED = "not_installed"
    INSTALLED = "installed"
    INSTALLED_AS_DEPENDENCY = "installed_as_dependency"


class ErrorSeverity(StrEnum):
    WARNING = "warning"
    ERROR = "error"


class FetchKind(StrEnum):
    LIST = "list"
    LIST_OFFLINE = "list_offline"
    SEARCH = "search"

    @property
    def is_server(self) -> bool:
        return self is not FetchKind.LIST_OFFLINE


class PackageError(BaseModel):
    """A semantic error attached to one package (e.g. a failed install)."""

    model_config = ConfigDict(frozen=True)

    package_id: str
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR


class PackageResult(BaseModel):
    """Single package record as delivered by one data source."""

    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str = ""
    description: str = ""
    category: str = ""
    versions: tuple[str, ...] = ()
    installed_version: str | None = None
    install_state: InstallState = InstallState.NOT_INSTALLED
    is_module: bool = False
    is_preview: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("package name must not be empty")
        return v

    @model_validator(mode="before")
    @classmethod
    def default_display_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("display_name"):
            return {**data, "display_name": str(data.get("name", "")).strip()}
        return data


class Package(PackageResult):
    """Merged record handed to observers. Read-only."""

    errors: tuple[PackageError, ...] = ()

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


class FetchResult(BaseModel):
    """Outcome of one successful fetch, tagged with its start sequence."""

    model_config = ConfigDict(frozen=True)

    kind: FetchKind
    packages: tuple[PackageResult, ...] = ()
    sequence: int = 0

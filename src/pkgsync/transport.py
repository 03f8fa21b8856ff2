"""Registry transport: the remote list and search calls.

The collection only relies on ``PackageTransport``; ``RegistryClient`` is the
httpx-backed implementation. Every failure is raised as ``PkgSyncError`` so
that the operation tracker can deliver it as a value. Request timeouts are
owned here (by the http client), never by the collection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from pkgsync.errors import ErrorCode, PkgSyncError
from pkgsync.models import PackageResult

if TYPE_CHECKING:
    from pkgsync.config import RegistrySettings

log = structlog.get_logger()


class PackageTransport(Protocol):
    async def fetch_list(self) -> list[PackageResult]: ...

    async def fetch_search(self, query: str) -> list[PackageResult]: ...


class _PackagesPayload(BaseModel):
    packages: list[PackageResult] = []


def build_http_client(settings: RegistrySettings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.timeout_seconds),
        follow_redirects=True,
        headers={"Accept": "application/json"},
    )


class RegistryClient:
    """``PackageTransport`` over the registry's JSON endpoints."""

    def __init__(self, client: httpx.AsyncClient, settings: RegistrySettings) -> None:
        self._client = client
        self._base_url = settings.url.rstrip("/")

    async def fetch_list(self) -> list[PackageResult]:
        return await self._get("/-/list")

    async def fetch_search(self, query: str) -> list[PackageResult]:
        return await self._get("/-/search", params={"text": query})

    async def _get(self, path: str, params: dict[str, str] | None = None) -> list[PackageResult]:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            log.warning("registry_request_error", url=url, error=str(exc))
            raise PkgSyncError(
                ErrorCode.REGISTRY_UNAVAILABLE,
                f"Could not reach the package registry: {exc}",
                recoverable=True,
            ) from exc

        if response.status_code >= 500:
            raise PkgSyncError(
                ErrorCode.REGISTRY_UNAVAILABLE,
                f"Registry returned HTTP {response.status_code} for {path}",
                recoverable=True,
            )
        if not response.is_success:
            raise PkgSyncError(
                ErrorCode.REGISTRY_REQUEST_FAILED,
                f"Registry returned HTTP {response.status_code} for {path}",
                recoverable=False,
            )

        try:
            payload = _PackagesPayload.model_validate_json(response.content)
        except ValidationError as exc:
            log.warning("registry_invalid_payload", url=url, errors=exc.error_count())
            raise PkgSyncError(
                ErrorCode.INVALID_RESPONSE,
                f"Registry returned an invalid package list for {path}",
                recoverable=False,
            ) from exc
        return payload.packages

"""Integration test fixtures.

Provides settings pointing at a temporary SQLite file and a respx-mocked
registry. ``open_app`` builds the real infrastructure on top of them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
import respx

from pkgsync.config import Settings

if TYPE_CHECKING:
    from pathlib import Path

REGISTRY = "https://registry.test"

LIST_PAYLOAD = {
    "packages": [
        {
            "name": "com.example.textmesh",
            "display_name": "TextMesh",
            "versions": ["2.1.0"],
            "installed_version": "2.1.0",
            "install_state": "installed",
        },
        {
            "name": "com.example.physics",
            "display_name": "Physics",
            "install_state": "installed",
            "is_module": True,
        },
    ]
}

SEARCH_PAYLOAD = {
    "packages": [
        {
            "name": "com.example.textmesh",
            "display_name": "TextMesh",
            "description": "Advanced text rendering",
            "versions": ["2.0.0", "2.1.0", "2.2.0"],
        },
        {"name": "com.example.analytics", "display_name": "Analytics", "versions": ["3.2.1"]},
    ]
}


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        cache={"db_path": str(tmp_path / "nested" / "dir" / "packages.db")},
        registry={"url": REGISTRY},
    )


@pytest.fixture()
def registry():
    with respx.mock(assert_all_called=False) as mock:
        mock.get(f"{REGISTRY}/-/list").mock(return_value=httpx.Response(200, json=LIST_PAYLOAD))
        mock.get(f"{REGISTRY}/-/search").mock(
            return_value=httpx.Response(200, json=SEARCH_PAYLOAD)
        )
        yield mock

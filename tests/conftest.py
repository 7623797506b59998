"""Shared test fixtures for tilehost."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi import FastAPI

from tilehost.definitions.setup import DefinitionSetup
from tilehost.events.registry import EventRegistry
from tilehost.persistence.store import DefinitionStores, open_stores

_ENV_VARS = (
    "TILEHOST_CONFIG",
    "TILEHOST_DEFINITIONS_DIR",
    "TILEHOST_DATABASE_PATH",
    "TILEHOST_HOST",
    "TILEHOST_PORT",
    "TILEHOST_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's TILEHOST_* environment out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def stores(tmp_path: Path) -> DefinitionStores:
    return open_stores(tmp_path / "db" / "definitions.db")


@pytest.fixture
def events() -> EventRegistry:
    return EventRegistry()


@pytest.fixture
def setup(stores: DefinitionStores, events: EventRegistry) -> DefinitionSetup:
    return DefinitionSetup(stores, events)


@pytest.fixture
def definitions_root(tmp_path: Path) -> Path:
    root = tmp_path / "tiles"
    root.mkdir()
    return root


@pytest.fixture
def host_app() -> FastAPI:
    return FastAPI()


def make_definition(
    root: Path,
    name: str,
    *,
    descriptor: dict[str, Any] | str | None = None,
    public: dict[str, str] | None = None,
    routes: dict[str, str] | None = None,
    services: dict[str, str] | None = None,
) -> Path:
    """Create a definition directory under *root*.

    *descriptor* is written as definition.json (a str is written verbatim);
    *public*, *routes* and *services* map relative file names to contents.
    """
    definition_dir = root / name
    definition_dir.mkdir(parents=True)

    if descriptor is not None:
        text = descriptor if isinstance(descriptor, str) else json.dumps(descriptor)
        (definition_dir / "definition.json").write_text(text)

    for base, files in (
        (definition_dir / "public", public),
        (definition_dir / "backend" / "routes", routes),
        (definition_dir / "backend", services),
    ):
        if files is None:
            continue
        base.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = base / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)

    return definition_dir


def http_client(app: FastAPI) -> httpx.AsyncClient:
    """Async HTTP client bound to *app* (no lifespan)."""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

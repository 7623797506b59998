"""Tests for tilehost.services.base_setup - route and service module loading."""

from pathlib import Path

import pytest
from fastapi import FastAPI

from tilehost.errors import ConfigurationError
from tilehost.services.base_setup import BaseSetup

from .conftest import http_client


def _write(base: Path, name: str, content: str) -> Path:
    path = base / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def routes_dir(tmp_path: Path) -> Path:
    d = tmp_path / "backend" / "routes"
    d.mkdir(parents=True)
    return d


class TestSetupRoutes:

    @pytest.mark.asyncio
    async def test_method_handlers_registered_by_file_path(self, routes_dir: Path) -> None:
        _write(routes_dir, "status.py", (
            "from starlette.responses import PlainTextResponse\n"
            "\n"
            "async def get(request):\n"
            "    return PlainTextResponse('up')\n"
            "\n"
            "async def post(request):\n"
            "    return PlainTextResponse('posted')\n"
        ))
        app = FastAPI()
        await BaseSetup().setup_routes(app, "alpha", routes_dir)

        async with http_client(app) as client:
            assert (await client.get("/status")).text == "up"
            assert (await client.post("/status")).text == "posted"

    @pytest.mark.asyncio
    async def test_nested_route_and_path_override(self, routes_dir: Path) -> None:
        _write(routes_dir, "api/items.py", (
            "from starlette.responses import JSONResponse\n"
            "\n"
            "async def handler(request):\n"
            "    return JSONResponse(['a'])\n"
        ))
        _write(routes_dir, "hooks.py", (
            "from starlette.responses import PlainTextResponse\n"
            "\n"
            "path = 'hooks/push'\n"
            "\n"
            "async def post(request):\n"
            "    return PlainTextResponse('ok')\n"
        ))
        app = FastAPI()
        await BaseSetup().setup_routes(app, "alpha", routes_dir)

        async with http_client(app) as client:
            assert (await client.get("/api/items")).json() == ["a"]
            assert (await client.post("/hooks/push")).text == "ok"

    @pytest.mark.asyncio
    async def test_module_router_included(self, routes_dir: Path) -> None:
        _write(routes_dir, "config.py", (
            "from fastapi import APIRouter\n"
            "\n"
            "router = APIRouter()\n"
            "\n"
            "@router.get('/config')\n"
            "async def read_config():\n"
            "    return {'refresh': 30}\n"
        ))
        app = FastAPI()
        await BaseSetup().setup_routes(app, "alpha", routes_dir)

        async with http_client(app) as client:
            assert (await client.get("/config")).json() == {"refresh": 30}

    @pytest.mark.asyncio
    async def test_private_files_skipped(self, routes_dir: Path) -> None:
        _write(routes_dir, "_helpers.py", "raise RuntimeError('never imported')\n")
        app = FastAPI()
        await BaseSetup().setup_routes(app, "alpha", routes_dir)

    @pytest.mark.asyncio
    async def test_sync_handler_raises(self, routes_dir: Path) -> None:
        _write(routes_dir, "bad.py", "def get(request):\n    return None\n")
        with pytest.raises(ConfigurationError, match="must be an async function"):
            await BaseSetup().setup_routes(FastAPI(), "alpha", routes_dir)

    @pytest.mark.asyncio
    async def test_handler_without_params_raises(self, routes_dir: Path) -> None:
        _write(routes_dir, "bad.py", "async def get():\n    return None\n")
        with pytest.raises(ConfigurationError, match="must accept the request"):
            await BaseSetup().setup_routes(FastAPI(), "alpha", routes_dir)

    @pytest.mark.asyncio
    async def test_duplicate_route_raises(self, routes_dir: Path) -> None:
        body = "path = '/same'\n\nasync def get(request):\n    return None\n"
        _write(routes_dir, "a.py", body)
        _write(routes_dir, "b.py", body)
        with pytest.raises(ConfigurationError, match="Duplicate route GET /same"):
            await BaseSetup().setup_routes(FastAPI(), "alpha", routes_dir)

    @pytest.mark.asyncio
    async def test_module_import_error_raises(self, routes_dir: Path) -> None:
        _write(routes_dir, "broken.py", "import definitely_not_a_module_xyz\n")
        with pytest.raises(ConfigurationError, match="Failed to load module"):
            await BaseSetup().setup_routes(FastAPI(), "alpha", routes_dir)


class TestSetupServices:

    @pytest.mark.asyncio
    async def test_event_handlers_passed_to_registrar(self, tmp_path: Path) -> None:
        backend = tmp_path / "backend"
        _write(backend, "events.py", (
            "def on_foo(payload):\n"
            "    return payload\n"
            "\n"
            "event_handlers = [\n"
            "    {'event': 'foo', 'handler': on_foo, 'description': 'Foo handler'},\n"
            "    {'event': 'bar', 'handler': on_foo},\n"
            "]\n"
        ))
        calls = []
        await BaseSetup().setup_services(
            FastAPI(), "alpha", backend, lambda info, name: calls.append((info["event"], name))
        )
        assert calls == [("foo", "alpha"), ("bar", "alpha")]

    @pytest.mark.asyncio
    async def test_routes_subdirectory_not_loaded_as_services(self, tmp_path: Path) -> None:
        backend = tmp_path / "backend"
        _write(backend, "routes/status.py", "event_handlers = [{'event': 'x', 'handler': print}]\n")
        calls = []
        await BaseSetup().setup_services(FastAPI(), "alpha", backend, lambda i, n: calls.append(i))
        assert calls == []

    @pytest.mark.asyncio
    async def test_modules_without_handlers_ignored(self, tmp_path: Path) -> None:
        backend = tmp_path / "backend"
        _write(backend, "util.py", "CONSTANT = 1\n")
        calls = []
        await BaseSetup().setup_services(FastAPI(), "alpha", backend, lambda i, n: calls.append(i))
        assert calls == []

    @pytest.mark.asyncio
    async def test_non_list_event_handlers_raises(self, tmp_path: Path) -> None:
        backend = tmp_path / "backend"
        _write(backend, "events.py", "event_handlers = 'nope'\n")
        with pytest.raises(ConfigurationError, match="must be a list"):
            await BaseSetup().setup_services(FastAPI(), "alpha", backend, lambda i, n: None)

    @pytest.mark.asyncio
    async def test_registrar_errors_propagate(self, tmp_path: Path) -> None:
        backend = tmp_path / "backend"
        _write(backend, "events.py", "event_handlers = [{'handler': print}]\n")

        def registrar(info, name):
            raise ConfigurationError("missing event")

        with pytest.raises(ConfigurationError, match="missing event"):
            await BaseSetup().setup_services(FastAPI(), "alpha", backend, registrar)

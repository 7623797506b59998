"""Default route and service collaborators for definition directories.

Routes live under ``<definition>/backend/routes`` and follow a file-path
convention, relative to the definition's sub-application:

    backend/routes/status.py        -> GET /status
    backend/routes/api/items.py     -> GET /api/items
    backend/routes/hooks.py         -> path = "/hooks/push"  (explicit override)

Handler convention - function names map to HTTP methods::

    async def get(request):      # GET
    async def post(request):     # POST
    async def handler(request):  # GET (catch-all default)

A module may instead export ``router`` (a FastAPI APIRouter), which is
included as is.

Service modules live directly under ``<definition>/backend`` and may export
``event_handlers``: a list of dicts with ``event``, ``handler`` and an
optional ``description``. Each entry is handed to the listener registrar
supplied by the caller.
"""

import importlib.util
import inspect
import logging
import sys
from collections.abc import Callable, Mapping
from pathlib import Path
from types import ModuleType
from typing import Any, Protocol

from fastapi import APIRouter, FastAPI

from tilehost.errors import ConfigurationError

logger = logging.getLogger(__name__)

_METHOD_NAMES: tuple[str, ...] = ("delete", "get", "patch", "post", "put")

_HANDLER_NAME = "handler"

ListenerRegistrar = Callable[[Mapping[str, Any], str], None]


class ServiceSetup(Protocol):
    """What the definition wirer needs from a route/service collaborator."""

    async def setup_routes(self, app: FastAPI, definition_name: str, routes_dir: Path) -> None: ...

    async def setup_services(
        self,
        app: FastAPI,
        definition_name: str,
        services_dir: Path,
        register_listener: ListenerRegistrar,
    ) -> None: ...


class BaseSetup:
    """Loads route and service modules from a definition's backend folder."""

    async def setup_routes(self, app: FastAPI, definition_name: str, routes_dir: Path) -> None:
        """Register every route module under *routes_dir* on *app*.

        Raises:
            ConfigurationError: On unloadable modules, non-async handlers or
                duplicate paths.
        """
        seen: dict[tuple[str, str], Path] = {}
        count = 0

        for py_file in sorted(routes_dir.rglob("*.py")):
            if py_file.name.startswith("_") or "__pycache__" in py_file.parts:
                continue

            module = _load_module(py_file, routes_dir, f"{definition_name}.routes")

            router = getattr(module, "router", None)
            if isinstance(router, APIRouter):
                app.include_router(router)
                count += len(router.routes)
                continue

            path = _route_path(module, py_file, routes_dir)
            for method, func in _route_handlers(module, py_file):
                key = (path, method)
                if key in seen:
                    raise ConfigurationError(
                        f"Duplicate route {method} {path} in definition '{definition_name}': "
                        f"defined in {seen[key]} and {py_file}"
                    )
                seen[key] = py_file
                app.add_route(path, func, methods=[method], name=f"{definition_name}:{method}:{path}")
                count += 1

        logger.info(f"Registered {count} routes for definition '{definition_name}'")

    async def setup_services(
        self,
        app: FastAPI,
        definition_name: str,
        services_dir: Path,
        register_listener: ListenerRegistrar,
    ) -> None:
        """Load service modules in *services_dir* and register their event handlers."""
        for py_file in sorted(services_dir.glob("*.py")):
            if py_file.name.startswith("_"):
                continue

            module = _load_module(py_file, services_dir, f"{definition_name}.services")
            handlers = getattr(module, "event_handlers", None)
            if handlers is None:
                continue
            if not isinstance(handlers, (list, tuple)):
                raise ConfigurationError(
                    f"event_handlers in {py_file} must be a list, got {type(handlers).__name__}"
                )

            for handler_info in handlers:
                if not isinstance(handler_info, Mapping):
                    raise ConfigurationError(
                        f"Event handler entries in {py_file} must be dicts, "
                        f"got {type(handler_info).__name__}"
                    )
                register_listener(handler_info, definition_name)

            logger.debug(f"Loaded {len(handlers)} event handlers from {py_file}")


def _load_module(py_file: Path, base_dir: Path, namespace: str) -> ModuleType:
    """Import a Python file as a module without touching ``sys.path``."""
    relative = py_file.relative_to(base_dir).with_suffix("")
    module_name = f"tilehost_definitions.{namespace}." + ".".join(relative.parts)

    spec = importlib.util.spec_from_file_location(module_name, py_file)
    if spec is None or spec.loader is None:
        raise ConfigurationError(f"Cannot load module {py_file}")

    try:
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise ConfigurationError(f"Failed to load module {py_file}: {e}") from e

    return module


def _route_path(module: ModuleType, py_file: Path, routes_dir: Path) -> str:
    path = getattr(module, "path", None)
    if path is None:
        relative = py_file.relative_to(routes_dir).with_suffix("")
        path = "/" + "/".join(relative.parts)
    elif not isinstance(path, str):
        raise ConfigurationError(
            f"Route module {py_file}: 'path' must be a str, got {type(path).__name__}"
        )
    if not path.startswith("/"):
        path = "/" + path
    return path


def _route_handlers(module: ModuleType, py_file: Path) -> list[tuple[str, Callable]]:
    handlers: list[tuple[str, Callable]] = []
    for method_name in _METHOD_NAMES:
        func = getattr(module, method_name, None)
        if func is not None and callable(func):
            _validate_handler(func, method_name, py_file)
            handlers.append((method_name.upper(), func))

    # Catch-all handler maps to GET unless get() is defined
    func = getattr(module, _HANDLER_NAME, None)
    if func is not None and callable(func) and not any(m == "GET" for m, _ in handlers):
        _validate_handler(func, _HANDLER_NAME, py_file)
        handlers.append(("GET", func))

    return handlers


def _validate_handler(func: Callable, name: str, source: Path) -> None:
    if not inspect.iscoroutinefunction(func):
        raise ConfigurationError(
            f"Route handler '{name}' in {source} must be an async function "
            f"(use 'async def {name}(request)')."
        )
    if len(inspect.signature(func).parameters) < 1:
        raise ConfigurationError(
            f"Route handler '{name}' in {source} must accept the request parameter."
        )

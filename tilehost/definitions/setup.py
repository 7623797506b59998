"""Definition setup - discovers definition directories and wires them into the host app.

For each visible child of the definitions root:

1. Serve ``public/`` under ``/<name>`` from a per-definition sub-application
   with its own Jinja2 template environment rooted at ``public/``
2. Save ``definition.json`` (if any) to the tile or activity-stream store
3. In parallel, register ``backend/routes`` on the sub-application and the
   event handlers declared by ``backend`` service modules

Once every directory is wired, stored records whose directory no longer
exists are removed.

A failure while wiring any one definition is logged and raised as
DefinitionSetupError; the process entry point exits on it.
"""

import asyncio
import logging
import stat
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.templating import Jinja2Templates
from starlette.staticfiles import StaticFiles

from tilehost.definitions.fs import list_dir, path_exists, stat_path
from tilehost.definitions.loader import load_definition_metadata
from tilehost.definitions.schemas import DESCRIPTOR_FILENAME, WiringSummary
from tilehost.errors import ConfigurationError, DefinitionSetupError
from tilehost.events.registry import DEFAULT_LISTENER_DESCRIPTION, EventRegistry
from tilehost.persistence.store import DefinitionStore, DefinitionStores
from tilehost.services.base_setup import BaseSetup, ServiceSetup

logger = logging.getLogger(__name__)

PUBLIC_DIR = "public"
BACKEND_DIR = "backend"
ROUTES_DIR = "routes"


def is_visible_entry(name: str) -> bool:
    """Hidden entries (leading '.') are never definitions."""
    return not name.startswith(".")


class DefinitionSetup:
    """Wires definition directories into a FastAPI host application.

    Route and service loading is delegated to *base* (BaseSetup by default).
    """

    def __init__(
        self,
        stores: DefinitionStores,
        events: EventRegistry,
        base: Optional[ServiceSetup] = None,
    ):
        self.stores = stores
        self.events = events
        self.base = base if base is not None else BaseSetup()

    # ── Per-definition steps ─────────────────────────────

    def register_event_listener(self, handler_info: Mapping[str, Any], definition_name: str) -> None:
        """Register one declared event handler.

        Raises:
            ConfigurationError: If the entry has no event name or no handler.
        """
        event = handler_info.get("event")
        handler = handler_info.get("handler")
        if not event:
            raise ConfigurationError(
                f"Event handler for definition '{definition_name}' must specify an event name."
            )
        if not handler:
            raise ConfigurationError(
                f"Event handler for definition '{definition_name}' must specify a function handler."
            )

        if self.events.is_global_event(event):
            self.events.register_system_listener(event, handler)
        else:
            self.events.register_definition_listener(
                event,
                definition_name,
                handler,
                handler_info.get("description") or DEFAULT_LISTENER_DESCRIPTION,
            )

    async def setup_definition_services(self, app: FastAPI, definition_name: str, services_dir: Path) -> None:
        await self.base.setup_services(app, definition_name, services_dir, self.register_event_listener)

    async def setup_definition_routes(self, definition_app: FastAPI, definition_name: str, routes_dir: Path) -> None:
        await self.base.setup_routes(definition_app, definition_name, routes_dir)

    async def setup_definition_metadata(self, definition_path: Path) -> Optional[dict[str, Any]]:
        return await load_definition_metadata(definition_path, self.stores)

    @staticmethod
    async def create_definition_app(definition_name: str, definition_dir: Path) -> FastAPI:
        """Build the isolated sub-application for one definition.

        Templates resolve against the definition's public/ folder only, and
        requests that match no route fall through to its static files.
        """
        public_dir = definition_dir / PUBLIC_DIR
        definition_app = FastAPI(title=definition_name, openapi_url=None, docs_url=None, redoc_url=None)
        definition_app.state.definition_name = definition_name
        definition_app.state.definition_dir = definition_dir
        definition_app.state.templates = Jinja2Templates(directory=str(public_dir))
        if await path_exists(public_dir):
            definition_app.router.default = StaticFiles(directory=str(public_dir), html=True)
        return definition_app

    async def wire_one_definition(
        self,
        app: FastAPI,
        definition_dir: Path,
        definition_name: Optional[str] = None,
    ) -> bool:
        """Wire one definition directory into *app*.

        The definition name defaults to the directory name. Entries that are
        not directories are skipped.

        Returns:
            True if the directory was wired, False if it was skipped.

        Raises:
            DefinitionSetupError: If any step fails.
        """
        definition_dir = Path(definition_dir)
        definition_name = definition_name or definition_dir.name

        try:
            st = await stat_path(definition_dir)
            if not stat.S_ISDIR(st.st_mode):
                logger.debug(f"Skipping non-directory entry: {definition_dir}")
                return False

            definition_app = await self.create_definition_app(definition_name, definition_dir)
            app.mount(f"/{definition_name}", definition_app, name=definition_name)

            # Route and service handlers may expect the stored definition
            await self.setup_definition_metadata(definition_dir / DESCRIPTOR_FILENAME)

            routes_dir = definition_dir / BACKEND_DIR / ROUTES_DIR
            services_dir = definition_dir / BACKEND_DIR

            async def wire_routes() -> None:
                if await path_exists(routes_dir):
                    await self.setup_definition_routes(definition_app, definition_name, routes_dir)

            async def wire_services() -> None:
                if await path_exists(services_dir):
                    await self.setup_definition_services(app, definition_name, services_dir)

            await asyncio.gather(wire_routes(), wire_services())
        except Exception as e:
            logger.error(f"Failed to setup definition at {definition_name}; {e}")
            raise DefinitionSetupError(definition_name, e) from e

        logger.info(f"Wired definition '{definition_name}' from {definition_dir}")
        return True

    # ── Whole tree ───────────────────────────────────────

    async def wire_all_definitions(self, app: FastAPI, root_dir: Path) -> WiringSummary:
        """Wire every visible entry of *root_dir*, then prune orphaned records.

        A missing root directory is not an error: nothing is wired and
        nothing is pruned.

        Raises:
            DefinitionSetupError: If any definition fails; reconciliation
                does not run in that case.
        """
        root_dir = Path(root_dir)
        summary = WiringSummary()

        if not await path_exists(root_dir):
            logger.warning(f"Definitions directory not found: {root_dir}")
            return summary

        entries = [name for name in await list_dir(root_dir) if is_visible_entry(name)]
        results = await asyncio.gather(
            *(self.wire_one_definition(app, root_dir / name) for name in entries)
        )
        summary.wired = [name for name, wired in zip(entries, results) if wired]
        logger.info(f"Wired {len(summary.wired)} definitions from {root_dir}")

        summary.pruned_tiles, summary.pruned_streams = await self.reconcile(root_dir)
        return summary

    async def reconcile(self, root_dir: Path) -> tuple[list[str], list[str]]:
        """Remove stored definitions whose directory under *root_dir* is gone.

        The tile store is reconciled before the activity-stream store.

        Returns:
            (pruned tile ids, pruned activity-stream ids)
        """
        root_dir = Path(root_dir)
        pruned_tiles = await self._prune_store(self.stores.tiles, root_dir)
        pruned_streams = await self._prune_store(self.stores.streams, root_dir)
        if pruned_tiles or pruned_streams:
            logger.info(
                f"Pruned {len(pruned_tiles)} tile and {len(pruned_streams)} "
                f"activity stream definitions with no directory under {root_dir}"
            )
        return pruned_tiles, pruned_streams

    @staticmethod
    async def _prune_store(store: DefinitionStore, root_dir: Path) -> list[str]:
        records = await store.find_all()

        async def prune(record: dict[str, Any]) -> Optional[str]:
            dir_name = record.get("definitionDirName")
            # Records with no directory link cannot be attributed, keep them
            if not dir_name:
                return None
            if await path_exists(root_dir / dir_name):
                return None
            await store.remove(record["id"])
            return record["id"]

        results = await asyncio.gather(*(prune(record) for record in records))
        return [record_id for record_id in results if record_id is not None]

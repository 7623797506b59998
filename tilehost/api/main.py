"""tilehost API - host application for tile and activity-stream definitions.

Every definition directory under the configured definitions root is mounted
at ``/<definition name>``. The host app itself serves:

- ``GET /`` - service info
- ``GET /health`` - health and definition counts
- ``GET /v1/definitions/tiles`` - stored tile definitions
- ``GET /v1/definitions/streams`` - stored activity-stream definitions
- ``GET /v1/definitions/{id}`` - one stored definition
"""

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from tilehost import __version__
from tilehost.api.routes import definitions
from tilehost.config import ServiceConfig, load_config
from tilehost.definitions.schemas import WiringSummary
from tilehost.definitions.setup import DefinitionSetup
from tilehost.errors import ConfigurationError, DefinitionSetupError
from tilehost.events.registry import EventRegistry
from tilehost.persistence.store import DefinitionStores, open_stores
from tilehost.services.base_setup import ServiceSetup

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


async def wire_definitions(app: FastAPI) -> WiringSummary:
    """Wire every definition under the configured root into *app*."""
    config: ServiceConfig = app.state.config
    logger.info(f"Loading definitions from {config.definitions_dir}...")
    summary = await app.state.definition_setup.wire_all_definitions(app, config.definitions_dir)
    app.state.wiring_summary = summary
    logger.info(
        f"Wired {len(summary.wired)} definitions, pruned {summary.pruned_count} stale records"
    )
    return summary


def create_app(
    config: Optional[ServiceConfig] = None,
    *,
    stores: Optional[DefinitionStores] = None,
    events: Optional[EventRegistry] = None,
    base: Optional[ServiceSetup] = None,
    wire_on_startup: bool = True,
) -> FastAPI:
    """Create the host application.

    With *wire_on_startup*, definitions are wired in the lifespan startup;
    a DefinitionSetupError there aborts the server's startup.
    """
    if config is None:
        config = load_config()
    if stores is None:
        stores = open_stores(config.database_path)
    if events is None:
        events = EventRegistry(config.global_events)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if wire_on_startup:
            await wire_definitions(app)
        logger.info("tilehost API ready")
        yield
        logger.info("Shutting down tilehost API")

    app = FastAPI(
        title="tilehost API",
        description="Hosts tile and activity-stream definitions discovered on disk.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.stores = stores
    app.state.events = events
    app.state.definition_setup = DefinitionSetup(stores, events, base)
    app.state.wiring_summary = WiringSummary()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(definitions.router, prefix="/v1")

    @app.get("/")
    async def root(request: Request):
        """Root endpoint with service info."""
        return {
            "service": "tilehost API",
            "version": __version__,
            "definitions": request.app.state.wiring_summary.wired,
            "endpoints": {
                "tiles": "/v1/definitions/tiles",
                "streams": "/v1/definitions/streams",
            },
        }

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint."""
        stores: DefinitionStores = request.app.state.stores
        return {
            "status": "healthy",
            "definitions_wired": len(request.app.state.wiring_summary.wired),
            "tile_definitions": await stores.tiles.count(),
            "stream_definitions": await stores.streams.count(),
        }

    return app


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tilehost",
        description="Serve tile and activity-stream definitions discovered on disk.",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML config file")
    parser.add_argument("--definitions-dir", type=Path, default=None, help="Definitions root directory")
    parser.add_argument("--host", default=None, help="Bind address")
    parser.add_argument("--port", type=int, default=None, help="Bind port")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point: wire definitions, then serve with uvicorn.

    Exits with status 1 if the configuration is invalid or any definition
    fails to wire.
    """
    args = _build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        configure_logging()
        logger.critical(str(e))
        sys.exit(1)

    overrides = {
        "definitions_dir": args.definitions_dir,
        "host": args.host,
        "port": args.port,
    }
    config = config.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    configure_logging(config.log_level)

    app = create_app(config, wire_on_startup=False)
    try:
        asyncio.run(wire_definitions(app))
    except DefinitionSetupError as e:
        logger.critical(f"Aborting startup: {e}")
        sys.exit(1)

    import uvicorn

    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()

"""API routes for stored tile and activity-stream definitions."""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from tilehost.persistence.store import DefinitionStores

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/definitions", tags=["definitions"])


def _stores(request: Request) -> DefinitionStores:
    return request.app.state.stores


@router.get("/tiles")
async def list_tile_definitions(request: Request) -> list[dict[str, Any]]:
    """List every stored tile definition."""
    return await _stores(request).tiles.find_all()


@router.get("/streams")
async def list_stream_definitions(request: Request) -> list[dict[str, Any]]:
    """List every stored activity-stream definition."""
    return await _stores(request).streams.find_all()


@router.get("/{definition_id}")
async def get_definition(definition_id: str, request: Request) -> dict[str, Any]:
    """Get a stored definition from either store by id."""
    stores = _stores(request)
    for store in (stores.tiles, stores.streams):
        record = await store.get(definition_id)
        if record is not None:
            return record
    raise HTTPException(
        status_code=404,
        detail=f"Definition '{definition_id}' not found",
    )

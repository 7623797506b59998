"""Persistence for tile and activity-stream definition records."""

from tilehost.persistence.store import DefinitionStore, DefinitionStores, open_stores

__all__ = ["DefinitionStore", "DefinitionStores", "open_stores"]

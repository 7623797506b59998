"""Definition discovery, loading and wiring."""

from tilehost.definitions.loader import load_definition_metadata, parse_definition
from tilehost.definitions.schemas import DefinitionMetadata, WiringSummary
from tilehost.definitions.setup import DefinitionSetup

__all__ = [
    "DefinitionMetadata",
    "DefinitionSetup",
    "WiringSummary",
    "load_definition_metadata",
    "parse_definition",
]

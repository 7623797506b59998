"""Definition descriptor schemas.

A definition directory may carry a definition.json descriptor. Only a few
fields matter to the host service; everything else is passed through to
the store untouched, with its original key and value.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# Unresolved template token left in descriptors generated from a skeleton
DEFINITION_ID_PLACEHOLDER = "{{{definition_id}}}"

# Descriptor style routed to the activity-stream store
ACTIVITY_STYLE = "ACTIVITY"

DESCRIPTOR_FILENAME = "definition.json"


class DefinitionMetadata(BaseModel):
    """Parsed contents of a definition.json descriptor."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = Field(
        default=None,
        description="Store identifier; None means the store assigns one on save",
    )
    style: Optional[str] = Field(
        default=None,
        description="ACTIVITY for activity-stream definitions, anything else is a tile",
    )
    definition_dir_name: Optional[str] = Field(
        default=None,
        alias="definitionDirName",
        description="Name of the owning directory; set by the loader, never read from the file",
    )

    @property
    def is_activity_stream(self) -> bool:
        return self.style == ACTIVITY_STYLE

    def to_record(self) -> dict[str, Any]:
        """Serialize to the store record shape (descriptor field names)."""
        record = self.model_dump(by_alias=True)
        if record.get("style") is None:
            record.pop("style", None)
        return record


@dataclass
class WiringSummary:
    """Outcome of one full discovery pass."""

    wired: list[str] = field(default_factory=list)
    pruned_tiles: list[str] = field(default_factory=list)
    pruned_streams: list[str] = field(default_factory=list)

    @property
    def pruned_count(self) -> int:
        return len(self.pruned_tiles) + len(self.pruned_streams)

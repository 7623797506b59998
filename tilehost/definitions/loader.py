"""Definition loader - reads a definition.json and saves it to its store."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from tilehost.definitions.fs import path_exists, read_bytes
from tilehost.definitions.schemas import DEFINITION_ID_PLACEHOLDER, DefinitionMetadata
from tilehost.errors import ConfigurationError
from tilehost.persistence.store import DefinitionStores

logger = logging.getLogger(__name__)


def parse_definition(data: bytes, definition_path: Path) -> DefinitionMetadata:
    """Parse descriptor bytes into DefinitionMetadata.

    The placeholder id is reset to None and definitionDirName is taken from
    the descriptor's parent directory, whatever the file says.

    Raises:
        ConfigurationError: If the file is not a JSON object or fails validation.
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Malformed definition file {definition_path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Definition file {definition_path} must contain a JSON object, "
            f"got {type(raw).__name__}"
        )

    if raw.get("id") == DEFINITION_ID_PLACEHOLDER:
        raw["id"] = None
    raw["definitionDirName"] = definition_path.parent.name

    try:
        return DefinitionMetadata.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid definition file {definition_path}: {e}") from e


async def load_definition_metadata(
    definition_path: Path,
    stores: DefinitionStores,
) -> Optional[dict[str, Any]]:
    """Read a definition descriptor, if present, and save it.

    Activity-stream definitions (style ACTIVITY) go to the stream store,
    everything else to the tile store.

    Returns:
        The saved record with its id, or None when the file does not exist.
    """
    if not await path_exists(definition_path):
        logger.debug(f"No descriptor at {definition_path}")
        return None

    definition = parse_definition(await read_bytes(definition_path), definition_path)

    store = stores.streams if definition.is_activity_stream else stores.tiles
    saved = await store.save(definition.to_record())
    logger.info(
        f"Saved {'activity stream' if definition.is_activity_stream else 'tile'} "
        f"definition '{definition.definition_dir_name}' ({saved['id']})"
    )
    return saved

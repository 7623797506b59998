"""Error types raised while discovering and wiring definitions."""


class TilehostError(Exception):
    """Base error for tilehost."""


class ConfigurationError(TilehostError):
    """A definition or the service configuration is invalid.

    Raised for malformed definition.json files, event handler entries
    missing their event name or handler, and unusable route modules.
    Never retried.
    """


class FilesystemError(TilehostError):
    """A stat or read failed for a reason other than non-existence."""


class StoreError(TilehostError):
    """A definition store operation (save, find_all, remove) failed."""


class DefinitionSetupError(TilehostError):
    """Wiring a single definition directory failed.

    Carries the definition name and the original error. Startup treats it
    as fatal for the whole process.
    """

    def __init__(self, definition_name: str, cause: BaseException):
        self.definition_name = definition_name
        self.cause = cause
        super().__init__(f"Failed to setup definition '{definition_name}': {cause}")

"""Route and service collaborators used when wiring definitions."""

from tilehost.services.base_setup import BaseSetup, ListenerRegistrar, ServiceSetup

__all__ = ["BaseSetup", "ListenerRegistrar", "ServiceSetup"]

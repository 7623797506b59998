"""tilehost HTTP API."""

"""tilehost - definition discovery and wiring service.

Discovers tile and activity-stream definition directories on disk and wires
each one into a FastAPI host application:
- Static assets and a per-definition template environment
- Routes discovered under backend/routes
- Event handlers declared by backend service modules
- Stored definition records, pruned when their directory disappears
"""

__version__ = "0.1.0"

"""
Infrastructure package for the house-edge console.

Centralizes I/O plumbing: the Postgres connection factory and pool, and the
HTTP client used for the admin REST API. Keep this layer focused on transport
and resource management, decoupled from rule semantics.
"""

from edgeconsole.infrastructure.api_client import build_client, request_json
from edgeconsole.infrastructure.db_factory import (
    ensure_schema,
    get_sync_connection,
    get_sync_pool,
)

__all__ = [
    "build_client",
    "ensure_schema",
    "get_sync_connection",
    "get_sync_pool",
    "request_json",
]

"""
Utilities package for the house-edge console.

Exports shared helpers for logging and other cross-cutting concerns.
Keep this package lightweight and free of domain-specific logic.
"""

from edgeconsole.utils.logging import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]

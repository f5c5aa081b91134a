"""
Durability backends for house-edge rules.

This module re-exports the abstract interface and the concrete backends, and
keeps the registry the store bootstrap uses to build the configured one.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from edgeconsole.backends.abstract import AbstractRuleDurabilityStore, RuleDurabilityStore
from edgeconsole.backends.http import HttpRuleStore
from edgeconsole.backends.memory import MemoryRuleStore
from edgeconsole.backends.postgres import PostgresRuleStore
from edgeconsole.config import Settings, get_settings


def _backend_factories(settings: Settings) -> Dict[str, Callable[[], RuleDurabilityStore]]:
    """Registry of available backends."""
    return {
        "memory": lambda: MemoryRuleStore(snapshot_path=settings.snapshot_path),
        "http": lambda: HttpRuleStore(base_url=settings.api_base_url, token=settings.api_token),
        "postgres": lambda: PostgresRuleStore(),
    }


def available_backends() -> List[str]:
    """List available backend names."""
    return sorted(_backend_factories(get_settings()).keys())


def create_backend(name: Optional[str] = None, settings: Optional[Settings] = None) -> RuleDurabilityStore:
    settings = settings or get_settings()
    factories = _backend_factories(settings)
    name = name or settings.store_backend
    if name not in factories:
        raise ValueError(f"Unknown store backend '{name}'. Available: {', '.join(sorted(factories))}")
    return factories[name]()


__all__ = [
    "AbstractRuleDurabilityStore",
    "RuleDurabilityStore",
    "HttpRuleStore",
    "MemoryRuleStore",
    "PostgresRuleStore",
    "available_backends",
    "create_backend",
]

"""
House Edge Console - bulk management of per-game house-edge wager rules.

This package provides the core of an operator console for house-edge rules:

- A percent/fraction codec and criteria matching over game type and variant
- An ordered rule store with pluggable durability backends (memory snapshot,
  REST admin API, PostgreSQL)
- A bulk-mutation engine for single, bulk, apply-to-all and remove-all-matching
  operations, with a synchronous and an asyncio driver
- Search, filtering, sorting, pagination and aggregate stats for the rule list
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from edgeconsole.config import Settings, get_settings
from edgeconsole.domain import (
    CatalogGame,
    GameRef,
    GameType,
    GameVariant,
    HouseEdgeRule,
    RuleCriteria,
    RulePatch,
    RuleTemplate,
    format_percent,
    to_fraction,
    to_percent,
)
from edgeconsole.engine import (
    AsyncBulkMutationEngine,
    BulkMutationEngine,
    CancelToken,
    MutationResult,
    RemovalPlan,
)
from edgeconsole.query import PageRequest, RuleFilters, SortSpec, compute_stats, query_rules
from edgeconsole.store import HouseEdgeStore, open_store
from edgeconsole.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "CatalogGame",
    "GameRef",
    "GameType",
    "GameVariant",
    "HouseEdgeRule",
    "RuleCriteria",
    "RulePatch",
    "RuleTemplate",
    "format_percent",
    "to_fraction",
    "to_percent",
    # Engine
    "AsyncBulkMutationEngine",
    "BulkMutationEngine",
    "CancelToken",
    "MutationResult",
    "RemovalPlan",
    # Store
    "HouseEdgeStore",
    "open_store",
    # Queries
    "PageRequest",
    "RuleFilters",
    "SortSpec",
    "compute_stats",
    "query_rules",
    # Logging
    "configure_logging",
    "get_logger",
]

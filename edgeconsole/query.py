"""
Read-only views over the rule collection: search, filters, sorting,
pagination and the aggregate stats shown above the list.

Everything here is a pure function of its inputs; the list view is simply
re-derived from the store after every mutation.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from edgeconsole.domain.codec import parse_decimal
from edgeconsole.domain.models import GameType, GameVariant, HouseEdgeRule

SortField = Literal["game_type", "game_variant", "house_edge", "created_at", "updated_at"]
SortOrder = Literal["asc", "desc"]


class RuleFilters(BaseModel):
    search: Optional[str] = None
    game_id: Optional[str] = None
    game_type: Optional[GameType] = None
    game_variant: Optional[GameVariant] = None
    is_active: Optional[bool] = None

    model_config = {"frozen": True}


class SortSpec(BaseModel):
    sort_by: SortField = "created_at"
    sort_order: SortOrder = "desc"

    model_config = {"frozen": True}


class PageRequest(BaseModel):
    page: int = 1
    per_page: int = Field(default=10, ge=1)

    model_config = {"frozen": True}


@dataclass(frozen=True)
class RulePage:
    items: List[HouseEdgeRule]
    total: int
    page: int
    per_page: int
    total_pages: int


@dataclass(frozen=True)
class RuleStats:
    total: int
    active: int
    inactive: int
    unique_game_types: int
    unique_game_variants: int


_SORT_KEYS: Dict[str, Callable[[HouseEdgeRule], Any]] = {
    "game_type": lambda rule: rule.game_type.value,
    "game_variant": lambda rule: rule.game_variant.value,
    "house_edge": lambda rule: parse_decimal(rule.house_edge, field="house_edge"),
    "created_at": lambda rule: rule.created_at,
    "updated_at": lambda rule: rule.updated_at,
}


def _matches_search(rule: HouseEdgeRule, needle: str) -> bool:
    needle = needle.lower()
    return needle in (rule.game_name or "").lower() or needle in rule.game_id.lower()


def filter_rules(rules: Iterable[HouseEdgeRule], filters: RuleFilters) -> List[HouseEdgeRule]:
    """
    Apply the free-text search, then the exact filters conjunctively.
    """
    selected = list(rules)
    if filters.search:
        selected = [rule for rule in selected if _matches_search(rule, filters.search)]
    if filters.game_id:
        selected = [rule for rule in selected if rule.game_id == filters.game_id]
    if filters.game_type is not None:
        selected = [rule for rule in selected if rule.game_type == filters.game_type]
    if filters.game_variant is not None:
        selected = [rule for rule in selected if rule.game_variant == filters.game_variant]
    if filters.is_active is not None:
        selected = [rule for rule in selected if rule.is_active == filters.is_active]
    return selected


def sort_rules(rules: Sequence[HouseEdgeRule], sort: SortSpec) -> List[HouseEdgeRule]:
    # sorted() is stable in both directions.
    return sorted(rules, key=_SORT_KEYS[sort.sort_by], reverse=sort.sort_order == "desc")


def query_rules(
    rules: Iterable[HouseEdgeRule],
    filters: Optional[RuleFilters] = None,
    sort: Optional[SortSpec] = None,
    page: Optional[PageRequest] = None,
) -> RulePage:
    """
    Filter, sort and paginate. A page past the last one yields the last page.
    """
    filters = filters or RuleFilters()
    sort = sort or SortSpec()
    page = page or PageRequest()

    ordered = sort_rules(filter_rules(rules, filters), sort)
    total = len(ordered)
    total_pages = max(1, math.ceil(total / page.per_page))
    current = min(max(page.page, 1), total_pages)
    offset = (current - 1) * page.per_page
    return RulePage(
        items=ordered[offset : offset + page.per_page],
        total=total,
        page=current,
        per_page=page.per_page,
        total_pages=total_pages,
    )


def compute_stats(rules: Iterable[HouseEdgeRule]) -> RuleStats:
    """Aggregate counts over the whole, unfiltered collection."""
    rules = list(rules)
    active = sum(1 for rule in rules if rule.is_active)
    return RuleStats(
        total=len(rules),
        active=active,
        inactive=len(rules) - active,
        unique_game_types=len({rule.game_type for rule in rules}),
        unique_game_variants=len({rule.game_variant for rule in rules}),
    )


def find_duplicate_active_rules(
    rules: Iterable[HouseEdgeRule],
) -> Dict[Tuple[str, GameType, GameVariant], List[str]]:
    """
    Group active rules sharing (game_id, game_type, game_variant).

    Only groups with more than one rule are returned. Repeated apply-to-all
    runs are the usual source of these.
    """
    groups: Dict[Tuple[str, GameType, GameVariant], List[str]] = defaultdict(list)
    for rule in rules:
        if rule.is_active:
            groups[(rule.game_id, rule.game_type, rule.game_variant)].append(rule.id)
    return {key: ids for key, ids in groups.items() if len(ids) > 1}


__all__ = [
    "PageRequest",
    "RuleFilters",
    "RulePage",
    "RuleStats",
    "SortSpec",
    "compute_stats",
    "filter_rules",
    "find_duplicate_active_rules",
    "query_rules",
    "sort_rules",
]

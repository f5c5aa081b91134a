"""
Criteria matching for bulk rule operations.

A criteria value names an optional game type and an optional game variant. An
unset field is an explicit wildcard (`None`), never an incidental empty string:
form input goes through `RuleCriteria.from_form`, which is the single place an
empty select box is turned into "match anything".
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Union

from pydantic import BaseModel

from edgeconsole.domain.models import GameType, GameVariant, HouseEdgeRule

WILDCARD = "*"


class RuleCriteria(BaseModel):
    game_type: Optional[GameType] = None
    game_variant: Optional[GameVariant] = None

    model_config = {"frozen": True}

    @classmethod
    def from_form(
        cls,
        game_type: Union[str, GameType, None] = None,
        game_variant: Union[str, GameVariant, None] = None,
    ) -> "RuleCriteria":
        """Build criteria from raw form values; empty strings become wildcards."""
        return cls(
            game_type=GameType(game_type) if game_type else None,
            game_variant=GameVariant(game_variant) if game_variant else None,
        )

    @property
    def is_unrestricted(self) -> bool:
        return self.game_type is None and self.game_variant is None

    def describe(self) -> str:
        type_part = self.game_type.value if self.game_type else WILDCARD
        variant_part = self.game_variant.value if self.game_variant else WILDCARD
        return f"game_type={type_part}, game_variant={variant_part}"


def matches(rule: HouseEdgeRule, criteria: RuleCriteria) -> bool:
    """True when every non-wildcard criterion equals the rule's field."""
    if criteria.game_type is not None and rule.game_type != criteria.game_type:
        return False
    if criteria.game_variant is not None and rule.game_variant != criteria.game_variant:
        return False
    return True


def select_matching(rules: Iterable[HouseEdgeRule], criteria: RuleCriteria) -> List[HouseEdgeRule]:
    return [rule for rule in rules if matches(rule, criteria)]


__all__ = ["RuleCriteria", "matches", "select_matching", "WILDCARD"]

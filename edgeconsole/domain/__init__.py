"""
Domain package for the house-edge console.

Exports the rule model, game references, the percent/fraction codec, criteria
matching, and the form values the engine validates. Keep this package focused
on data definitions and pure functions; I/O lives in `edgeconsole.backends`.
"""

from edgeconsole.domain.codec import format_percent, to_fraction, to_percent
from edgeconsole.domain.criteria import RuleCriteria, matches
from edgeconsole.domain.forms import RulePatch, RuleTemplate, ValidationResult
from edgeconsole.domain.models import (
    CatalogGame,
    GameRef,
    GameType,
    GameVariant,
    HouseEdgeRule,
)

__all__ = [
    "CatalogGame",
    "GameRef",
    "GameType",
    "GameVariant",
    "HouseEdgeRule",
    "RuleCriteria",
    "RulePatch",
    "RuleTemplate",
    "ValidationResult",
    "format_percent",
    "matches",
    "to_fraction",
    "to_percent",
]

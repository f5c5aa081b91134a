"""
Immutable form values and pure validators for rule mutations.

Each modal of the console (single create, bulk create, apply/remove all, edit)
submits one frozen value object holding the raw text the operator typed. The
validators below inspect those objects without side effects on the store and
return a `ValidationResult` carrying per-field messages; the engine refuses to
mutate anything unless the result is ok.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Optional, Sequence

from pydantic import BaseModel, Field

from edgeconsole.domain.codec import parse_decimal, to_fraction
from edgeconsole.domain.models import GameRef, GameType, GameVariant
from edgeconsole.domain.windows import parse_timestamp


class RuleTemplate(BaseModel):
    """Shared rule fields as entered in a create / bulk / apply-all form."""

    game_type: str = ""
    game_variant: str = ""
    house_edge: str = ""
    min_bet: str = ""
    max_bet: str = ""
    is_active: bool = True
    effective_from: str = ""
    effective_until: str = ""

    model_config = {"frozen": True}


class RulePatch(BaseModel):
    """Edit-form values; `None` leaves the stored field untouched."""

    game_type: Optional[str] = None
    game_variant: Optional[str] = None
    house_edge: Optional[str] = None
    min_bet: Optional[str] = None
    max_bet: Optional[str] = None
    is_active: Optional[bool] = None
    effective_from: Optional[str] = None
    effective_until: Optional[str] = None

    model_config = {"frozen": True}


class ValidationResult(BaseModel):
    field_errors: Dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return not self.field_errors


def _check_choice(errors: Dict[str, str], name: str, raw: Optional[str], enum_cls, required: bool) -> None:
    if not raw:
        if required:
            errors[name] = f"{name.replace('_', ' ').capitalize()} is required"
        return
    allowed = {member.value for member in enum_cls}
    if raw not in allowed:
        errors[name] = f"Unknown {name.replace('_', ' ')} '{raw}'"


def _check_values(
    errors: Dict[str, str],
    house_edge: Optional[str],
    min_bet: Optional[str],
    max_bet: Optional[str],
    effective_from: Optional[str],
    effective_until: Optional[str],
    default_max_bet: Optional[str] = None,
) -> None:
    if house_edge:
        fraction = Decimal(to_fraction(house_edge))
        if fraction < 0:
            errors["house_edge"] = "House edge must not be negative"
        elif fraction >= 1:
            errors["house_edge"] = "House edge must be below 100%"

    max_bet = max_bet or default_max_bet
    if min_bet and max_bet:
        low = parse_decimal(min_bet, field="min_bet")
        high = parse_decimal(max_bet, field="max_bet")
        if low > high:
            errors["max_bet"] = "Max bet must be greater than or equal to min bet"

    start = end = None
    for name, raw in (("effective_from", effective_from), ("effective_until", effective_until)):
        try:
            parsed = parse_timestamp(raw)
        except ValueError:
            errors[name] = f"Invalid date-time '{raw}'"
            continue
        if name == "effective_from":
            start = parsed
        else:
            end = parsed
    if start is not None and end is not None and start > end:
        errors["effective_until"] = "Effective until must not precede effective from"


def validate_single(
    game_ref: Optional[GameRef], template: RuleTemplate, default_max_bet: Optional[str] = None
) -> ValidationResult:
    """
    Single create: a resolved game plus game type and variant are required.
    An omitted max bet is checked as `default_max_bet`, the value it will take.
    """
    errors: Dict[str, str] = {}
    if game_ref is None:
        errors["game"] = "Please select a game"
    _check_choice(errors, "game_type", template.game_type, GameType, required=True)
    _check_choice(errors, "game_variant", template.game_variant, GameVariant, required=True)
    _check_values(
        errors,
        template.house_edge,
        template.min_bet,
        template.max_bet,
        template.effective_from,
        template.effective_until,
        default_max_bet=default_max_bet,
    )
    return ValidationResult(field_errors=errors)


def validate_bulk(
    targets: Sequence[object], template: RuleTemplate, default_max_bet: Optional[str] = None
) -> ValidationResult:
    """
    Bulk create / apply-to-all: at least one target, and game type, house edge
    and min bet are required. The variant may be omitted (defaults later).
    """
    errors: Dict[str, str] = {}
    if not targets:
        errors["games"] = "Please select at least one game"
    _check_choice(errors, "game_type", template.game_type, GameType, required=True)
    _check_choice(errors, "game_variant", template.game_variant, GameVariant, required=False)
    if not template.house_edge:
        errors["house_edge"] = "House edge is required"
    if not template.min_bet:
        errors["min_bet"] = "Min bet is required"
    _check_values(
        errors,
        template.house_edge,
        template.min_bet,
        template.max_bet,
        template.effective_from,
        template.effective_until,
        default_max_bet=default_max_bet,
    )
    return ValidationResult(field_errors=errors)


def validate_patch(patch: RulePatch) -> ValidationResult:
    errors: Dict[str, str] = {}
    _check_choice(errors, "game_type", patch.game_type, GameType, required=False)
    _check_choice(errors, "game_variant", patch.game_variant, GameVariant, required=False)
    _check_values(
        errors,
        patch.house_edge,
        patch.min_bet,
        patch.max_bet,
        patch.effective_from,
        patch.effective_until,
    )
    return ValidationResult(field_errors=errors)


__all__ = [
    "RuleTemplate",
    "RulePatch",
    "ValidationResult",
    "validate_single",
    "validate_bulk",
    "validate_patch",
]

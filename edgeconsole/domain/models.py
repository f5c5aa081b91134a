"""
Domain models for the house-edge console.

Defines the house-edge wager rule, the game references rules are bound to, and
the enumerations of game types and variants. Rules are immutable; edits produce
a new instance via `model_copy(update=...)` which the store swaps in place.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from edgeconsole.domain.codec import format_percent


class GameType(str, Enum):
    SLOT = "slot"
    SPORTS = "sports"
    TABLE = "table"
    LIVE = "live"
    CRASH = "crash"
    PLINKO = "plinko"
    WHEEL = "wheel"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class GameVariant(str, Enum):
    CLASSIC = "classic"
    V1 = "v1"
    V2 = "v2"
    DEMO = "demo"
    REAL = "real"
    MOBILE = "mobile"
    DESKTOP = "desktop"

    @property
    def label(self) -> str:
        return _VARIANT_LABELS[self]


_VARIANT_LABELS = {
    GameVariant.CLASSIC: "Classic",
    GameVariant.V1: "Version 1",
    GameVariant.V2: "Version 2",
    GameVariant.DEMO: "Demo",
    GameVariant.REAL: "Real",
    GameVariant.MOBILE: "Mobile",
    GameVariant.DESKTOP: "Desktop",
}


class GameRef(BaseModel):
    """
    A game resolved once at selection time.

    `internal_id` is the catalog's surrogate key; `code` is the provider-facing
    game code that rules store as `game_id`.
    """

    internal_id: str
    code: str
    display_name: Optional[str] = None

    model_config = {"frozen": True}


class CatalogGame(BaseModel):
    """A game as exposed by the catalog collaborator."""

    internal_id: str
    game_code: str
    name: str
    provider: str = ""
    enabled: bool = True

    model_config = {"frozen": True, "populate_by_name": True}

    def to_ref(self) -> GameRef:
        return GameRef(internal_id=self.internal_id, code=self.game_code, display_name=self.name)


class HouseEdgeRule(BaseModel):
    """
    A house-edge wager rule for one game/type/variant.
    """

    id: str = Field(..., description="Opaque unique identifier.")
    game_id: str = Field(..., description="Provider-facing game code.")
    game_name: Optional[str] = Field(None, description="Denormalized display label.")
    game_type: GameType
    game_variant: GameVariant
    house_edge: str = Field(..., description="Decimal fraction, e.g. '0.0500'.")
    min_bet: str = Field(..., description="Minimum bet amount.")
    max_bet: str = Field(..., description="Maximum bet amount.")
    is_active: bool = Field(True)
    effective_from: Optional[datetime] = None
    effective_until: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "use_enum_values": False,
    }

    @property
    def house_edge_percent(self) -> str:
        return format_percent(self.house_edge)

    def to_wire(self) -> dict:
        """JSON-ready payload with RFC3339 timestamps and enum values."""
        return self.model_dump(mode="json")


__all__ = [
    "GameType",
    "GameVariant",
    "GameRef",
    "CatalogGame",
    "HouseEdgeRule",
]

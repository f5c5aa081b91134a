"""
Abstract durability interface for house-edge rules.

Concrete backends (in-memory mirror, REST API, Postgres) implement the
RuleDurabilityStore protocol. The HouseEdgeStore calls a backend first and only
updates its in-memory snapshot once the backend call returned, so a failing
backend never leaves the snapshot half-mutated.
"""

from __future__ import annotations

import abc
from datetime import datetime
from typing import List, Protocol, Sequence, runtime_checkable

from edgeconsole.domain.models import HouseEdgeRule


@runtime_checkable
class RuleDurabilityStore(Protocol):
    """
    Common interface all durability backends must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier.
    description : str
        A human-friendly summary of where rules are persisted.
    """

    name: str
    description: str

    def list_rules(self) -> List[HouseEdgeRule]:
        """Return every persisted rule in insertion order."""
        ...

    def create_rule(self, rule: HouseEdgeRule) -> HouseEdgeRule:
        ...

    def update_rule(self, rule: HouseEdgeRule) -> HouseEdgeRule:
        ...

    def delete_rule(self, rule_id: str) -> None:
        ...

    def bulk_create(self, rules: Sequence[HouseEdgeRule]) -> List[HouseEdgeRule]:
        """
        Persist a batch of rules in one call.

        Implementations must either persist every rule or raise without
        persisting any of them.
        """
        ...

    def bulk_delete(self, rule_ids: Sequence[str]) -> int:
        """Delete the given ids in one call and return how many were removed."""
        ...

    def bulk_set_status(
        self, rule_ids: Sequence[str], is_active: bool, updated_at: datetime
    ) -> int:
        """Set `is_active` on every given id in one call; returns how many changed."""
        ...

    def close(self) -> None:
        ...


class AbstractRuleDurabilityStore(abc.ABC):
    """
    Optional ABC helper for class-based backends.

    Single-rule operations default to the bulk ones so a backend only has to
    implement listing, bulk create, update and bulk delete.
    """

    name: str
    description: str

    @abc.abstractmethod
    def list_rules(self) -> List[HouseEdgeRule]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def bulk_create(self, rules: Sequence[HouseEdgeRule]) -> List[HouseEdgeRule]:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def update_rule(self, rule: HouseEdgeRule) -> HouseEdgeRule:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def bulk_delete(self, rule_ids: Sequence[str]) -> int:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def bulk_set_status(
        self, rule_ids: Sequence[str], is_active: bool, updated_at: datetime
    ) -> int:  # pragma: no cover
        raise NotImplementedError

    def create_rule(self, rule: HouseEdgeRule) -> HouseEdgeRule:
        return self.bulk_create([rule])[0]

    def delete_rule(self, rule_id: str) -> None:
        self.bulk_delete([rule_id])

    def close(self) -> None:
        """Release resources; a no-op unless the backend holds connections."""


__all__ = ["RuleDurabilityStore", "AbstractRuleDurabilityStore"]

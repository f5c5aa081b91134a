"""
The session's ordered collection of house-edge rules.

HouseEdgeStore keeps the rules in insertion order and enforces the rule
invariants on every insert and update. When a durability backend is attached,
each mutation is sent to the backend first and the in-memory snapshot only
changes after the backend call returned; a failing backend therefore leaves the
snapshot exactly as it was. Without a backend the store runs in demonstration
mode and the snapshot is the only copy.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterator, List, Optional, Sequence

from edgeconsole.backends import MemoryRuleStore, RuleDurabilityStore, create_backend
from edgeconsole.config import Settings, get_settings
from edgeconsole.domain.models import HouseEdgeRule
from edgeconsole.errors import InvariantViolationError, RuleNotFoundError, StoreUnavailableError
from edgeconsole.utils.logging import get_logger

log = get_logger(__name__)


def check_invariants(rule: HouseEdgeRule) -> None:
    """
    Raise InvariantViolationError unless the rule is storable.

    - `house_edge` is a decimal fraction in [0, 1), never a raw percentage.
    - `min_bet <= max_bet`.
    - `effective_from <= effective_until` when both are set.
    """
    try:
        edge = Decimal(rule.house_edge)
    except InvalidOperation as exc:
        raise InvariantViolationError(
            f"house_edge '{rule.house_edge}' is not a decimal", details={"rule_id": rule.id}
        ) from exc
    if not edge.is_finite() or edge < 0 or edge >= 1:
        raise InvariantViolationError(
            f"house_edge '{rule.house_edge}' is not a fraction in [0, 1)",
            details={"rule_id": rule.id},
        )
    try:
        low, high = Decimal(rule.min_bet), Decimal(rule.max_bet)
    except InvalidOperation as exc:
        raise InvariantViolationError("Bet bounds must be decimals", details={"rule_id": rule.id}) from exc
    if low > high:
        raise InvariantViolationError(
            f"min_bet {rule.min_bet} exceeds max_bet {rule.max_bet}", details={"rule_id": rule.id}
        )
    if rule.effective_from and rule.effective_until and rule.effective_from > rule.effective_until:
        raise InvariantViolationError(
            "effective_from is after effective_until", details={"rule_id": rule.id}
        )


class HouseEdgeStore:
    """
    Ordered rule collection owned by the console session.
    """

    def __init__(
        self,
        backend: Optional[RuleDurabilityStore] = None,
        rules: Sequence[HouseEdgeRule] = (),
    ) -> None:
        self._backend = backend
        self._rules: List[HouseEdgeRule] = list(rules)

    @property
    def backend(self) -> Optional[RuleDurabilityStore]:
        return self._backend

    @property
    def mode(self) -> str:
        if self._backend is None or isinstance(self._backend, MemoryRuleStore):
            return "demo"
        return "remote"

    def load(self) -> int:
        """Replace the snapshot with the backend's current contents."""
        if self._backend is not None:
            self._rules = list(self._backend.list_rules())
        return len(self._rules)

    def replace(self, rules: Sequence[HouseEdgeRule]) -> None:
        self._rules = list(rules)

    def all(self) -> List[HouseEdgeRule]:
        return list(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[HouseEdgeRule]:
        return iter(list(self._rules))

    def find(self, rule_id: str) -> Optional[HouseEdgeRule]:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    def get(self, rule_id: str) -> HouseEdgeRule:
        rule = self.find(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    def insert_many(self, rules: Sequence[HouseEdgeRule]) -> List[HouseEdgeRule]:
        """
        Insert a batch atomically: every rule is checked before any is stored.
        """
        known = {rule.id for rule in self._rules}
        for rule in rules:
            if rule.id in known:
                raise InvariantViolationError(f"Duplicate rule id '{rule.id}'", details={"rule_id": rule.id})
            known.add(rule.id)
            check_invariants(rule)
        if not rules:
            return []

        if self._backend is None:
            persisted = list(rules)
        elif len(rules) == 1:
            persisted = [self._backend.create_rule(rules[0])]
        else:
            persisted = list(self._backend.bulk_create(rules))
        self._rules.extend(persisted)
        return persisted

    def insert(self, rule: HouseEdgeRule) -> HouseEdgeRule:
        return self.insert_many([rule])[0]

    def update(self, rule: HouseEdgeRule) -> HouseEdgeRule:
        index = self._index_of(rule.id)
        check_invariants(rule)
        persisted = self._backend.update_rule(rule) if self._backend is not None else rule
        self._rules[index] = persisted
        return persisted

    def delete(self, rule_id: str) -> HouseEdgeRule:
        index = self._index_of(rule_id)
        if self._backend is not None:
            self._backend.delete_rule(rule_id)
        return self._rules.pop(index)

    def delete_many(self, rule_ids: Sequence[str]) -> int:
        targets = set(rule_ids)
        if not targets:
            return 0
        if self._backend is not None:
            self._backend.bulk_delete(list(targets))
        before = len(self._rules)
        self._rules = [rule for rule in self._rules if rule.id not in targets]
        return before - len(self._rules)

    def set_status(self, rule_ids: Sequence[str], is_active: bool, updated_at: datetime) -> List[HouseEdgeRule]:
        positions: Dict[str, int] = {rule_id: self._index_of(rule_id) for rule_id in rule_ids}
        if self._backend is not None and positions:
            self._backend.bulk_set_status(list(positions), is_active, updated_at)
        changed = []
        for index in positions.values():
            rule = self._rules[index].model_copy(update={"is_active": is_active, "updated_at": updated_at})
            self._rules[index] = rule
            changed.append(rule)
        return changed

    def close(self) -> None:
        if self._backend is not None:
            self._backend.close()

    def _index_of(self, rule_id: str) -> int:
        for index, rule in enumerate(self._rules):
            if rule.id == rule_id:
                return index
        raise RuleNotFoundError(rule_id)


def open_store(
    settings: Optional[Settings] = None,
    backend: Optional[RuleDurabilityStore] = None,
) -> HouseEdgeStore:
    """
    Build and load the store for the configured backend.

    When a remote backend is unreachable the session degrades to an in-memory
    mirror backed by the snapshot file, so the console stays usable.
    """
    settings = settings or get_settings()
    backend = backend or create_backend(settings=settings)
    store = HouseEdgeStore(backend)
    try:
        count = store.load()
    except StoreUnavailableError as exc:
        if isinstance(backend, MemoryRuleStore):
            raise
        log.warning(
            "[STORE] Remote backend unavailable; falling back to demonstration mode",
            extra={"backend": backend.name, "error": exc.message},
        )
        backend.close()
        store = HouseEdgeStore(MemoryRuleStore(snapshot_path=settings.snapshot_path))
        count = store.load()
    log.info(
        "[STORE] Loaded rules",
        extra={"backend": store.backend.name if store.backend else "none", "mode": store.mode, "rules": count},
    )
    return store


__all__ = ["HouseEdgeStore", "check_invariants", "open_store"]
